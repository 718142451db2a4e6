"""
Location ingestion endpoint (signed by device)
"""
import time
import uuid

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from webtracker.api.schemas import LocationIn
from webtracker.api.signed_auth import require_device
from webtracker.core.auth import DevicePrincipal
from webtracker.core.database import Location, get_db

router = APIRouter(prefix="/api", tags=["location"])


@router.post("/location")
async def post_location(
    fix: LocationIn,
    device: DevicePrincipal = Depends(require_device),
    db: Session = Depends(get_db),
):
    """
    Store one position fix for the calling device.

    **Body:** `{ts_ms, lat, lon, accuracy_m?, speed_mps?, provider?}`
    """
    db.add(Location(
        user_id=uuid.UUID(device.user_id),
        device_id=device.device_id,
        ts_ms=fix.ts_ms,
        lat=fix.lat,
        lon=fix.lon,
        accuracy_m=fix.accuracy_m,
        speed_mps=fix.speed_mps,
        provider=fix.provider,
    ))
    db.commit()
    return {"ok": True, "stored_at": int(time.time() * 1000)}
