"""
Trusted place endpoints (user bearer token or signed device)

- GET /api/trusted: list the owner's places
- POST /api/trusted: add a place
- DELETE /api/trusted?id=123: delete a place
- POST /api/trusted/delete: delete a place (for clients that cannot send DELETE)
"""
import uuid
from datetime import datetime
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.orm import Session

from webtracker.api.schemas import TrustedDeleteRequest, TrustedPlaceIn, TrustedPlaceResponse
from webtracker.api.signed_auth import get_owner_id
from webtracker.core.database import TrustedPlace, get_db

router = APIRouter(prefix="/api/trusted", tags=["trusted"])


def _delete_owned(db: Session, owner_id: uuid.UUID, place_id: int) -> None:
    deleted = db.query(TrustedPlace).filter(
        TrustedPlace.id == place_id,
        TrustedPlace.user_id == owner_id,
    ).delete(synchronize_session=False)
    db.commit()
    if not deleted:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Trusted place not found")


@router.get("")
async def list_trusted(
    owner_id: uuid.UUID = Depends(get_owner_id),
    db: Session = Depends(get_db),
):
    places = db.query(TrustedPlace).filter(
        TrustedPlace.user_id == owner_id
    ).order_by(TrustedPlace.created_at.desc(), TrustedPlace.id.desc()).all()
    return {
        "ok": True,
        "trusted": [TrustedPlaceResponse.model_validate(p).model_dump(mode="json") for p in places],
    }


@router.post("")
async def add_trusted(
    payload: TrustedPlaceIn,
    owner_id: uuid.UUID = Depends(get_owner_id),
    db: Session = Depends(get_db),
):
    lat, lon = payload.resolved_lat, payload.resolved_lon
    if lat is None or lon is None:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Missing lat/lon")

    place = TrustedPlace(
        user_id=owner_id,
        label=payload.label,
        lat=lat,
        lon=lon,
        radius_m=payload.resolved_radius,
        created_at=datetime.utcnow(),
    )
    db.add(place)
    db.commit()
    db.refresh(place)
    return {"ok": True, "trusted": TrustedPlaceResponse.model_validate(place).model_dump(mode="json")}


@router.delete("")
async def delete_trusted(
    id: Optional[int] = Query(None, gt=0),
    owner_id: uuid.UUID = Depends(get_owner_id),
    db: Session = Depends(get_db),
):
    if not id:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Missing id")
    _delete_owned(db, owner_id, id)
    return {"ok": True}


@router.post("/delete")
async def delete_trusted_compat(
    payload: TrustedDeleteRequest,
    owner_id: uuid.UUID = Depends(get_owner_id),
    db: Session = Depends(get_db),
):
    _delete_owned(db, owner_id, payload.id)
    return {"ok": True}
