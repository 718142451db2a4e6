"""
Location history export (user bearer token)

GET /api/export?from=<ms>&to=<ms>&format=gpx|json
"""
from datetime import datetime, timezone
from typing import List

from fastapi import APIRouter, Depends, HTTPException, Query, status
from fastapi.responses import Response
from sqlalchemy.orm import Session

from webtracker.api.schemas import ExportPoint, ExportResponse
from webtracker.api.signed_auth import find_user, require_user
from webtracker.core.auth import UserPrincipal
from webtracker.core.database import Location, get_db

router = APIRouter(prefix="/api", tags=["export"])


def _iso_utc(ts_ms: int) -> str:
    dt = datetime.fromtimestamp(ts_ms / 1000, tz=timezone.utc)
    return dt.strftime("%Y-%m-%dT%H:%M:%S.") + f"{dt.microsecond // 1000:03d}Z"


def gpx_from_points(points: List[Location]) -> str:
    """Render points as a single-track GPX 1.1 document."""
    header = (
        '<?xml version="1.0" encoding="UTF-8"?>\n'
        '<gpx version="1.1" creator="webtracker">\n'
        '<trk><name>Export</name><trkseg>'
    )
    body = "\n".join(
        f'<trkpt lat="{p.lat}" lon="{p.lon}"><time>{_iso_utc(p.ts_ms)}</time></trkpt>'
        for p in points
    )
    footer = "</trkseg></trk>\n</gpx>"
    return "\n".join([header, body, footer])


@router.get("/export")
async def export_locations(
    from_ms: int = Query(0, alias="from"),
    to_ms: int = Query(0, alias="to"),
    format: str = Query("gpx"),
    principal: UserPrincipal = Depends(require_user),
    db: Session = Depends(get_db),
):
    """Export the caller's locations between from and to (inclusive, ms epoch)."""
    if not from_ms or not to_ms:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="from & to required (ms epoch)")

    export_format = format.lower()
    if export_format not in ("gpx", "json"):
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="format must be gpx or json")

    user = find_user(db, principal)
    if user is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="User not registered")

    points = db.query(Location).filter(
        Location.user_id == user.id,
        Location.ts_ms >= from_ms,
        Location.ts_ms <= to_ms,
    ).order_by(Location.ts_ms.asc()).all()

    if export_format == "json":
        return ExportResponse(points=[ExportPoint.model_validate(p) for p in points])

    return Response(
        content=gpx_from_points(points),
        media_type="application/gpx+xml",
        headers={"Content-Disposition": 'attachment; filename="export.gpx"'},
    )
