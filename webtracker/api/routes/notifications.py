"""
Notification endpoints

- GET /api/notifications: signed device pulls its unread notifications
- POST /api/notifications: user fans a notification out to all active devices
"""
import logging

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.orm import Session

from webtracker.api.schemas import NotificationIn, NotificationResponse
from webtracker.api.signed_auth import find_user, require_device, require_user
from webtracker.core.auth import DevicePrincipal, UserPrincipal
from webtracker.core.database import Device, Notification, get_db

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/notifications", tags=["notifications"])


@router.get("")
async def pull_notifications(
    device: DevicePrincipal = Depends(require_device),
    db: Session = Depends(get_db),
):
    """Return unread notifications for the device, oldest first, and mark them read."""
    pending = db.query(Notification).filter(
        Notification.device_id == device.device_id,
        Notification.is_read == False,  # noqa: E712
    ).order_by(Notification.created_at.asc(), Notification.id.asc()).all()

    notifications = [NotificationResponse.model_validate(n).model_dump() for n in pending]

    if pending:
        ids = [n.id for n in pending]
        db.query(Notification).filter(Notification.id.in_(ids)).update(
            {Notification.is_read: True}, synchronize_session=False
        )
        db.commit()

    return {"ok": True, "notifications": notifications}


@router.post("")
async def fan_out_notification(
    payload: NotificationIn,
    principal: UserPrincipal = Depends(require_user),
    db: Session = Depends(get_db),
):
    """Queue one notification per non-revoked device of the caller."""
    user = find_user(db, principal)
    if user is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="User not registered")

    device_ids = [
        row.device_id for row in db.query(Device.device_id).filter(
            Device.user_id == user.id,
            Device.revoked == False,  # noqa: E712
        ).all()
    ]

    for device_id in device_ids:
        db.add(Notification(device_id=device_id, type=payload.type, payload=payload.payload))
    db.commit()

    logger.info(f"Queued '{payload.type}' notification for {len(device_ids)} device(s)")
    return {"ok": True, "queued": len(device_ids)}
