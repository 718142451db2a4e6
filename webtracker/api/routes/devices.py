"""
User registration and device linking endpoints

Linking flow:
1. Device calls POST /api/generate-device-code with its id and public key
   and shows the returned code.
2. Logged-in user calls POST /api/link-device with that code; the device is
   created and bound to the user.
3. From then on the device signs its own requests.
"""
import logging
import secrets
from datetime import datetime, timedelta

from fastapi import APIRouter, Depends, HTTPException, Request, status
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from webtracker.api.schemas import (
    DeviceCodeRequest,
    DeviceResponse,
    LinkDeviceRequest,
    RegisterRequest,
    UserResponse,
)
from webtracker.api.signed_auth import find_user, require_user
from webtracker.core.auth import UserPrincipal
from webtracker.core.database import Device, DeviceLink, User, get_db
from webtracker.core.signing import base64_to_public_key

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["devices"])

LINK_CODE_LENGTH = 8


def _device_response(device: Device) -> DeviceResponse:
    return DeviceResponse(
        device_id=device.device_id,
        user_id=str(device.user_id),
        public_key=device.public_key,
        label=device.label,
        created_at=device.created_at,
        revoked=device.revoked,
    )


@router.post("/register")
async def register_user(
    payload: RegisterRequest,
    principal: UserPrincipal = Depends(require_user),
    db: Session = Depends(get_db),
):
    """
    Create or update the caller's user row (idempotent).

    Only fields present in the body overwrite stored values.
    """
    user = find_user(db, principal)
    if user is None:
        user = User(auth_uid=principal.user_id)
        db.add(user)
    if payload.email is not None:
        user.email = payload.email
    if payload.phone_number is not None:
        user.phone_number = payload.phone_number
    db.commit()
    db.refresh(user)

    logger.info(f"Registered user {principal.user_id}")
    return {
        "ok": True,
        "user": UserResponse(
            id=str(user.id),
            auth_uid=user.auth_uid,
            email=user.email,
            phone_number=user.phone_number,
            created_at=user.created_at,
        ).model_dump(mode="json"),
    }


@router.post("/generate-device-code")
async def generate_device_code(
    payload: DeviceCodeRequest,
    request: Request,
    db: Session = Depends(get_db),
):
    """Issue a short-lived one-time link code for an unlinked device."""
    if payload.pubkey:
        try:
            base64_to_public_key(payload.pubkey)
        except ValueError:
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Invalid pubkey")

    ttl_seconds = request.app.state.settings.device_code_ttl_seconds
    code = secrets.token_hex(LINK_CODE_LENGTH // 2)
    expires_at = datetime.utcnow() + timedelta(seconds=ttl_seconds)

    db.add(DeviceLink(
        device_id=payload.device_id,
        public_key=payload.pubkey,
        code=code,
        expires_at=expires_at,
        used=False,
    ))
    db.commit()

    return {"ok": True, "code": code, "expires_at": expires_at.isoformat() + "Z"}


@router.post("/link-device")
async def link_device(
    payload: LinkDeviceRequest,
    principal: UserPrincipal = Depends(require_user),
    db: Session = Depends(get_db),
):
    """Redeem a link code and bind the device to the caller."""
    user = find_user(db, principal)
    if user is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="User not registered")

    link = db.query(DeviceLink).filter(
        DeviceLink.code == payload.code.strip(),
        DeviceLink.used == False,  # noqa: E712
        DeviceLink.expires_at >= datetime.utcnow(),
    ).first()
    if link is None:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Invalid or expired code")

    if db.get(Device, link.device_id) is not None:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="Device already linked")

    link.used = True
    device = Device(
        device_id=link.device_id,
        user_id=user.id,
        public_key=link.public_key,
        label=payload.label,
        revoked=False,
    )
    db.add(device)
    try:
        db.commit()
    except IntegrityError:
        db.rollback()
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="Device already linked")
    db.refresh(device)

    logger.info(f"Linked device {device.device_id} to user {principal.user_id}")
    return {"ok": True, "device": _device_response(device).model_dump(mode="json")}


@router.post("/devices/{device_id}/revoke")
async def revoke_device(
    device_id: str,
    principal: UserPrincipal = Depends(require_user),
    db: Session = Depends(get_db),
):
    """
    Revoke one of the caller's devices.

    Revocation is permanent and takes effect for the very next request the
    device signs.
    """
    user = find_user(db, principal)
    device = db.get(Device, device_id)
    if user is None or device is None or device.user_id != user.id:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Device not found")

    if not device.revoked:
        device.revoked = True
        device.revoked_at = datetime.utcnow()
        db.commit()
        logger.info(f"Revoked device {device_id}")

    return {"ok": True, "device_id": device_id, "revoked": True}
