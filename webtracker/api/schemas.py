"""
Pydantic schemas for FastAPI endpoints
"""
from typing import Optional, List, Dict, Any
from datetime import datetime
from pydantic import BaseModel, Field


class RegisterRequest(BaseModel):
    """Profile fields stored on first login"""
    email: Optional[str] = Field(None, max_length=320)
    phone_number: Optional[str] = Field(None, max_length=64)


class UserResponse(BaseModel):
    id: str
    auth_uid: str
    email: Optional[str] = None
    phone_number: Optional[str] = None
    created_at: datetime


class DeviceCodeRequest(BaseModel):
    """Device asks for a link code to display to its owner"""
    device_id: str = Field(..., pattern=r"^[-A-Za-z0-9_]{4,128}$")
    pubkey: Optional[str] = Field(None, max_length=128, description="Base64 raw Ed25519 public key")


class LinkDeviceRequest(BaseModel):
    code: str = Field(..., min_length=1, max_length=16)
    label: Optional[str] = Field(None, max_length=200)


class DeviceResponse(BaseModel):
    device_id: str
    user_id: str
    public_key: Optional[str] = None
    label: Optional[str] = None
    created_at: datetime
    revoked: bool


class LocationIn(BaseModel):
    """Position fix reported by a device"""
    ts_ms: int = Field(..., gt=0, description="Fix time, ms since epoch")
    lat: float = Field(..., ge=-90, le=90)
    lon: float = Field(..., ge=-180, le=180)
    accuracy_m: Optional[float] = Field(None, ge=0)
    speed_mps: Optional[float] = Field(None, ge=0)
    provider: Optional[str] = Field(None, max_length=50)


class NotificationIn(BaseModel):
    """Notification fanned out to every active device of the user"""
    type: str = Field(..., min_length=1, max_length=50)
    payload: Dict[str, Any] = Field(default_factory=dict)


class NotificationResponse(BaseModel):
    id: int
    type: str
    payload: Optional[Dict[str, Any]] = None

    class Config:
        from_attributes = True


class TrustedPlaceIn(BaseModel):
    """
    Trusted place to add.

    Accepts both {lat, lon, radius_m} and the {latitude, longitude, radius}
    spelling used by older mobile clients.
    """
    label: Optional[str] = Field(None, max_length=200)
    lat: Optional[float] = Field(None, ge=-90, le=90)
    lon: Optional[float] = Field(None, ge=-180, le=180)
    latitude: Optional[float] = Field(None, ge=-90, le=90)
    longitude: Optional[float] = Field(None, ge=-180, le=180)
    radius_m: Optional[int] = Field(None, gt=0)
    radius: Optional[int] = Field(None, gt=0)

    @property
    def resolved_lat(self) -> Optional[float]:
        return self.lat if self.lat is not None else self.latitude

    @property
    def resolved_lon(self) -> Optional[float]:
        return self.lon if self.lon is not None else self.longitude

    @property
    def resolved_radius(self) -> int:
        if self.radius_m is not None:
            return self.radius_m
        if self.radius is not None:
            return self.radius
        return 50


class TrustedDeleteRequest(BaseModel):
    id: int = Field(..., gt=0)


class TrustedPlaceResponse(BaseModel):
    id: int
    label: Optional[str] = None
    lat: float
    lon: float
    radius_m: int
    created_at: datetime

    class Config:
        from_attributes = True


class ExportPoint(BaseModel):
    lat: float
    lon: float
    ts_ms: int

    class Config:
        from_attributes = True


class ExportResponse(BaseModel):
    points: List[ExportPoint]
