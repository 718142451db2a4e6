"""
SQLAlchemy Database Models

Stores:
- Users (mapped from the external identity provider's uid)
- Devices and their Ed25519 public keys (the device key registry)
- Nonce claims (replay protection)
- Device link codes
- Locations, notifications, trusted places
"""
from sqlalchemy import (
    BigInteger, Boolean, Column, DateTime, Float, ForeignKey, Index, Integer, JSON,
    PrimaryKeyConstraint, String, Text, Uuid,
)
from sqlalchemy.orm import declarative_base, relationship
from datetime import datetime
import uuid

Base = declarative_base()


class User(Base):
    """
    Application user.

    auth_uid is the stable identity returned by the bearer-token issuer
    (Firebase uid); id is the internal key referenced everywhere else.
    """
    __tablename__ = "users"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    auth_uid = Column(String(128), nullable=False, unique=True, index=True)
    email = Column(String(320))
    phone_number = Column(String(64))
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)

    devices = relationship("Device", back_populates="user")


class Device(Base):
    """
    Registered device.

    device_id is immutable once created. revoked only ever goes false -> true;
    a revoked device fails authentication immediately.
    """
    __tablename__ = "devices"

    device_id = Column(String(128), primary_key=True)
    user_id = Column(Uuid(as_uuid=True), ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    public_key = Column(String(128))  # base64 raw Ed25519 key
    label = Column(String(200))
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    revoked = Column(Boolean, default=False, nullable=False)
    revoked_at = Column(DateTime)

    user = relationship("User", back_populates="devices")


class Nonce(Base):
    """
    Claimed nonce.

    The composite primary key on (nonce, device_id) is what makes a claim
    atomic: a second INSERT of the same pair fails with an integrity error.
    """
    __tablename__ = "nonces"

    nonce = Column(String(128), nullable=False)
    device_id = Column(String(128), nullable=False)
    ts = Column(BigInteger, nullable=False)  # claimed request timestamp (unix seconds)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)

    __table_args__ = (
        PrimaryKeyConstraint("nonce", "device_id", name="pk_nonces"),
        Index("ix_nonces_ts", "ts"),
    )


class DeviceLink(Base):
    """One-time code a device shows so a logged-in user can claim it."""
    __tablename__ = "device_links"

    id = Column(Integer, primary_key=True, autoincrement=True)
    device_id = Column(String(128), nullable=False)
    public_key = Column(String(128))
    code = Column(String(16), nullable=False, unique=True, index=True)
    expires_at = Column(DateTime, nullable=False)
    used = Column(Boolean, default=False, nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)


class Location(Base):
    """A position reported by a device."""
    __tablename__ = "locations"

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(Uuid(as_uuid=True), ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    device_id = Column(String(128), ForeignKey("devices.device_id", ondelete="CASCADE"), nullable=False)
    ts_ms = Column(BigInteger, nullable=False)
    lat = Column(Float, nullable=False)
    lon = Column(Float, nullable=False)
    accuracy_m = Column(Float)
    speed_mps = Column(Float)
    provider = Column(String(50))
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)

    __table_args__ = (
        Index("ix_locations_user_ts", "user_id", "ts_ms"),
    )


class Notification(Base):
    """Message queued for delivery to one device."""
    __tablename__ = "notifications"

    id = Column(Integer, primary_key=True, autoincrement=True)
    device_id = Column(String(128), ForeignKey("devices.device_id", ondelete="CASCADE"), nullable=False)
    type = Column(String(50), nullable=False)
    payload = Column(JSON, default=dict)
    is_read = Column(Boolean, default=False, nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)

    __table_args__ = (
        Index("ix_notifications_device_unread", "device_id", "is_read"),
    )


class TrustedPlace(Base):
    """Circle around a location the user considers safe."""
    __tablename__ = "trusted_places"

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(Uuid(as_uuid=True), ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    label = Column(Text)
    lat = Column(Float, nullable=False)
    lon = Column(Float, nullable=False)
    radius_m = Column(Integer, default=50, nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
