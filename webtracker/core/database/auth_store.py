"""
SQL-backed collaborators for the authentication core.

SqlAuthStore implements both DeviceKeyRegistry and NonceStore on top of the
devices / nonces tables. Each call opens its own short-lived session and runs
in a worker thread so the event loop is never blocked by the database.
"""
import asyncio
import logging
import time
from typing import Optional

from sqlalchemy import delete
from sqlalchemy.exc import DBAPIError, IntegrityError, OperationalError
from sqlalchemy.orm import Session, sessionmaker

from webtracker.core.auth.collaborators import ClaimResult, CollaboratorUnavailable, DeviceRecord
from webtracker.core.database.models import Device, Nonce

logger = logging.getLogger(__name__)


class SqlAuthStore:
    """Device key registry and atomic nonce store backed by SQLAlchemy."""

    def __init__(self, session_factory: sessionmaker):
        self.session_factory = session_factory

    def _get_device_sync(self, device_id: str) -> Optional[DeviceRecord]:
        session = self.session_factory()
        try:
            device = session.get(Device, device_id)
            if device is None:
                return None
            return DeviceRecord(
                device_id=device.device_id,
                public_key=device.public_key,
                user_id=str(device.user_id),
                revoked=bool(device.revoked),
            )
        except (OperationalError, DBAPIError) as e:
            raise CollaboratorUnavailable(f"Device lookup failed: {e}") from e
        finally:
            session.close()

    def _claim_nonce_sync(self, nonce: str, device_id: str, timestamp: int) -> ClaimResult:
        # Single INSERT; the (nonce, device_id) primary key decides the race.
        session = self.session_factory()
        try:
            session.add(Nonce(nonce=nonce, device_id=device_id, ts=timestamp))
            session.commit()
            return ClaimResult.CLAIMED
        except IntegrityError:
            session.rollback()
            return ClaimResult.ALREADY_USED
        except (OperationalError, DBAPIError) as e:
            session.rollback()
            raise CollaboratorUnavailable(f"Nonce claim failed: {e}") from e
        finally:
            session.close()

    async def get_device(self, device_id: str) -> Optional[DeviceRecord]:
        return await asyncio.to_thread(self._get_device_sync, device_id)

    async def claim_nonce(self, nonce: str, device_id: str, timestamp: int) -> ClaimResult:
        return await asyncio.to_thread(self._claim_nonce_sync, nonce, device_id, timestamp)


def purge_expired_nonces(
    session: Session,
    retention_seconds: int,
    min_retention_seconds: int,
    now: Optional[int] = None,
) -> int:
    """
    Delete nonce claims older than the retention window.

    Args:
        session: Database session
        retention_seconds: Keep claims whose timestamp is newer than now - retention
        min_retention_seconds: Clock-skew tolerance; retention may not be shorter
        now: Override for current unix time

    Returns:
        Number of deleted claims

    Raises:
        ValueError: If retention_seconds < min_retention_seconds (a purged nonce
            could otherwise be replayed while its request is still fresh)
    """
    if retention_seconds < min_retention_seconds:
        raise ValueError(
            f"Nonce retention {retention_seconds}s is shorter than the clock-skew "
            f"tolerance {min_retention_seconds}s"
        )
    if now is None:
        now = int(time.time())

    cutoff = now - retention_seconds
    result = session.execute(delete(Nonce).where(Nonce.ts < cutoff))
    session.commit()
    deleted = result.rowcount or 0
    if deleted:
        logger.info(f"Purged {deleted} nonce claims older than {retention_seconds}s")
    return deleted
