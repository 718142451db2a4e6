"""
Replay Guard

Claims a (nonce, device) pair exactly once. The guard itself holds no state
and takes no locks; exactly-once rests on the NonceStore's atomic insert.
"""
import logging

from webtracker.core.auth.collaborators import ClaimResult, NonceStore

logger = logging.getLogger(__name__)


class ReplayGuard:
    """Thin wrapper around NonceStore.claim_nonce that logs replays."""

    def __init__(self, store: NonceStore):
        self.store = store

    async def claim(self, nonce: str, device_id: str, timestamp: int) -> ClaimResult:
        result = await self.store.claim_nonce(nonce, device_id, timestamp)
        if result is ClaimResult.ALREADY_USED:
            logger.warning(f"Replay detected: nonce already claimed for device {device_id}")
        return result
