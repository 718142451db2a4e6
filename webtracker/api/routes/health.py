"""
Health check endpoint (no auth required)
"""
import time

from fastapi import APIRouter

router = APIRouter(prefix="/api", tags=["health"])


@router.get("/health")
async def health_check():
    return {"ok": True, "status": "ok", "ts": int(time.time() * 1000)}
