"""Database module"""
from .models import (
    Base, User, Device, Nonce, DeviceLink, Location, Notification, TrustedPlace,
)
from .connection import get_db, init_db, create_tables
from .auth_store import SqlAuthStore, purge_expired_nonces

__all__ = [
    'Base',
    'User',
    'Device',
    'Nonce',
    'DeviceLink',
    'Location',
    'Notification',
    'TrustedPlace',
    'get_db',
    'init_db',
    'create_tables',
    'SqlAuthStore',
    'purge_expired_nonces',
]
