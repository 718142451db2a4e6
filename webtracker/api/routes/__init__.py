"""
API Routes
"""
from webtracker.api.routes import health, devices, location, notifications, trusted, export

__all__ = ["health", "devices", "location", "notifications", "trusted", "export"]
