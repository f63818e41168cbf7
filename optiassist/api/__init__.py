"""
Optical-Assist API Module

Authentication dependencies for the FastAPI routes.
"""

from optiassist.api.auth import ADMIN_KEY_HEADER, require_admin_key, verify_admin_key

__all__ = [
    "ADMIN_KEY_HEADER",
    "require_admin_key",
    "verify_admin_key",
]
