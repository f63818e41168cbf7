"""
Admin authentication for Optical-Assist

Document management endpoints require the ``x-admin-key`` header to match
the configured ADMIN_PASSCODE. Comparison is constant-time. A missing
header, a wrong key, or no configured passcode all yield 403.
"""

import hmac
import logging

from fastapi import Depends, Header

from optiassist.config import Settings, get_settings
from optiassist.errors import Unauthorized

logger = logging.getLogger(__name__)

ADMIN_KEY_HEADER = "x-admin-key"


def verify_admin_key(provided: str | None, expected: str | None) -> bool:
    """Return True only when both keys are present and equal."""
    if not provided or not expected:
        return False
    return hmac.compare_digest(provided.encode("utf-8"), expected.encode("utf-8"))


async def require_admin_key(
    x_admin_key: str | None = Header(default=None, alias=ADMIN_KEY_HEADER),
    settings: Settings = Depends(get_settings),
) -> None:
    """FastAPI dependency guarding admin routes."""
    if not verify_admin_key(x_admin_key, settings.admin_passcode):
        logger.warning("Rejected admin request (header %s)", "present" if x_admin_key else "missing")
        raise Unauthorized()
