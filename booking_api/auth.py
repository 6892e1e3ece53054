"""
Admin API key guard for slot management and CSV export.

Clients send the key in the X-API-Key header; it is compared in constant time
with EXPORT_API_KEY.
"""

import logging
from typing import Optional

from fastapi import Header

from . import config
from .exceptions import ConfigurationError, UnauthorizedError
from .webhook_security import constant_time_compare

logger = logging.getLogger(__name__)


def check_api_key(provided: Optional[str], expected: Optional[str]) -> None:
    if not expected:
        logger.error("❌ EXPORT_API_KEY not configured in environment")
        raise ConfigurationError("Export functionality not configured")
    if not provided:
        raise UnauthorizedError("API key required. Please provide X-API-Key header.")
    if not constant_time_compare(provided, expected):
        logger.warning("🚫 Invalid API key attempt on admin endpoint")
        raise UnauthorizedError("Invalid API key")


async def require_api_key(x_api_key: Optional[str] = Header(default=None)) -> None:
    """FastAPI dependency for admin endpoints"""
    check_api_key(x_api_key, config.EXPORT_API_KEY)
