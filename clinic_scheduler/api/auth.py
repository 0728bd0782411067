"""
API key authentication for the scheduling endpoints.
"""
import secrets
from typing import Optional

from fastapi import Header, HTTPException, Query

from clinic_scheduler.core.config import settings


def require_api_key(
    x_api_key: Optional[str] = Header(None, alias="X-API-Key"),
    api_key: Optional[str] = Query(None, description="API key for authentication"),
) -> str:
    """
    Require a valid API key, from the X-API-Key header (preferred) or the
    api_key query parameter.
    """
    provided_key = x_api_key or api_key
    expected = settings.CLINIC_API_KEY or ""

    if not provided_key:
        raise HTTPException(
            status_code=401,
            detail={
                "error": "API key required",
                "message": "Provide API key via 'X-API-Key' header or 'api_key' query parameter",
            },
        )

    if not expected or not secrets.compare_digest(provided_key, expected):
        raise HTTPException(
            status_code=401,
            detail={
                "error": "Invalid API key",
                "message": "The provided API key is not valid",
            },
        )

    return provided_key
