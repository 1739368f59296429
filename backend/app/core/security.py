"""Caller identity resolution.

Tokens are verified by the upstream gateway, which forwards the
authenticated user id in a header (``settings.USER_ID_HEADER``).  This
module only reads that id; it never issues or validates credentials.
``DEV_AUTH_BYPASS`` returns ``DEV_USER_ID`` for local development.
"""

from __future__ import annotations

import logging

from fastapi import HTTPException, Request, status

from app.core.config import settings

logger = logging.getLogger(__name__)


async def get_current_user_id(request: Request) -> int:
    """Return the authenticated user id for the current request."""
    if settings.DEV_AUTH_BYPASS:
        logger.info("[auth] DEV_AUTH_BYPASS active, using user_id=%s", settings.DEV_USER_ID)
        return settings.DEV_USER_ID

    raw = request.headers.get(settings.USER_ID_HEADER)
    if not raw:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Unauthenticated")
    try:
        return int(raw)
    except ValueError:
        logger.warning("[auth] malformed %s header value=%r", settings.USER_ID_HEADER, raw)
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid user id")
