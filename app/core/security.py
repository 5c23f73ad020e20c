from __future__ import annotations

import logging
from typing import Any, Dict, Optional

import jwt

from app.core.config import get_settings

logger = logging.getLogger(__name__)
settings = get_settings()


def decode_access_token(token: str) -> Optional[Dict[str, Any]]:
    """Verify an access token issued by the identity provider.

    Returns the claims, or None when the signature, expiry or audience check fails.
    """
    options = {"verify_aud": bool(settings.jwt_audience)}
    try:
        return jwt.decode(
            token,
            settings.jwt_secret_key,
            algorithms=[settings.jwt_algorithm],
            audience=settings.jwt_audience,
            options=options,
        )
    except jwt.ExpiredSignatureError:
        logger.info("Access token expired")
        return None
    except jwt.InvalidTokenError as exc:
        logger.warning("Invalid access token", extra={"error": str(exc)})
        return None
