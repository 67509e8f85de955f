"""Verification of identity-provider session tokens."""

import logging
from typing import Optional

import jwt
from fastapi import Depends, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from accessly.exceptions import ConfigurationError, Unauthorized
from accessly.settings import AuthConfig

logger = logging.getLogger("accessly-auth")

security = HTTPBearer(auto_error=False)


def decode_session_token(token: str, config: Optional[AuthConfig] = None) -> str:
    """Return the ``sub`` claim of a valid token or raise Unauthorized."""
    config = config or AuthConfig.from_env()
    if not config.key:
        raise ConfigurationError("AUTH_JWT_KEY is not configured")
    try:
        payload = jwt.decode(
            token,
            config.key,
            algorithms=config.algorithms,
            issuer=config.issuer,
            audience=config.audience,
            options={"verify_aud": config.audience is not None},
        )
    except jwt.PyJWTError as exc:
        logger.info("[Auth] Rejected session token: %s", exc)
        raise Unauthorized("Unauthorized") from exc
    subject = payload.get("sub")
    if not subject:
        raise Unauthorized("Unauthorized")
    return str(subject)


def get_current_user_id(
    request: Request,
    creds: Optional[HTTPAuthorizationCredentials] = Depends(security),
) -> str:
    config = AuthConfig.from_env()
    token = creds.credentials if creds else request.cookies.get(config.cookie_name)
    if not token:
        raise Unauthorized("Unauthorized")
    return decode_session_token(token, config)
