"""
Token verification for the identity provider.

The team access engine only needs to know *who* is calling. Tokens are
HS256 JWTs signed with JWT_SECRET carrying ``sub`` (the provider's user
id) and the ``email``/``name`` profile claims.
"""
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Optional
import jwt
from fastapi import HTTPException, status

from app.core import config
from app.utils import get_logger


log = get_logger(__name__)


@dataclass(frozen=True)
class TokenIdentity:
    subject: str
    email: Optional[str]
    name: Optional[str]


def _unauthenticated(detail: str) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail=detail,
        headers={"WWW-Authenticate": "Bearer"},
    )


def verify_token(token: str) -> TokenIdentity:
    """
    Verify signature and expiry of ``token`` and return its identity claims.

    Raises:
        HTTPException: 401 if the token is invalid, expired or has no subject
    """
    options = {"require": ["sub", "exp"]}
    try:
        payload = jwt.decode(
            token,
            config.JWT_SECRET,
            algorithms=[config.JWT_ALGORITHM],
            audience=config.JWT_AUDIENCE,
            options=options if config.JWT_AUDIENCE else {**options, "verify_aud": False},
        )
    except jwt.ExpiredSignatureError:
        raise _unauthenticated("Token has expired")
    except jwt.InvalidTokenError as e:
        log.info("Rejected bearer token: %s", e)
        raise _unauthenticated(f"Invalid token: {e}")

    return TokenIdentity(
        subject=str(payload["sub"]),
        email=payload.get("email"),
        name=payload.get("name"),
    )


def issue_token(subject: str, email: str, name: str, expires_in: timedelta = timedelta(hours=1)) -> str:
    """Sign a token in the provider's format (local tooling and tests)."""
    claims = {
        "sub": subject,
        "email": email,
        "name": name,
        "exp": datetime.now(timezone.utc) + expires_in,
    }
    if config.JWT_AUDIENCE:
        claims["aud"] = config.JWT_AUDIENCE
    return jwt.encode(claims, config.JWT_SECRET, algorithm=config.JWT_ALGORITHM)
