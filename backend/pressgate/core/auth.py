# pressgate/core/auth.py
"""
Firebase ID token verification and Principal extraction.

Tokens only establish identity. Roles are never read from token claims;
they come from the stored profile (see services/profile_resolver.py).
"""
import logging
from typing import Optional

from fastapi import Request
from firebase_admin import auth as fb_auth

from pressgate.config import get_firebase_app, settings
from pressgate.core.errors import Unauthenticated
from pressgate.schemas.principal import Principal

logger = logging.getLogger("pressgate.auth")

MOCK_TOKEN_PREFIX = "mock_jwt_token_"


def _extract_bearer_token(request: Request) -> Optional[str]:
    """
    Read the token from an `Authorization: Bearer <id_token>` header.
    Returns None when the header is missing or malformed.
    """
    auth_header = request.headers.get("Authorization")
    if not auth_header:
        return None
    parts = auth_header.split()
    if len(parts) == 2 and parts[0].lower() == "bearer":
        return parts[1]
    return None


def _decode_mock_token(mock_token: str) -> dict:
    """
    Development tokens of the form mock_jwt_token_<uid>.
    """
    uid = mock_token[len(MOCK_TOKEN_PREFIX):]
    if not uid:
        raise Unauthenticated("Invalid mock token format")
    return {"uid": uid, "email": None, "name": None}


def _decode_id_token(id_token: str) -> dict:
    """
    Verify a Firebase ID token, rejecting revoked sessions.
    Mock tokens are accepted only when ALLOW_MOCK_TOKENS is on.
    """
    if settings.allow_mock_tokens and id_token.startswith(MOCK_TOKEN_PREFIX):
        return _decode_mock_token(id_token)
    try:
        return fb_auth.verify_id_token(id_token, app=get_firebase_app(), check_revoked=True)
    except fb_auth.ExpiredIdTokenError:
        raise Unauthenticated("Token expired")
    except fb_auth.RevokedIdTokenError:
        raise Unauthenticated("Session revoked")
    except fb_auth.UserDisabledError:
        raise Unauthenticated("Account disabled")
    except (fb_auth.InvalidIdTokenError, ValueError) as exc:
        logger.info("Rejected ID token: %s", exc)
        raise Unauthenticated("Invalid authentication token")


def _token_to_principal(decoded: dict) -> Principal:
    uid = decoded.get("uid") or decoded.get("user_id")
    if not uid:
        raise Unauthenticated("Token missing uid")
    return Principal(
        uid=uid,
        email=decoded.get("email"),
        display_name=decoded.get("name"),
    )


# --------- FastAPI Dependencies --------- #

async def get_optional_principal(request: Request) -> Optional[Principal]:
    """
    Token optional: verified Principal when present, otherwise None.
    Used by public read endpoints.
    """
    token = _extract_bearer_token(request)
    if not token:
        return None
    return _token_to_principal(_decode_id_token(token))


async def get_principal(request: Request) -> Principal:
    """
    Token required.
    """
    token = _extract_bearer_token(request)
    if not token:
        raise Unauthenticated("Missing Authorization header")
    return _token_to_principal(_decode_id_token(token))
