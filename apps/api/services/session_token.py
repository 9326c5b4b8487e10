"""Bearer session tokens for admin, distributor and reseller accounts.

A token names the account in `sub` and, when issued with one, the role the
account held at issue time. `routers.auth_scope` refuses a token whose role
no longer matches the stored account.
"""

from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Optional

from jose import JWTError, jwt

from config import settings
from models.user import ROLE_ADMIN, ROLE_DISTRIBUTOR, ROLE_RESELLER


SESSION_TOKEN_TYPE = "iptv_session"
ACCOUNT_ROLES = (ROLE_ADMIN, ROLE_DISTRIBUTOR, ROLE_RESELLER)


def create_session_token(
    account_id: str,
    role: Optional[str] = None,
    expires_hours: Optional[int] = None,
) -> Dict[str, Any]:
    """Sign a token for `account_id`, optionally pinned to `role`."""
    if role is not None and role not in ACCOUNT_ROLES:
        raise ValueError(f"Unknown account role: {role}")

    issued_at = datetime.now(timezone.utc)
    lifetime = timedelta(hours=max(int(expires_hours or settings.JWT_EXPIRATION_HOURS or 24), 1))
    expires_at = int((issued_at + lifetime).timestamp())

    claims: Dict[str, Any] = {
        "sub": account_id,
        "type": SESSION_TOKEN_TYPE,
        "iat": int(issued_at.timestamp()),
        "exp": expires_at,
    }
    if role:
        claims["role"] = role

    return {
        "token": jwt.encode(claims, settings.JWT_SECRET, algorithm=settings.JWT_ALGORITHM),
        "expires_at": expires_at,
    }


def decode_session_token(token: str) -> Dict[str, Any]:
    """Verify signature, expiry and token type; raise ValueError otherwise."""
    try:
        claims = jwt.decode(token, settings.JWT_SECRET, algorithms=[settings.JWT_ALGORITHM])
    except JWTError as exc:
        raise ValueError("Invalid or expired session token.") from exc

    if str(claims.get("type", "")).strip() != SESSION_TOKEN_TYPE:
        raise ValueError("Invalid session token type.")
    if not str(claims.get("sub", "")).strip():
        raise ValueError("Session token missing subject.")
    role = claims.get("role")
    if role is not None and role not in ACCOUNT_ROLES:
        raise ValueError("Session token carries an unknown role.")

    return claims
