# merchantconnect/core/auth.py
from dataclasses import dataclass
from typing import Any

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from jose import jwt, JWTError
from sqlmodel import Session

from merchantconnect.core.config import get_settings
from merchantconnect.database import get_session
from merchantconnect.repositories.config_repo import ConfigRepository

ADMIN_EMAILS_DOC = "adminEmails"

# HTTP Bearer scheme:
# - auto_error=False => missing Authorization header will NOT raise immediately
#   so we can support "guest" mode (browsing the feed signed out).
bearer_scheme = HTTPBearer(auto_error=False)


@dataclass(frozen=True)
class Identity:
    """Who the caller claims to be, as asserted by the identity provider."""

    email: str
    display_name: str = ""


def decode_access_token(token: str) -> dict[str, Any]:
    """
    Decode and verify a Supabase access token (JWT).

    Verification:
      - signature (HS256 using SUPABASE_JWT_SECRET)
      - expiration time (exp)
      - audience is NOT verified (Supabase 'aud' may vary)

    Raises:
        HTTPException(401): if token is invalid/expired.
    """
    settings = get_settings()
    try:
        return jwt.decode(
            token,
            settings.SUPABASE_JWT_SECRET,
            algorithms=[settings.SUPABASE_JWT_ALG],
            options={"verify_aud": False},
        )
    except JWTError:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid or expired token",
        )


def get_current_identity(
    credentials: HTTPAuthorizationCredentials | None = Depends(bearer_scheme),
) -> Identity | None:
    """
    Resolve the caller from a Supabase JWT.

    Flow:
      1. If no Authorization header => guest => return None.
      2. Decode JWT => extract 'email' and the provider display name.

    Raises:
        HTTPException(401): if token is malformed or has no email claim.
    """
    if credentials is None:
        return None  # guest mode

    payload = decode_access_token(credentials.credentials)
    email = payload.get("email")
    if not email:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Token missing email",
        )

    metadata = payload.get("user_metadata") or {}
    display_name = metadata.get("full_name") or metadata.get("name") or ""
    return Identity(email=email.strip().lower(), display_name=display_name)


def require_auth(identity: Identity | None = Depends(get_current_identity)) -> Identity:
    """
    Enforce authentication.

    Raises:
        HTTPException(401): if the caller is a guest.
    """
    if identity is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Authentication required",
        )
    return identity


class AuthorizationService:
    """
    Single capability check for admin authority.

    Authority comes only from the allow-list stored in
    configs/adminEmails ({"emails": [...]}); the `role` field on a
    profile is advisory and never consulted here.
    """

    def __init__(self, admin_emails: list[str] | None = None):
        self.admin_emails = frozenset(
            e.strip().lower() for e in (admin_emails or []) if e and e.strip()
        )

    @classmethod
    def load(cls, session: Session, repo: ConfigRepository) -> "AuthorizationService":
        doc = repo.get(session, ADMIN_EMAILS_DOC)
        emails = (doc.data or {}).get("emails", []) if doc else []
        return cls(emails)

    def is_admin(self, identity: Identity | None) -> bool:
        if identity is None:
            return False
        return identity.email.strip().lower() in self.admin_emails


config_repo = ConfigRepository()


def get_authorization(session: Session = Depends(get_session)) -> AuthorizationService:
    """FastAPI dependency: the admin allow-list as loaded for this request."""
    return AuthorizationService.load(session, config_repo)


def require_admin(
    identity: Identity = Depends(require_auth),
    authz: AuthorizationService = Depends(get_authorization),
) -> Identity:
    """
    Enforce admin authority.

    Raises:
        HTTPException(403): if the caller is not on the allow-list.
    """
    if not authz.is_admin(identity):
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Admin access required",
        )
    return identity
