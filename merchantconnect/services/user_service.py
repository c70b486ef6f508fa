# merchantconnect/services/user_service.py
from typing import Any

from sqlmodel import Session

from merchantconnect.core.auth import Identity
from merchantconnect.models.user import UserProfile
from merchantconnect.repositories.user_repo import UserRepository
from merchantconnect.schemas.user import UserProfileRead, UserProfileUpdate


def split_display_name(display_name: str) -> tuple[str, str]:
    """'Ada King Lovelace' -> ('Ada', 'King Lovelace')."""
    parts = display_name.split()
    if not parts:
        return "", ""
    return parts[0], " ".join(parts[1:])


def to_read(profile: UserProfile, persisted: bool = True) -> UserProfileRead:
    return UserProfileRead(
        email=profile.email,
        first_name=profile.first_name,
        last_name=profile.last_name,
        phone=profile.phone,
        business_name=profile.business_name,
        business_address=profile.business_address,
        role=profile.role if profile.role in ("merchant", "admin") else "merchant",
        persisted=persisted,
    )


class UserService:
    """
    Business logic for merchant profiles.

    Responsibilities:
      - fetch the stored profile, or build a default one (never persisted)
      - merge writes keyed by the login email
    """

    def __init__(self, repo: UserRepository):
        self.repo = repo

    def get_profile(self, session: Session, identity: Identity) -> UserProfileRead:
        """
        Return the stored profile, or a default built from the identity's
        display name. The default is not written.
        """
        profile = self.repo.get_by_email(session, identity.email)
        if profile is not None:
            return to_read(profile)

        first_name, last_name = split_display_name(identity.display_name)
        return to_read(
            UserProfile(email=identity.email, first_name=first_name, last_name=last_name),
            persisted=False,
        )

    def merge_profile(
        self,
        session: Session,
        identity: Identity,
        data: dict[str, Any],
    ) -> UserProfileRead:
        """Merge-write profile fields; the email key itself never changes."""
        data = {k: v for k, v in data.items() if k != "email"}
        if "business_address" in data and hasattr(data["business_address"], "model_dump"):
            data["business_address"] = data["business_address"].model_dump()
        return to_read(self.repo.merge(session, identity.email, data))

    def update_profile(
        self,
        session: Session,
        identity: Identity,
        payload: UserProfileUpdate,
    ) -> UserProfileRead:
        """Partial update; only fields sent by the client are written."""
        return self.merge_profile(
            session, identity, payload.model_dump(exclude_unset=True)
        )
