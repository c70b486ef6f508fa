# merchantconnect/repositories/user_repo.py
from typing import Any

from sqlmodel import Session

from merchantconnect.models.user import UserProfile


class UserRepository:
    """
    Data access layer for the users collection (keyed by email).

    Responsibilities:
      - Pure DB operations (get + merge write)
      - No FastAPI, no HTTP, no business logic
    """

    def get_by_email(self, session: Session, email: str) -> UserProfile | None:
        """Return a profile by its email key, or None if never persisted."""
        return session.get(UserProfile, email)

    def merge(
        self,
        session: Session,
        email: str,
        data: dict[str, Any],
    ) -> UserProfile:
        """
        Write only the provided fields, creating the row if needed.

        Fields absent from `data` keep their stored values.
        """
        profile = session.get(UserProfile, email)
        if profile is None:
            profile = UserProfile(email=email)
        for key, value in data.items():
            setattr(profile, key, value)
        session.add(profile)
        session.commit()
        session.refresh(profile)
        return profile
