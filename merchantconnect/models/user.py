# merchantconnect/models/user.py
from typing import Any

from sqlalchemy import Column, JSON
from sqlmodel import SQLModel, Field


class UserProfile(SQLModel, table=True):
    """
    Merchant (or supplier admin) contact profile.

    Identity:
      - email is the persistence key, not a generated UID.

    Role:
      - "merchant" | "admin", advisory only. Admin authority comes from
        the configs/adminEmails allow-list (see core.auth).

    Rows are only written when a merchant submits an inquiry or edits
    their profile; a signed-in user without a row gets a default profile
    built from the identity provider's display name.
    """

    __tablename__ = "users"

    email: str = Field(
        primary_key=True,
        index=True,
        description="Email from Supabase auth (lower-cased)",
    )

    first_name: str = Field(default="", max_length=100)
    last_name: str = Field(default="", max_length=100)
    phone: str = Field(default="", max_length=50)

    business_name: str | None = Field(default=None, max_length=255)

    # {"street": ..., "city": ..., "state": ..., "zipcode": ...}
    business_address: dict[str, Any] | None = Field(
        default=None,
        sa_column=Column(JSON, nullable=True),
    )

    role: str = Field(
        default="merchant",
        description="Advisory role: merchant | admin",
    )
