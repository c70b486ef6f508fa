# merchantconnect/schemas/user.py
from typing import Literal

from pydantic import EmailStr, ConfigDict, field_validator
from sqlmodel import SQLModel, Field

# Advisory roles. Admin authority is decided by the allow-list.
Role = Literal["merchant", "admin"]


class BusinessAddress(SQLModel):
    model_config = ConfigDict(extra="forbid")

    street: str = ""
    city: str = ""
    state: str = ""
    zipcode: str = ""


class UserProfileRead(SQLModel):
    """Response schema returned to clients."""

    email: str
    first_name: str = ""
    last_name: str = ""
    phone: str = ""
    business_name: str | None = None
    business_address: BusinessAddress | None = None
    role: Role = "merchant"
    persisted: bool = Field(
        default=False,
        description="False while the profile is a default built at sign-in",
    )


class UserProfileUpdate(SQLModel):
    """
    Partial profile update (merge write).

    The email is the persistence key and cannot be changed here.
    """

    model_config = ConfigDict(extra="forbid")

    first_name: str | None = Field(default=None, max_length=100)
    last_name: str | None = Field(default=None, max_length=100)
    phone: str | None = Field(default=None, max_length=50)
    business_name: str | None = Field(default=None, max_length=255)
    business_address: BusinessAddress | None = None

    @field_validator("first_name", "last_name", "phone", "business_name")
    @classmethod
    def strip_text(cls, v: str | None) -> str | None:
        if v is None:
            return v
        return v.strip()


class InquiryRequest(SQLModel):
    """
    The "I'm interested" form.

    Every contact field is required; the email may differ from the login
    email (it is the address the supplier should reply to).
    """

    model_config = ConfigDict(extra="forbid")

    email: EmailStr
    first_name: str = Field(min_length=1, max_length=100)
    last_name: str = Field(min_length=1, max_length=100)
    phone: str = Field(min_length=1, max_length=50)
    business_name: str = Field(min_length=1, max_length=255)
    business_address: BusinessAddress
    draft_email_for_me: bool = True

    @field_validator("first_name", "last_name", "phone", "business_name")
    @classmethod
    def not_empty(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("field cannot be empty")
        return v


class EmailDraft(SQLModel):
    subject: str
    body: str


class InquiryResponse(SQLModel):
    """Result of a submitted inquiry."""

    subject: str
    body: str
    mailto_url: str | None = Field(
        default=None,
        description="Present when draft_email_for_me was requested",
    )
    product_count: int
    notified_supplier: bool = False
    profile: UserProfileRead
