# merchantconnect/models/product.py
import time
import uuid
from typing import Any

from sqlalchemy import Column, JSON
from sqlmodel import SQLModel, Field


def _new_product_id() -> str:
    return uuid.uuid4().hex


def now_ms() -> int:
    """Current time in epoch milliseconds (the catalog's ordering key)."""
    return int(time.time() * 1000)


class Product(SQLModel, table=True):
    """
    Wholesale catalog entry.

    - id is opaque and assigned on creation (placeholders included).
    - stock == 0 means "restocking": the product cannot be selected.
    - hidden products are only visible to admins.
    - images is an ordered list of image variant sets; order is
      user-controlled and significant (first image is the hero).
    - stock and created_at are nullable because legacy rows may lack them;
      readers normalize them (stock -> 0, created_at -> 0 for ordering).
    """

    __tablename__ = "products"

    id: str = Field(
        default_factory=_new_product_id,
        primary_key=True,
        index=True,
    )

    name: str = Field(
        default="",
        max_length=255,
        index=True,
        description="Display name; empty on freshly created placeholders",
    )

    description: str = Field(
        default="",
        description="Sales description",
    )

    wholesale_price: float = Field(
        default=0,
        ge=0,
        description="Price per unit charged to merchants",
    )

    retail_price: float = Field(
        default=0,
        ge=0,
        description="Suggested retail price (independent of wholesale)",
    )

    stock: int | None = Field(
        default=0,
        ge=0,
        description="Units available; 0 = restocking",
    )

    hidden: bool = Field(
        default=False,
        index=True,
        description="Excluded from non-admin views when true",
    )

    images: list[Any] = Field(
        default_factory=list,
        sa_column=Column(JSON, nullable=False, default=list),
        description="Ordered image variant sets (see schemas.image)",
    )

    created_at: int | None = Field(
        default_factory=now_ms,
        description="Creation time in epoch milliseconds",
    )
