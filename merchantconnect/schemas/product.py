# merchantconnect/schemas/product.py
from pydantic import ConfigDict, field_validator
from sqlmodel import SQLModel, Field

from merchantconnect.schemas.image import ImageVariantSet


class ProductRead(SQLModel):
    """
    Normalized product as every consumer sees it.

    Built once per snapshot by the catalog store: stock is never None,
    created_at is never None, images are canonical variant sets.
    """

    id: str
    name: str = ""
    description: str = ""
    wholesale_price: float = 0
    retail_price: float = 0
    stock: int = 0
    hidden: bool = False
    images: list[ImageVariantSet] = []
    created_at: int = 0

    @property
    def in_stock(self) -> bool:
        return self.stock > 0


class ProductSave(SQLModel):
    """
    Validated field values written by the admin form on Save.

    - name is required.
    - prices must be numeric and non-negative.
    - stock must be a non-negative integer.
    """

    model_config = ConfigDict(extra="forbid")

    name: str = Field(min_length=1, max_length=255)
    description: str = ""
    wholesale_price: float = Field(ge=0)
    retail_price: float = Field(ge=0)
    stock: int = Field(default=1, ge=0)
    hidden: bool = False

    @field_validator("name")
    @classmethod
    def validate_name(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("name cannot be empty")
        return v


class ProductFormUpdate(SQLModel):
    """
    Partial edit of the open form's fields (not persisted until Save).

    Prices and stock are accepted as raw text, the way an input holds them;
    they are only parsed on Save.
    """

    model_config = ConfigDict(extra="forbid")

    name: str | None = None
    description: str | None = None
    wholesale_price: str | float | None = None
    retail_price: str | float | None = None
    stock: str | int | None = None
    hidden: bool | None = None


class ProductFormRead(SQLModel):
    """Snapshot of an open admin form."""

    product_id: str
    is_new: bool
    state: str
    outcome: str | None = None
    analyzing: bool = False
    name: str
    description: str
    wholesale_price: str
    retail_price: str
    stock: str
    hidden: bool
    images: list[ImageVariantSet]


class MoveImageRequest(SQLModel):
    from_index: int = Field(ge=0)
    to_index: int = Field(ge=0)
