# merchantconnect/services/product_form.py
"""
Admin product edit workflow.

A form edits one product record. New products are created optimistically:
an empty placeholder record exists before the form opens, and closing the
form without a successful save deletes it again.

    EDITING -> UPLOADING -> EDITING -> SAVING -> CLOSED (saved | cancelled)

Image analysis runs beside the form as a background task and only fills
fields the admin has not touched yet.
"""

import asyncio
import logging
from enum import Enum
from typing import Any, Protocol

from pydantic import ValidationError
from starlette.concurrency import run_in_threadpool

from merchantconnect.core.storage_utils import BlobStore
from merchantconnect.schemas.image import ImageVariantSet, dump_images
from merchantconnect.schemas.product import (
    ProductFormRead,
    ProductFormUpdate,
    ProductRead,
    ProductSave,
)
from merchantconnect.services.ai_service import ImageAnalysis
from merchantconnect.services.image_variants import (
    delete_variant_set,
    generate_variants,
    upload_variant_set,
)

logger = logging.getLogger(__name__)


class FormState(str, Enum):
    EDITING = "editing"
    UPLOADING = "uploading"
    SAVING = "saving"
    CLOSED = "closed"


class FormOutcome(str, Enum):
    SAVED = "saved"
    CANCELLED = "cancelled"


class FormStateError(Exception):
    """The operation is not allowed in the form's current state."""


class FormClosedError(FormStateError):
    pass


class FormValidationError(ValueError):
    """Field values rejected on save."""


class ImageDeleteNotConfirmedError(Exception):
    pass


class ProductWriter(Protocol):
    async def get_product(self, product_id: str) -> ProductRead: ...

    async def create_placeholder(self) -> ProductRead: ...

    async def update_product(self, product_id: str, data: dict[str, Any]) -> ProductRead: ...

    async def set_images(self, product_id: str, images: list[ImageVariantSet]) -> ProductRead: ...

    async def delete_product(self, product_id: str) -> ProductRead: ...


class ImageAnalyzer(Protocol):
    async def analyze_image(self, image_bytes: bytes, mime_type: str = ...) -> ImageAnalysis: ...


def _price_text(value: float) -> str:
    return f"{value:g}"


def parse_stock(raw: str) -> int:
    """
    Stock defaults to 1 when left empty or not an integer. Anything that
    parses is returned as-is, so negative values still fail validation.
    """
    try:
        return int(raw.strip())
    except (TypeError, ValueError):
        return 1


class ProductForm:
    """One open admin form over one product record."""

    def __init__(
        self,
        product: ProductRead,
        *,
        is_new: bool,
        blob_store: BlobStore,
        writer: ProductWriter,
        analyzer: ImageAnalyzer | None = None,
        pixel_ratio: float = 1.0,
    ):
        self.product_id = product.id
        self.is_new = is_new
        self.created_at = product.created_at
        self.blob_store = blob_store
        self.writer = writer
        self.analyzer = analyzer
        self.pixel_ratio = pixel_ratio

        self.state = FormState.EDITING
        self.outcome: FormOutcome | None = None

        self.name = product.name
        self.description = product.description
        self.wholesale_price = "" if is_new else _price_text(product.wholesale_price)
        self.retail_price = "" if is_new else _price_text(product.retail_price)
        self.stock = "1" if is_new else str(product.stock)
        self.hidden = product.hidden
        self.images: list[ImageVariantSet] = list(product.images)

        self._initial = {
            "name": self.name,
            "description": self.description,
            "retail_price": self.retail_price,
        }
        self._analysis: asyncio.Task | None = None

    # ----- State helpers -----

    @property
    def saved(self) -> bool:
        return self.outcome is FormOutcome.SAVED

    @property
    def analyzing(self) -> bool:
        return self._analysis is not None and not self._analysis.done()

    def _require_editing(self) -> None:
        if self.state is FormState.CLOSED:
            raise FormClosedError(f"Form for product {self.product_id} is closed")
        if self.state is not FormState.EDITING:
            raise FormStateError(f"Form is busy ({self.state.value})")

    async def _persist_images(self) -> None:
        await self.writer.set_images(self.product_id, self.images)

    # ----- Fields -----

    def update_fields(self, data: ProductFormUpdate) -> None:
        self._require_editing()
        for key, value in data.model_dump(exclude_unset=True).items():
            if value is None:
                continue
            if key == "hidden":
                self.hidden = bool(value)
            else:
                setattr(self, key, str(value))

    # ----- Images -----

    async def add_image(
        self,
        filename: str,
        data: bytes,
        mime_type: str = "image/jpeg",
    ) -> ImageVariantSet:
        """
        Resize, upload and append one image, then persist the image list.

        Raises:
            ImageVariantError: the file could not be decoded.
            VariantUploadError: an upload failed (nothing was kept).
        """
        self._require_editing()
        self.state = FormState.UPLOADING
        try:
            blobs = await run_in_threadpool(generate_variants, data, self.pixel_ratio)

            if not self.name.strip() and not self.analyzing and self.analyzer is not None:
                self._analysis = asyncio.create_task(self._analyze(data, mime_type))

            image = await upload_variant_set(
                self.blob_store, filename, blobs, product_id=self.product_id
            )
            self.images.append(image)
            try:
                await self._persist_images()
            except Exception:
                self.images.pop()
                await delete_variant_set(self.blob_store, image)
                raise
            return image
        finally:
            if self.state is FormState.UPLOADING:
                self.state = FormState.EDITING

    async def _analyze(self, data: bytes, mime_type: str) -> None:
        try:
            result = await self.analyzer.analyze_image(data, mime_type)
        except Exception as e:
            logger.warning("Image analysis failed for product %s: %s", self.product_id, e)
            return

        if self.state is FormState.CLOSED:
            return
        if result.name and self.name == self._initial["name"]:
            self.name = result.name
        if result.description and self.description == self._initial["description"]:
            self.description = result.description
        if result.retail_price_estimate and self.retail_price == self._initial["retail_price"]:
            self.retail_price = _price_text(result.retail_price_estimate)

    async def wait_for_analysis(self) -> None:
        if self._analysis is not None:
            await self._analysis

    async def move_image(self, from_index: int, to_index: int) -> list[ImageVariantSet]:
        """Splice the image at from_index into to_index and persist the order."""
        self._require_editing()
        if not 0 <= from_index < len(self.images):
            raise IndexError(f"No image at index {from_index}")
        to_index = min(to_index, len(self.images) - 1)
        if from_index == to_index:
            return self.images

        previous = list(self.images)
        image = self.images.pop(from_index)
        self.images.insert(to_index, image)
        try:
            await self._persist_images()
        except Exception:
            self.images = previous
            raise
        return self.images

    async def delete_image(self, index: int, confirmed: bool = False) -> list[ImageVariantSet]:
        """Delete the variant blobs of one image, drop it and persist."""
        self._require_editing()
        if not confirmed:
            raise ImageDeleteNotConfirmedError("Image deletion must be confirmed")
        if not 0 <= index < len(self.images):
            raise IndexError(f"No image at index {index}")

        image = self.images[index]
        await delete_variant_set(self.blob_store, image)
        del self.images[index]
        await self._persist_images()
        return self.images

    # ----- Save / cancel -----

    def _validated(self) -> ProductSave:
        try:
            return ProductSave(
                name=self.name,
                description=self.description,
                wholesale_price=self.wholesale_price,
                retail_price=self.retail_price,
                stock=parse_stock(self.stock),
                hidden=self.hidden,
            )
        except ValidationError as e:
            fields = ", ".join(str(err["loc"][0]) for err in e.errors() if err.get("loc"))
            raise FormValidationError(f"Invalid fields: {fields}") from e

    async def save(self) -> ProductRead:
        """
        Validate and write the full record. On a write failure the form
        stays open with its values intact.
        """
        self._require_editing()
        values = self._validated()

        self.state = FormState.SAVING
        try:
            product = await self.writer.update_product(
                self.product_id,
                {
                    **values.model_dump(),
                    "images": dump_images(self.images),
                    "created_at": self.created_at,
                },
            )
        except Exception:
            self.state = FormState.EDITING
            raise

        self.state = FormState.CLOSED
        self.outcome = FormOutcome.SAVED
        logger.info("Saved product %s", self.product_id)
        return product

    def cancel(self) -> None:
        if self.state is FormState.CLOSED:
            return
        self.state = FormState.CLOSED
        self.outcome = FormOutcome.CANCELLED

    def to_read(self) -> ProductFormRead:
        return ProductFormRead(
            product_id=self.product_id,
            is_new=self.is_new,
            state=self.state.value,
            outcome=self.outcome.value if self.outcome else None,
            analyzing=self.analyzing,
            name=self.name,
            description=self.description,
            wholesale_price=self.wholesale_price,
            retail_price=self.retail_price,
            stock=self.stock,
            hidden=self.hidden,
            images=self.images,
        )


class FormNotFoundError(LookupError):
    pass


class ProductFormRegistry:
    """
    Open admin forms by product id.

    Whether a placeholder survives is decided only by its form's outcome:
    anything other than SAVED deletes it on close.
    """

    def __init__(
        self,
        writer: ProductWriter,
        blob_store: BlobStore,
        analyzer: ImageAnalyzer | None = None,
        pixel_ratio: float = 1.0,
    ):
        self.writer = writer
        self.blob_store = blob_store
        self.analyzer = analyzer
        self.pixel_ratio = pixel_ratio
        self._forms: dict[str, ProductForm] = {}

    def _register(self, product: ProductRead, is_new: bool) -> ProductForm:
        form = ProductForm(
            product,
            is_new=is_new,
            blob_store=self.blob_store,
            writer=self.writer,
            analyzer=self.analyzer,
            pixel_ratio=self.pixel_ratio,
        )
        self._forms[product.id] = form
        return form

    async def open_new(self) -> ProductForm:
        product = await self.writer.create_placeholder()
        return self._register(product, is_new=True)

    async def open(self, product_id: str) -> ProductForm:
        form = self._forms.get(product_id)
        if form is not None and form.state is not FormState.CLOSED:
            return form
        product = await self.writer.get_product(product_id)
        return self._register(product, is_new=False)

    def get(self, product_id: str) -> ProductForm:
        form = self._forms.get(product_id)
        if form is None:
            raise FormNotFoundError(product_id)
        return form

    async def close(self, product_id: str) -> FormOutcome:
        """
        Close a form. An unsaved new product is rolled back: its uploaded
        images and its placeholder record are deleted.
        """
        form = self._forms.pop(product_id, None)
        if form is None:
            raise FormNotFoundError(product_id)
        form.cancel()

        if form.is_new and not form.saved:
            for image in form.images:
                try:
                    await delete_variant_set(self.blob_store, image)
                except Exception as e:
                    logger.error("Could not delete image of placeholder %s: %s", product_id, e)
            await self.writer.delete_product(product_id)
            logger.info("Removed unsaved placeholder product %s", product_id)

        return form.outcome

    async def close_all(self) -> None:
        for product_id in list(self._forms):
            await self.close(product_id)
