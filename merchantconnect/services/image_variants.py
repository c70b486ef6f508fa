# merchantconnect/services/image_variants.py
"""
Image variant pipeline.

One uploaded product photo becomes three JPEG copies bounded by their
short edge:

    small   200px   thumbnails
    medium  600px   hero image on product cards
    big     2000px  full-size viewer

Images are never upscaled: a source whose short edge is below the target
keeps its own resolution for that variant.
"""

import asyncio
import io
import logging
import os
from dataclasses import dataclass

from PIL import Image, ImageOps, UnidentifiedImageError

from merchantconnect.core.storage_utils import BlobStore
from merchantconnect.models.product import now_ms
from merchantconnect.schemas.image import ImageVariantSet, VariantUrls

logger = logging.getLogger(__name__)

SMALL_EDGE = 200
MEDIUM_EDGE = 600
BIG_EDGE = 2000

JPEG_QUALITY = 95

# Upload order: hero first, then thumbnails, then full-size
UPLOAD_ORDER = ("medium", "small", "big")


class ImageVariantError(Exception):
    """The source could not be decoded or a variant could not be encoded."""


class VariantUploadError(Exception):
    """A variant upload failed; already-uploaded variants were rolled back."""


@dataclass
class VariantBlobs:
    small: bytes
    medium: bytes
    big: bytes

    def get(self, size: str) -> bytes:
        return getattr(self, size)


def target_size(width: int, height: int, short_edge: int) -> tuple[int, int]:
    """
    Output size for a requested short edge, aspect preserved, no upscaling.
    """
    img_short = min(width, height)
    use_edge = min(short_edge, img_short)
    scale = use_edge / img_short
    return max(1, round(width * scale)), max(1, round(height * scale))


def _flatten_to_rgb(img: Image.Image) -> Image.Image:
    """JPEG has no alpha: composite transparent images onto white."""
    if img.mode in ("RGBA", "LA", "P"):
        rgba = img.convert("RGBA")
        background = Image.new("RGB", rgba.size, (255, 255, 255))
        background.paste(rgba, mask=rgba.split()[-1])
        return background
    if img.mode != "RGB":
        return img.convert("RGB")
    return img


def _resize(img: Image.Image, short_edge: int, pixel_ratio: float) -> bytes:
    width, height = target_size(img.width, img.height, short_edge)

    # Two-pass: render at up to 2x the target, then downsample
    ratio = max(1.0, min(pixel_ratio or 1.0, 2.0))
    hi_size = (max(1, round(width * ratio)), max(1, round(height * ratio)))
    hi = img.resize(hi_size, Image.Resampling.LANCZOS)
    final = hi.resize((width, height), Image.Resampling.LANCZOS)

    buf = io.BytesIO()
    final.save(buf, format="JPEG", quality=JPEG_QUALITY)
    return buf.getvalue()


def generate_variants(source: bytes, pixel_ratio: float = 1.0) -> VariantBlobs:
    """
    Produce the small/medium/big JPEG variants of one source image.

    Args:
        source: encoded image bytes (any format Pillow can decode).
        pixel_ratio: device pixel ratio of the intermediate pass, clamped
            to [1, 2].

    Raises:
        ImageVariantError: if decoding or any resize/encode fails. No
            partial result is ever returned.
    """
    try:
        img = Image.open(io.BytesIO(source))
        img.load()
        img = ImageOps.exif_transpose(img)
        img = _flatten_to_rgb(img)

        return VariantBlobs(
            small=_resize(img, SMALL_EDGE, pixel_ratio),
            medium=_resize(img, MEDIUM_EDGE, pixel_ratio),
            big=_resize(img, BIG_EDGE, pixel_ratio),
        )
    except (UnidentifiedImageError, Image.DecompressionBombError, OSError, ValueError) as e:
        raise ImageVariantError(f"Could not generate image variants: {e}") from e


def variant_filename(filename: str, size: str) -> str:
    """
    'shoe.png' -> 'shoe_medium.png'; names without an extension get the
    suffix appended.
    """
    stem, ext = os.path.splitext(filename)
    return f"{stem}_{size}{ext}"


def variant_path(product_id: str | None, filename: str, size: str) -> str:
    folder = product_id or "temp"
    return f"products/{folder}/{now_ms()}_{variant_filename(filename, size)}"


async def upload_variant_set(
    blob_store: BlobStore,
    filename: str,
    blobs: VariantBlobs,
    product_id: str | None = None,
) -> ImageVariantSet:
    """
    Upload all three variants and return the completed variant set.

    Uploads run in UPLOAD_ORDER. If any of them fails, every variant that
    already made it to storage is deleted again and VariantUploadError is
    raised, so callers never see a partial set.
    """
    uploaded: dict[str, str] = {}
    try:
        for size in UPLOAD_ORDER:
            path = variant_path(product_id, filename, size)
            uploaded[size] = await blob_store.upload(path, blobs.get(size))
    except Exception as e:
        logger.error("Variant upload failed for %s: %s", filename, e)
        await _rollback(blob_store, list(uploaded.values()))
        raise VariantUploadError(f"Failed to upload image {filename}") from e

    return ImageVariantSet(
        name=filename,
        urls=VariantUrls(
            small=uploaded["small"],
            medium=uploaded["medium"],
            big=uploaded["big"],
        ),
    )


async def _rollback(blob_store: BlobStore, urls: list[str]) -> None:
    results = await asyncio.gather(
        *(blob_store.delete(url) for url in urls),
        return_exceptions=True,
    )
    for url, result in zip(urls, results):
        if isinstance(result, Exception):
            logger.error("Rollback could not delete %s: %s", url, result)


async def delete_variant_set(blob_store: BlobStore, image: ImageVariantSet) -> None:
    """
    Delete every variant blob of one image.

    URLs outside the managed bucket are skipped by the blob store.
    """
    for url in image.all_urls():
        await blob_store.delete(url)
