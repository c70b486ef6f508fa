# merchantconnect/schemas/image.py
import logging
from typing import Any

from pydantic import ConfigDict
from sqlmodel import SQLModel

logger = logging.getLogger(__name__)

IMAGE_SCHEMA_VERSION = 2

VARIANT_SIZES = ("small", "medium", "big")


class VariantUrls(SQLModel):
    """Public URLs of the three resized copies; any may be missing on old rows."""

    model_config = ConfigDict(extra="ignore")

    small: str | None = None
    medium: str | None = None
    big: str | None = None


class ImageVariantSet(SQLModel):
    """
    Canonical shape of one product image.

    Version history:
      1. a bare URL string, or a flat {"small", "medium", "big"} dict
      2. {"version": 2, "name": <original filename>, "urls": {...}}

    Every stored shape is converted to version 2 by `normalize_image`
    when products are loaded; nothing downstream inspects raw shapes.
    """

    model_config = ConfigDict(extra="ignore")

    version: int = IMAGE_SCHEMA_VERSION
    name: str = ""
    urls: VariantUrls = VariantUrls()

    @property
    def hero_url(self) -> str | None:
        return self.urls.medium or self.urls.big or self.urls.small

    @property
    def thumbnail_url(self) -> str | None:
        return self.urls.small or self.urls.big or self.urls.medium

    def all_urls(self) -> list[str]:
        """Distinct variant URLs, small first."""
        seen: list[str] = []
        for size in VARIANT_SIZES:
            url = getattr(self.urls, size)
            if url and url not in seen:
                seen.append(url)
        return seen


def normalize_image(raw: Any) -> ImageVariantSet | None:
    """
    Migrate one stored image entry to the canonical shape.

    Returns None for entries that carry no usable URL.
    """
    if isinstance(raw, ImageVariantSet):
        return raw

    if isinstance(raw, str):
        raw = raw.strip()
        if not raw:
            return None
        # Only one resolution ever existed for bare URLs
        return ImageVariantSet(name="", urls=VariantUrls(big=raw))

    if isinstance(raw, dict):
        name = raw.get("name") or ""
        if isinstance(raw.get("urls"), dict):
            urls = VariantUrls(**raw["urls"])
        else:
            urls = VariantUrls(
                small=raw.get("small"),
                medium=raw.get("medium"),
                big=raw.get("big"),
            )
        if not (urls.small or urls.medium or urls.big):
            return None
        return ImageVariantSet(name=name, urls=urls)

    logger.warning("Dropping unrecognized image entry of type %s", type(raw).__name__)
    return None


def normalize_images(raw_images: Any) -> list[ImageVariantSet]:
    """Normalize a stored image list, preserving order and dropping empties."""
    if not raw_images:
        return []
    result: list[ImageVariantSet] = []
    for raw in raw_images:
        image = normalize_image(raw)
        if image is not None:
            result.append(image)
    return result


def dump_images(images: list[ImageVariantSet]) -> list[dict[str, Any]]:
    """Serialize canonical image sets for storage in the products.images column."""
    return [image.model_dump() for image in images]
