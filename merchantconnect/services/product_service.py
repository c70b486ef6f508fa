# merchantconnect/services/product_service.py
import logging
from typing import Any, Callable, TypeVar

from fastapi import HTTPException, status
from sqlalchemy.engine import Engine
from sqlmodel import Session
from starlette.concurrency import run_in_threadpool

from merchantconnect.models.product import Product, now_ms
from merchantconnect.repositories.product_repo import ProductRepository
from merchantconnect.schemas.image import ImageVariantSet, dump_images
from merchantconnect.schemas.product import ProductRead
from merchantconnect.services.catalog_store import (
    CatalogFeed,
    normalize_product,
    sort_newest_first,
    visible_products,
)
from merchantconnect.services.search_service import matches, tokenize

logger = logging.getLogger(__name__)

T = TypeVar("T")


class ProductService:
    """
    Business logic for the products collection.

    Responsibilities:
      - read models (normalized, newest first, hidden rule)
      - remote full-scan search
      - optimistic placeholder creation for the admin form
      - publishing a fresh snapshot to the catalog feed after every write
    """

    def __init__(self, repo: ProductRepository, feed: CatalogFeed):
        self.repo = repo
        self.feed = feed

    # ----- Helpers -----

    def publish(self, session: Session) -> None:
        self.feed.publish(self.repo.list_all(session))

    def _get_row(self, session: Session, product_id: str) -> Product:
        product = self.repo.get_by_id(session, product_id)
        if not product:
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND,
                detail="Product not found",
            )
        return product

    # ----- Reads -----

    def list_products(self, session: Session, is_admin: bool = False) -> list[ProductRead]:
        products = sort_newest_first(
            [normalize_product(p) for p in self.repo.list_all(session)]
        )
        return visible_products(products, is_admin)

    def get_product(
        self,
        session: Session,
        product_id: str,
        is_admin: bool = False,
    ) -> ProductRead:
        product = normalize_product(self._get_row(session, product_id))
        if product.hidden and not is_admin:
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND,
                detail="Product not found",
            )
        return product

    def search_products(self, session: Session, query: str) -> list[ProductRead]:
        """
        Fetch the whole collection, keep products matching ANY token in
        name/description, newest first. An empty query returns [].

        The hidden rule is applied by the caller.
        """
        tokens = tokenize(query)
        if not tokens:
            return []
        results = [
            p
            for p in (normalize_product(row) for row in self.repo.list_all(session))
            if matches(p, tokens)
        ]
        return sort_newest_first(results)

    def list_product_ids(self, session: Session) -> list[str]:
        return self.repo.list_ids(session)

    # ----- Writes -----

    def create_placeholder(self, session: Session) -> ProductRead:
        """
        Create an empty product record for the admin form to edit.

        The record exists before the form is saved; closing the form
        without saving must delete it again.
        """
        product = self.repo.create(
            session,
            Product(
                name="",
                description="",
                wholesale_price=0,
                retail_price=0,
                images=[],
                created_at=now_ms(),
            ),
        )
        logger.info("Created placeholder product %s", product.id)
        self.publish(session)
        return normalize_product(product)

    def update_product(
        self,
        session: Session,
        product_id: str,
        data: dict[str, Any],
    ) -> ProductRead:
        """Partial write of product fields."""
        product = self._get_row(session, product_id)
        product = self.repo.update_fields(session, product, data)
        self.publish(session)
        return normalize_product(product)

    def set_images(
        self,
        session: Session,
        product_id: str,
        images: list[ImageVariantSet],
    ) -> ProductRead:
        """Persist the image list (order included) immediately."""
        return self.update_product(session, product_id, {"images": dump_images(images)})

    def delete_product(self, session: Session, product_id: str) -> ProductRead:
        """
        Delete the product record and return what it held, so callers can
        clean up its image blobs.
        """
        product = self._get_row(session, product_id)
        snapshot = normalize_product(product)
        self.repo.delete(session, product)
        logger.info("Deleted product %s", product_id)
        self.publish(session)
        return snapshot


class CatalogWriter:
    """
    Async facade over ProductService for long-lived workflows (admin
    forms, batch tools) that outlive a single request. Every call opens
    its own session on a worker thread.
    """

    def __init__(self, service: ProductService, engine: Engine):
        self.service = service
        self.engine = engine

    def _with_session(self, fn: Callable[..., T], *args: Any) -> T:
        with Session(self.engine) as session:
            return fn(session, *args)

    async def _call(self, fn: Callable[..., T], *args: Any) -> T:
        return await run_in_threadpool(self._with_session, fn, *args)

    async def get_product(self, product_id: str) -> ProductRead:
        return await self._call(self.service.get_product, product_id, True)

    async def create_placeholder(self) -> ProductRead:
        return await self._call(self.service.create_placeholder)

    async def update_product(self, product_id: str, data: dict[str, Any]) -> ProductRead:
        return await self._call(self.service.update_product, product_id, data)

    async def set_images(self, product_id: str, images: list[ImageVariantSet]) -> ProductRead:
        return await self._call(self.service.set_images, product_id, images)

    async def delete_product(self, product_id: str) -> ProductRead:
        return await self._call(self.service.delete_product, product_id)

    async def search_products(self, query: str) -> list[ProductRead]:
        return await self._call(self.service.search_products, query)

    async def list_product_ids(self) -> list[str]:
        return await self._call(self.service.list_product_ids)
