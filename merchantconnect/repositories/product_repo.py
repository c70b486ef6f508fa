# merchantconnect/repositories/product_repo.py
from typing import Any

from sqlmodel import Session, select

from merchantconnect.models.product import Product


class ProductRepository:
    """
    Data access layer for the products collection.

    - Pure DB operations (CRUD + queries).
    - No FastAPI, no business logic.
    """

    def get_by_id(self, session: Session, product_id: str) -> Product | None:
        return session.get(Product, product_id)

    def list_all(self, session: Session) -> list[Product]:
        """Full collection scan (no ordering; callers sort)."""
        return list(session.exec(select(Product)).all())

    def list_ids(self, session: Session) -> list[str]:
        return list(session.exec(select(Product.id)).all())

    def create(self, session: Session, product: Product) -> Product:
        session.add(product)
        session.commit()
        session.refresh(product)
        return product

    def update(self, session: Session, product: Product) -> Product:
        session.add(product)
        session.commit()
        session.refresh(product)
        return product

    def update_fields(
        self,
        session: Session,
        product: Product,
        data: dict[str, Any],
    ) -> Product:
        """Partial write: only the given fields change."""
        for key, value in data.items():
            setattr(product, key, value)
        return self.update(session, product)

    def delete(self, session: Session, product: Product) -> None:
        session.delete(product)
        session.commit()
