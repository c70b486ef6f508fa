# merchantconnect/repositories/config_repo.py
from typing import Any

from sqlmodel import Session, select

from merchantconnect.models.config import ConfigDocument


class ConfigRepository:
    """Data access layer for the configs collection."""

    def get(self, session: Session, doc_id: str) -> ConfigDocument | None:
        return session.get(ConfigDocument, doc_id)

    def list_ids(self, session: Session) -> list[str]:
        return list(session.exec(select(ConfigDocument.id)).all())

    def replace(
        self,
        session: Session,
        doc_id: str,
        data: dict[str, Any],
    ) -> ConfigDocument:
        """Overwrite the whole document (no merge)."""
        doc = session.get(ConfigDocument, doc_id)
        if doc is None:
            doc = ConfigDocument(id=doc_id, data=data)
        else:
            doc.data = data
        session.add(doc)
        session.commit()
        session.refresh(doc)
        return doc
