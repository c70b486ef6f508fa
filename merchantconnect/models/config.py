# merchantconnect/models/config.py
from typing import Any

from sqlalchemy import Column, JSON
from sqlmodel import SQLModel, Field


class ConfigDocument(SQLModel, table=True):
    """
    Free-form configuration document, addressed by id.

    Known documents:
      - adminEmails: {"emails": [...]}  (admin allow-list)
      - function1:   {"prompts": [{"name": ..., "enabled": ...}, ...]}
    """

    __tablename__ = "configs"

    id: str = Field(primary_key=True, max_length=100)

    data: dict[str, Any] = Field(
        default_factory=dict,
        sa_column=Column(JSON, nullable=False, default=dict),
    )
