# merchantconnect/schemas/config.py
from typing import Any

from sqlmodel import SQLModel


class ConfigRead(SQLModel):
    id: str
    data: dict[str, Any]


class ConfigWrite(SQLModel):
    """Full replacement of a config document (no merge)."""

    data: dict[str, Any]
