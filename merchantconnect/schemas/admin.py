# merchantconnect/schemas/admin.py
from sqlmodel import SQLModel, Field


class CleanupScan(SQLModel):
    """Folders under products/ that no product id claims."""

    product_count: int
    folder_count: int
    unused_folders: list[str] = []


class CleanupRequest(SQLModel):
    folders: list[str] = Field(min_length=1)


class CleanupResult(SQLModel):
    deleted: list[str] = []
    failed: dict[str, str] = Field(
        default_factory=dict,
        description="folder -> error message",
    )


class BatchUploadResult(SQLModel):
    folder: str
    urls: list[str]
    prompts_uploaded: bool = False
