# merchantconnect/services/storage_cleanup.py
import logging

from merchantconnect.core.storage_utils import BlobStore
from merchantconnect.schemas.admin import CleanupResult, CleanupScan

logger = logging.getLogger(__name__)

PRODUCTS_PREFIX = "products"


class StorageCleanupService:
    """Find and delete products/<id> folders whose product no longer exists."""

    def __init__(self, blob_store: BlobStore):
        self.blob_store = blob_store

    async def scan(self, product_ids: list[str]) -> CleanupScan:
        listing = await self.blob_store.list(PRODUCTS_PREFIX)
        known = set(product_ids)
        unused = [folder for folder in listing.subfolders if folder not in known]
        for folder in unused:
            logger.info("Unused folder found: %s", folder)
        return CleanupScan(
            product_count=len(product_ids),
            folder_count=len(listing.subfolders),
            unused_folders=unused,
        )

    async def delete_folder(self, folder: str) -> None:
        """Delete every object below products/<folder>, recursively."""
        prefix = f"{PRODUCTS_PREFIX}/{folder}"
        listing = await self.blob_store.list(prefix)
        for item in listing.items:
            await self.blob_store.delete_path(f"{prefix}/{item}")
        for sub in listing.subfolders:
            await self.delete_folder(f"{folder}/{sub}")

    async def delete_unused(self, folders: list[str], product_ids: list[str]) -> CleanupResult:
        """
        Delete the given folders, one at a time. Folders that belong to a
        live product are refused; any failure is reported per folder.
        """
        known = set(product_ids)
        result = CleanupResult()
        for folder in folders:
            if not folder or "/" in folder or folder in (".", ".."):
                result.failed[folder] = "Invalid folder name"
                continue
            if folder in known:
                result.failed[folder] = "Folder belongs to an existing product"
                continue
            try:
                await self.delete_folder(folder)
            except Exception as e:
                logger.error("Failed to delete folder %s: %s", folder, e)
                result.failed[folder] = str(e)
                continue
            result.deleted.append(folder)
        logger.info(
            "Storage cleanup: %d deleted, %d failed", len(result.deleted), len(result.failed)
        )
        return result
