# merchantconnect/core/storage_utils.py
import asyncio
import logging
from dataclasses import dataclass, field
from urllib.parse import unquote

from supabase import Client

logger = logging.getLogger(__name__)

LIST_PAGE_SIZE = 100


@dataclass
class StorageListing:
    """Result of listing one storage "folder" (objects + direct subfolders)."""

    items: list[str] = field(default_factory=list)
    subfolders: list[str] = field(default_factory=list)


class BlobStore:
    """
    Product image storage on top of a Supabase Storage bucket.

    All methods are coroutines; the Supabase client is synchronous so every
    call is pushed to a worker thread.

    Path conventions:
      - products/<product_id>/<ms>_<stem>_<size><ext>
      - newupload/<first_file_stem>/<ms>_<filename>
    """

    def __init__(self, client: Client, bucket: str = "assets"):
        self.client = client
        self.bucket = bucket

    @property
    def _marker(self) -> str:
        return f"/storage/v1/object/public/{self.bucket}/"

    def _upload_sync(self, path: str, data: bytes, content_type: str) -> str:
        storage = self.client.storage.from_(self.bucket)
        storage.upload(path, data, {"content-type": content_type, "upsert": "true"})
        return storage.get_public_url(path)

    async def upload(
        self,
        path: str,
        data: bytes,
        content_type: str = "image/jpeg",
    ) -> str:
        """
        Upload raw bytes and return the public URL.

        If a file already exists at this path, it will be overwritten
        thanks to the 'upsert' option.

        Raises:
            Any exception raised by Supabase client if upload fails.
        """
        url = await asyncio.to_thread(self._upload_sync, path, data, content_type)
        logger.info("Uploaded %s (%d bytes)", path, len(data))
        return url

    def extract_path_from_public_url(self, url: str) -> str | None:
        """
        Given a public URL, extract the object path relative to the bucket.

        Example:
            https://<proj>.supabase.co/storage/v1/object/public/assets/products/p/a.jpg
            -> 'products/p/a.jpg'
        """
        idx = url.find(self._marker)
        if idx == -1:
            return None
        path = url[idx + len(self._marker) :]
        # Drop cache-busting query strings
        path = path.split("?", 1)[0]
        return unquote(path) or None

    def is_managed(self, url: str) -> bool:
        return self.extract_path_from_public_url(url) is not None

    async def delete_path(self, path: str) -> None:
        """Delete a file by its object path (relative to bucket)."""
        # Supabase Python client expects a list of paths.
        await asyncio.to_thread(
            self.client.storage.from_(self.bucket).remove, [path]
        )
        logger.info("Deleted %s", path)

    async def delete(self, url: str) -> bool:
        """
        Delete a file by its public URL.

        No-op if the URL does not belong to this bucket.

        Returns:
            True if a delete was issued, False for foreign URLs.
        """
        path = self.extract_path_from_public_url(url)
        if not path:
            logger.debug("Skipping delete for unmanaged URL %s", url)
            return False
        await self.delete_path(path)
        return True

    def _list_all_sync(self, prefix: str) -> list[dict]:
        # Storage list calls return at most `limit` entries per page.
        storage = self.client.storage.from_(self.bucket)
        entries: list[dict] = []
        offset = 0
        while True:
            page = storage.list(
                prefix,
                {
                    "limit": LIST_PAGE_SIZE,
                    "offset": offset,
                    "sortBy": {"column": "name", "order": "asc"},
                },
            ) or []
            entries.extend(page)
            if len(page) < LIST_PAGE_SIZE:
                return entries
            offset += LIST_PAGE_SIZE

    async def list(self, prefix: str) -> StorageListing:
        """
        List all direct children of a folder, following pages until a
        short one comes back.

        Supabase returns folders as entries without an `id`.
        """
        entries = await asyncio.to_thread(self._list_all_sync, prefix)
        listing = StorageListing()
        for entry in entries or []:
            name = entry.get("name")
            if not name or name == ".emptyFolderPlaceholder":
                continue
            if entry.get("id") is None:
                listing.subfolders.append(name)
            else:
                listing.items.append(name)
        return listing
