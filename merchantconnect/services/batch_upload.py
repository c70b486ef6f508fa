# merchantconnect/services/batch_upload.py
import copy
import json
import logging
import os
from dataclasses import dataclass
from typing import Any

from fastapi import HTTPException, status

from merchantconnect.core.storage_utils import BlobStore
from merchantconnect.models.product import now_ms
from merchantconnect.schemas.admin import BatchUploadResult

logger = logging.getLogger(__name__)

PROMPTS_CONFIG_DOC = "function1"
ALLOWED_CONTENT_TYPES = {"image/png", "image/jpeg"}


@dataclass
class UploadedFile:
    filename: str
    content_type: str
    data: bytes


def batch_folder(first_filename: str) -> str:
    """'front-01.final.png' -> 'newupload/front-01'."""
    stem = os.path.basename(first_filename).split(".")[0]
    return f"newupload/{stem}"


def toggle_prompts(
    prompts: list[dict[str, Any]],
    include_front: bool,
    include_back: bool,
) -> list[dict[str, Any]]:
    """
    Copy of the configured prompts with the "front"/"back" prompts
    disabled unless requested. The stored config is never modified.
    """
    result = copy.deepcopy(prompts)
    for name, include in (("front", include_front), ("back", include_back)):
        if include:
            continue
        for prompt in result:
            if str(prompt.get("name", "")).lower() == name:
                prompt["enabled"] = False
                break
    return result


class BatchUploadService:
    """
    Raw image drop for downstream processing.

    Files land in newupload/<first file stem>/<ms>_<name>, preceded by a
    prompts.json built from the function1 config document.
    """

    def __init__(self, blob_store: BlobStore):
        self.blob_store = blob_store

    async def _upload_prompts(
        self,
        folder: str,
        config: dict[str, Any] | None,
        include_front: bool,
        include_back: bool,
    ) -> bool:
        prompts = (config or {}).get("prompts")
        if not prompts:
            logger.warning("No prompts configured in %s; skipping prompts.json", PROMPTS_CONFIG_DOC)
            return False
        try:
            payload = json.dumps(
                toggle_prompts(prompts, include_front, include_back), indent=2
            ).encode("utf-8")
            await self.blob_store.upload(
                f"{folder}/prompts.json", payload, content_type="application/json"
            )
        except Exception as e:
            logger.warning("Could not upload prompts.json to %s: %s", folder, e)
            return False
        return True

    async def upload(
        self,
        files: list[UploadedFile],
        prompts_config: dict[str, Any] | None,
        include_front: bool = True,
        include_back: bool = False,
    ) -> BatchUploadResult:
        """
        Upload the batch in order.

        Non PNG/JPEG files are ignored. A failed prompts.json upload is
        logged and does not stop the batch; a failed image upload does.
        """
        files = [f for f in files if f.content_type in ALLOWED_CONTENT_TYPES]
        if not files:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="No PNG or JPEG files to upload",
            )

        folder = batch_folder(files[0].filename)
        prompts_uploaded = await self._upload_prompts(
            folder, prompts_config, include_front, include_back
        )

        urls: list[str] = []
        for f in files:
            path = f"{folder}/{now_ms()}_{os.path.basename(f.filename)}"
            urls.append(await self.blob_store.upload(path, f.data, content_type=f.content_type))

        logger.info("Batch upload of %d files to %s", len(urls), folder)
        return BatchUploadResult(folder=folder, urls=urls, prompts_uploaded=prompts_uploaded)
