# merchantconnect/routers/admin.py
from fastapi import APIRouter, Depends, File, Form, UploadFile
from sqlmodel import Session
from starlette.concurrency import run_in_threadpool

from merchantconnect.core.auth import require_admin
from merchantconnect.core.context import ServiceContext, get_service_context
from merchantconnect.database import get_session
from merchantconnect.repositories.config_repo import ConfigRepository
from merchantconnect.schemas.admin import (
    BatchUploadResult,
    CleanupRequest,
    CleanupResult,
    CleanupScan,
)
from merchantconnect.services.batch_upload import PROMPTS_CONFIG_DOC, UploadedFile

router = APIRouter(
    prefix="/admin",
    tags=["Admin"],
    dependencies=[Depends(require_admin)],
)

config_repo = ConfigRepository()


# -------- Storage cleanup --------


@router.get("/storage/cleanup", response_model=CleanupScan)
async def scan_storage(ctx: ServiceContext = Depends(get_service_context)):
    """
    Find products/<folder> entries in storage with no matching product
    (admin only). Nothing is deleted.
    """
    product_ids = await ctx.catalog_writer.list_product_ids()
    return await ctx.storage_cleanup.scan(product_ids)


@router.post("/storage/cleanup", response_model=CleanupResult)
async def delete_unused_folders(
    payload: CleanupRequest,
    ctx: ServiceContext = Depends(get_service_context),
):
    """
    Delete the given unused folders recursively (admin only).

    Folders that belong to an existing product are refused; failures are
    reported per folder.
    """
    product_ids = await ctx.catalog_writer.list_product_ids()
    return await ctx.storage_cleanup.delete_unused(payload.folders, product_ids)


# -------- Batch upload --------


@router.post("/batch-upload", response_model=BatchUploadResult)
async def batch_upload(
    files: list[UploadFile] = File(...),
    include_front: bool = Form(True),
    include_back: bool = Form(False),
    session: Session = Depends(get_session),
    ctx: ServiceContext = Depends(get_service_context),
):
    """
    Upload PNG/JPEG files to newupload/<first file name>/ (admin only).

    A prompts.json derived from the `function1` config is written first,
    with the "front"/"back" prompts toggled by the form flags.
    """
    doc = await run_in_threadpool(config_repo.get, session, PROMPTS_CONFIG_DOC)
    payload = [
        UploadedFile(
            filename=f.filename or "upload",
            content_type=f.content_type or "",
            data=await f.read(),
        )
        for f in files
    ]
    return await ctx.batch_upload.upload(
        payload,
        doc.data if doc else None,
        include_front=include_front,
        include_back=include_back,
    )
