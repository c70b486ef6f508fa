# merchantconnect/routers/products.py
import logging
from contextlib import contextmanager

from fastapi import (
    APIRouter,
    Depends,
    File,
    HTTPException,
    UploadFile,
    status,
)
from sqlmodel import Session
from starlette.concurrency import run_in_threadpool

from merchantconnect.core.auth import (
    AuthorizationService,
    Identity,
    get_authorization,
    get_current_identity,
    require_admin,
)
from merchantconnect.core.context import ServiceContext, get_service_context
from merchantconnect.database import get_session
from merchantconnect.schemas.product import (
    MoveImageRequest,
    ProductFormRead,
    ProductFormUpdate,
    ProductRead,
)
from merchantconnect.services.catalog_store import visible_products
from merchantconnect.services.image_variants import (
    ImageVariantError,
    VariantUploadError,
    delete_variant_set,
)
from merchantconnect.services.product_form import (
    FormClosedError,
    FormNotFoundError,
    FormStateError,
    FormValidationError,
    ImageDeleteNotConfirmedError,
    ProductForm,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/products", tags=["Products"])

ALLOWED_IMAGE_TYPES = {"image/jpeg", "image/png", "image/webp", "image/gif"}


@contextmanager
def form_errors():
    """Map admin form errors to HTTP errors."""
    try:
        yield
    except FormNotFoundError:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="No open form for this product",
        )
    except FormClosedError as e:
        raise HTTPException(status_code=status.HTTP_410_GONE, detail=str(e))
    except FormStateError as e:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(e))
    except FormValidationError as e:
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=str(e)
        )
    except ImageDeleteNotConfirmedError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))
    except IndexError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))
    except ImageVariantError as e:
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=str(e)
        )
    except VariantUploadError as e:
        raise HTTPException(status_code=status.HTTP_502_BAD_GATEWAY, detail=str(e))


def get_form(
    product_id: str,
    ctx: ServiceContext = Depends(get_service_context),
) -> ProductForm:
    with form_errors():
        return ctx.product_forms.get(product_id)


# -------- Public endpoints --------


@router.get("", response_model=list[ProductRead])
def list_products(
    include_hidden: bool = False,
    session: Session = Depends(get_session),
    identity: Identity | None = Depends(get_current_identity),
    authz: AuthorizationService = Depends(get_authorization),
    ctx: ServiceContext = Depends(get_service_context),
):
    """
    List products, newest first.

    - Public endpoint.
    - Hidden products are only included for admins passing
      `include_hidden=true`.
    """
    is_admin = include_hidden and authz.is_admin(identity)
    return ctx.product_service.list_products(session, is_admin=is_admin)


@router.get("/search", response_model=list[ProductRead])
def search_products(
    q: str = "",
    include_hidden: bool = False,
    session: Session = Depends(get_session),
    identity: Identity | None = Depends(get_current_identity),
    authz: AuthorizationService = Depends(get_authorization),
    ctx: ServiceContext = Depends(get_service_context),
):
    """
    Full-scan search: products whose name or description contains ANY
    word of `q` (case-insensitive), newest first.
    """
    results = ctx.product_service.search_products(session, q)
    return visible_products(results, include_hidden and authz.is_admin(identity))


@router.get("/{product_id}", response_model=ProductRead)
def get_product(
    product_id: str,
    session: Session = Depends(get_session),
    identity: Identity | None = Depends(get_current_identity),
    authz: AuthorizationService = Depends(get_authorization),
    ctx: ServiceContext = Depends(get_service_context),
):
    """
    Get a single product by id.

    - Public endpoint; hidden products are 404 for non-admins.
    """
    return ctx.product_service.get_product(
        session, product_id, is_admin=authz.is_admin(identity)
    )


# -------- Admin endpoints --------


@router.delete(
    "/{product_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    dependencies=[Depends(require_admin)],
)
async def delete_product(
    product_id: str,
    session: Session = Depends(get_session),
    ctx: ServiceContext = Depends(get_service_context),
):
    """
    Delete a product and its image variants (admin only).

    - Images outside the managed bucket are left alone.
    """
    product = await run_in_threadpool(
        ctx.product_service.delete_product, session, product_id
    )
    for image in product.images:
        try:
            await delete_variant_set(ctx.blob_store, image)
        except Exception as e:
            logger.error("Could not delete image of product %s: %s", product_id, e)
    return None


# -------- Admin edit forms --------


@router.post(
    "/forms",
    response_model=ProductFormRead,
    status_code=status.HTTP_201_CREATED,
    dependencies=[Depends(require_admin)],
)
async def open_new_product_form(
    ctx: ServiceContext = Depends(get_service_context),
):
    """
    Start a new product (admin only).

    An empty product record is created right away; closing the form
    without saving deletes it again.
    """
    form = await ctx.product_forms.open_new()
    return form.to_read()


@router.post(
    "/{product_id}/form",
    response_model=ProductFormRead,
    dependencies=[Depends(require_admin)],
)
async def open_product_form(
    product_id: str,
    ctx: ServiceContext = Depends(get_service_context),
):
    """Open (or return the already open) edit form of a product."""
    form = await ctx.product_forms.open(product_id)
    return form.to_read()


@router.get(
    "/forms/{product_id}",
    response_model=ProductFormRead,
    dependencies=[Depends(require_admin)],
)
def read_product_form(form: ProductForm = Depends(get_form)):
    """Current form values; poll while `analyzing` is true."""
    return form.to_read()


@router.patch(
    "/forms/{product_id}",
    response_model=ProductFormRead,
    dependencies=[Depends(require_admin)],
)
def update_product_form(
    payload: ProductFormUpdate,
    form: ProductForm = Depends(get_form),
):
    """Edit form fields. Nothing is written until save."""
    with form_errors():
        form.update_fields(payload)
    return form.to_read()


@router.post(
    "/forms/{product_id}/images",
    response_model=ProductFormRead,
    dependencies=[Depends(require_admin)],
    summary="Upload one image (resized to small/medium/big variants)",
)
async def add_form_image(
    file: UploadFile = File(...),
    form: ProductForm = Depends(get_form),
):
    """
    Add an image to the product.

    - The three variants are uploaded, then the image list is saved.
    - The first image of an unnamed product triggers name/description/
      price suggestions in the background.
    """
    if file.content_type not in ALLOWED_IMAGE_TYPES:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Unsupported image type",
        )

    data = await file.read()
    with form_errors():
        await form.add_image(file.filename or "image.jpg", data, file.content_type)
    return form.to_read()


@router.post(
    "/forms/{product_id}/images/move",
    response_model=ProductFormRead,
    dependencies=[Depends(require_admin)],
)
async def move_form_image(
    payload: MoveImageRequest,
    form: ProductForm = Depends(get_form),
):
    """Reorder images; the new order is saved immediately."""
    with form_errors():
        await form.move_image(payload.from_index, payload.to_index)
    return form.to_read()


@router.delete(
    "/forms/{product_id}/images/{index}",
    response_model=ProductFormRead,
    dependencies=[Depends(require_admin)],
)
async def delete_form_image(
    index: int,
    confirm: bool = False,
    form: ProductForm = Depends(get_form),
):
    """
    Delete one image and its stored variants.

    - Requires `confirm=true`.
    """
    with form_errors():
        await form.delete_image(index, confirmed=confirm)
    return form.to_read()


@router.post(
    "/forms/{product_id}/save",
    response_model=ProductRead,
    dependencies=[Depends(require_admin)],
)
async def save_product_form(
    product_id: str,
    form: ProductForm = Depends(get_form),
    ctx: ServiceContext = Depends(get_service_context),
):
    """Validate and save the product, then close the form."""
    with form_errors():
        product = await form.save()
        await ctx.product_forms.close(product_id)
    return product


@router.delete(
    "/forms/{product_id}",
    dependencies=[Depends(require_admin)],
)
async def close_product_form(
    product_id: str,
    ctx: ServiceContext = Depends(get_service_context),
) -> dict[str, str]:
    """
    Close a form without saving (cancel).

    - A new product that was never saved is deleted with its images.
    """
    with form_errors():
        outcome = await ctx.product_forms.close(product_id)
    return {"outcome": outcome.value}
