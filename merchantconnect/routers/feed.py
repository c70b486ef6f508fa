# merchantconnect/routers/feed.py
import logging
import uuid

from fastapi import APIRouter, Depends, Header, HTTPException, status
from sqlmodel import Session

from merchantconnect.core.auth import (
    AuthorizationService,
    Identity,
    get_authorization,
    get_current_identity,
    require_auth,
)
from merchantconnect.core.context import ServiceContext, get_service_context
from merchantconnect.database import get_session
from merchantconnect.schemas.feed import (
    FeedRead,
    QueryRequest,
    SelectionRequest,
    ViewportRequest,
    ViewRequest,
)
from merchantconnect.schemas.user import InquiryRequest, InquiryResponse
from merchantconnect.services.feed_session import FeedSession, UnknownProductError
from merchantconnect.services.view_state import ViewNotAllowedError

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/feed", tags=["Feed"])

GUEST_PREFIX = "guest:"


def viewer_key(
    identity: Identity | None = Depends(get_current_identity),
    x_feed_session: str | None = Header(default=None),
) -> str:
    """
    Signed-in viewers are keyed by email. Guests are keyed by the
    X-Feed-Session header; a new id is issued when it is missing.
    """
    if identity is not None:
        return identity.email
    return f"{GUEST_PREFIX}{x_feed_session or uuid.uuid4().hex}"


def get_feed(
    width: int | None = None,
    key: str = Depends(viewer_key),
    identity: Identity | None = Depends(get_current_identity),
    authz: AuthorizationService = Depends(get_authorization),
    ctx: ServiceContext = Depends(get_service_context),
) -> FeedSession:
    """
    The caller's feed session, with the latest auth and allow-list
    results applied.
    """
    feed = ctx.feed_sessions.get(key)
    if feed is None:
        feed = ctx.feed_sessions.get_or_create(key, width or 1024)
    elif width is not None:
        feed.resize(width)
    feed.resolve(identity, authz.is_admin(identity))
    return feed


def to_feed_read(feed: FeedSession, ctx: ServiceContext) -> FeedRead:
    return FeedRead(
        session_id=feed.key.removeprefix(GUEST_PREFIX),
        view=feed.view.state,
        is_admin=feed.view.is_admin,
        loaded=ctx.catalog_store.loaded,
        columns=feed.window.columns,
        visible_count=feed.window.visible_count,
        total=len(feed.displayed),
        sentinel_root_margin_px=ctx.settings.SENTINEL_ROOT_MARGIN_PX,
        items=feed.visible_items,
        query=feed.search.text,
        search_active=feed.search.is_active,
        search_pending=feed.search.pending,
        remote_results=feed.search.remote_results is not None,
        selection=feed.ledger.entries,
        selected_count=feed.selected_count,
        selected_total=feed.selected_total,
    )


@router.get("", response_model=FeedRead)
def read_feed(
    feed: FeedSession = Depends(get_feed),
    ctx: ServiceContext = Depends(get_service_context),
):
    """
    Current feed state for the caller.

    Auth:
      - Optional. Guests should echo `session_id` back in X-Feed-Session.
    """
    return to_feed_read(feed, ctx)


@router.post("/reload", response_model=FeedRead)
def reload_feed(
    width: int = 1024,
    key: str = Depends(viewer_key),
    identity: Identity | None = Depends(get_current_identity),
    authz: AuthorizationService = Depends(get_authorization),
    ctx: ServiceContext = Depends(get_service_context),
):
    """
    Start the caller's feed over (a page reload). The last chosen view
    is restored once auth and the allow-list resolve.
    """
    feed = ctx.feed_sessions.reload(key, width)
    feed.resolve(identity, authz.is_admin(identity))
    return to_feed_read(feed, ctx)


@router.post("/viewport", response_model=FeedRead)
def set_viewport(
    payload: ViewportRequest,
    feed: FeedSession = Depends(get_feed),
    ctx: ServiceContext = Depends(get_service_context),
):
    """Report a viewport width change."""
    feed.resize(payload.width)
    return to_feed_read(feed, ctx)


@router.post("/more", response_model=FeedRead)
def load_more(
    feed: FeedSession = Depends(get_feed),
    ctx: ServiceContext = Depends(get_service_context),
):
    """The sentinel after the grid became visible: reveal one more batch."""
    feed.load_more()
    return to_feed_read(feed, ctx)


@router.post("/query", response_model=FeedRead)
def edit_query(
    payload: QueryRequest,
    feed: FeedSession = Depends(get_feed),
    ctx: ServiceContext = Depends(get_service_context),
):
    """Search box edit: local filtering, remote results discarded."""
    feed.set_query(payload.text)
    return to_feed_read(feed, ctx)


@router.post("/search", response_model=FeedRead)
async def commit_search(
    feed: FeedSession = Depends(get_feed),
    ctx: ServiceContext = Depends(get_service_context),
):
    """
    Commit the current query: full remote scan, results replace local
    filtering until the query is edited or cleared.
    """
    try:
        await feed.commit_search(ctx.catalog_writer.search_products)
    except Exception:
        raise HTTPException(
            status_code=status.HTTP_502_BAD_GATEWAY,
            detail="Search failed, please retry",
        )
    return to_feed_read(feed, ctx)


@router.post("/selection", response_model=FeedRead)
def select_product(
    payload: SelectionRequest,
    feed: FeedSession = Depends(get_feed),
    ctx: ServiceContext = Depends(get_service_context),
):
    """
    Toggle a product or set its quantity.

    Quantities are clamped to [0, MAX_SELECT_QUANTITY]; out-of-stock
    products can't be selected.
    """
    try:
        feed.select(payload.product_id, payload.quantity)
    except UnknownProductError:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Product not found",
        )
    except ViewNotAllowedError as e:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(e))
    return to_feed_read(feed, ctx)


@router.delete("/selection", response_model=FeedRead)
def clear_selection(
    feed: FeedSession = Depends(get_feed),
    ctx: ServiceContext = Depends(get_service_context),
):
    feed.clear_selection()
    return to_feed_read(feed, ctx)


@router.post("/view", response_model=FeedRead)
def switch_view(
    payload: ViewRequest,
    feed: FeedSession = Depends(get_feed),
    ctx: ServiceContext = Depends(get_service_context),
):
    """
    Switch between FEED and ADMIN_DASHBOARD.

    Raises:
      - 403 if the caller is not on the admin allow-list.
    """
    try:
        feed.switch_view(payload.view)
    except ViewNotAllowedError as e:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail=str(e))
    return to_feed_read(feed, ctx)


@router.post("/inquiry", response_model=InquiryResponse)
async def submit_inquiry(
    payload: InquiryRequest,
    feed: FeedSession = Depends(get_feed),
    identity: Identity = Depends(require_auth),
    session: Session = Depends(get_session),
    ctx: ServiceContext = Depends(get_service_context),
):
    """
    "I'm interested": save the merchant's contact details and draft the
    email to the supplier for the currently selected products.

    Auth:
      - Requires valid Supabase JWT.
    """
    return await ctx.inquiry_service.submit(
        session, identity, payload, feed.selected_products()
    )
