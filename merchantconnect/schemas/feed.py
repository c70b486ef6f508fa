# merchantconnect/schemas/feed.py
from pydantic import ConfigDict
from sqlmodel import SQLModel, Field

from merchantconnect.schemas.product import ProductRead
from merchantconnect.services.view_state import ViewState


class FeedRead(SQLModel):
    """
    Everything a client needs to render one viewer's feed.

    `items` is already windowed: render them all, then report the
    sentinel via POST /feed/more when it scrolls into view.
    """

    session_id: str
    view: ViewState
    is_admin: bool
    loaded: bool

    columns: int
    visible_count: int
    total: int
    sentinel_root_margin_px: int
    items: list[ProductRead]

    query: str
    search_active: bool
    search_pending: bool
    remote_results: bool

    selection: dict[str, int]
    selected_count: int
    selected_total: float


class ViewportRequest(SQLModel):
    width: int = Field(ge=0)


class QueryRequest(SQLModel):
    text: str = Field(default="", max_length=200)


class SelectionRequest(SQLModel):
    """
    quantity omitted: toggle (absent -> 1, present -> removed).
    quantity given: set it; 0 or less removes the entry.
    """

    model_config = ConfigDict(extra="forbid")

    product_id: str
    quantity: int | None = None


class ViewRequest(SQLModel):
    view: ViewState
