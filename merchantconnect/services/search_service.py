# merchantconnect/services/search_service.py
import logging
from typing import Awaitable, Callable, Iterable

from merchantconnect.schemas.product import ProductRead
from merchantconnect.services.catalog_store import visible_products

logger = logging.getLogger(__name__)

RemoteSearch = Callable[[str], Awaitable[list[ProductRead]]]


def tokenize(query: str) -> list[str]:
    """Lower-case and split on whitespace."""
    return query.strip().lower().split()


def matches(product: ProductRead, tokens: list[str]) -> bool:
    """True if ANY token is a substring of name + description (case-insensitive)."""
    haystack = f"{product.name or ''} {product.description or ''}".lower()
    return any(token in haystack for token in tokens)


def filter_local(products: Iterable[ProductRead], query: str) -> list[ProductRead]:
    """
    OR-of-substrings filter. An empty query returns the list unfiltered.
    """
    tokens = tokenize(query)
    if not tokens:
        return list(products)
    return [p for p in products if matches(p, tokens)]


class SearchState:
    """
    Search box state of one feed.

    - Typing (`edit`) filters locally and discards remote results.
    - Committing (`commit`) runs the remote full scan; its results replace
      local filtering until the text is edited or cleared.
    """

    def __init__(self):
        self.text = ""
        self.remote_results: list[ProductRead] | None = None
        self.pending = False

    @property
    def query(self) -> str:
        return self.text.strip()

    @property
    def is_active(self) -> bool:
        """A search (local match or remote) is currently narrowing the feed."""
        return self.remote_results is not None or bool(self.query)

    def edit(self, text: str) -> None:
        self.text = text
        if self.remote_results is not None:
            self.remote_results = None

    def clear(self) -> None:
        self.edit("")

    async def commit(self, remote_search: RemoteSearch) -> None:
        """
        Run the remote search for the current text.

        An empty query just clears remote results. Failures are logged and
        leave the previous (local) view in place. A search that resolves
        after the text was cleared is discarded; otherwise the latest
        resolution wins.
        """
        query = self.query
        if not query:
            self.remote_results = None
            self.pending = False
            return

        self.pending = True
        self.remote_results = None
        try:
            results = await remote_search(query)
            if self.query:
                self.remote_results = results
        except Exception as e:
            logger.error("Search failed for %r: %s", query, e)
            raise
        finally:
            self.pending = False

    def displayed(self, products: list[ProductRead], is_admin: bool) -> list[ProductRead]:
        """The list the grid renders, with the hidden rule applied to every path."""
        if self.remote_results is not None:
            return visible_products(self.remote_results, is_admin)
        visible = visible_products(products, is_admin)
        if self.query:
            return filter_local(visible, self.query)
        return visible
