# merchantconnect/services/selection.py
from typing import Iterable, Mapping

from merchantconnect.schemas.product import ProductRead


class SelectionLedger:
    """
    Selected product -> requested quantity.

    Immutable: every change returns a new ledger. A product is selected
    iff it has an entry, and entries always hold a quantity > 0 (setting
    0 deletes the entry). Quantities are not clamped here; the quantity
    control decides the allowed range.
    """

    __slots__ = ("_entries",)

    def __init__(self, entries: Mapping[str, int] | None = None):
        self._entries: dict[str, int] = {
            pid: qty for pid, qty in (entries or {}).items() if qty > 0
        }

    def toggle(self, product_id: str, explicit_qty: int | None = None) -> "SelectionLedger":
        """
        - explicit_qty <= 0: remove the entry
        - explicit_qty > 0: set the entry to exactly that quantity
        - no explicit_qty: absent -> 1, present -> removed
        """
        entries = dict(self._entries)
        if explicit_qty is None:
            if product_id in entries:
                del entries[product_id]
            else:
                entries[product_id] = 1
        elif explicit_qty <= 0:
            entries.pop(product_id, None)
        else:
            entries[product_id] = explicit_qty
        return SelectionLedger(entries)

    def quantity(self, product_id: str) -> int:
        return self._entries.get(product_id, 0)

    def is_selected(self, product_id: str) -> bool:
        return product_id in self._entries

    @property
    def entries(self) -> dict[str, int]:
        return dict(self._entries)

    @property
    def selected_count(self) -> int:
        return sum(self._entries.values())

    def selected_total(self, products: Iterable[ProductRead]) -> float:
        """
        Sum of quantity x wholesale price.

        Entries whose product is not in `products` (deleted, unknown)
        contribute 0.
        """
        prices = {p.id: p.wholesale_price for p in products}
        return sum(
            qty * prices[pid] for pid, qty in self._entries.items() if pid in prices
        )

    def selected_products(self, products: Iterable[ProductRead]) -> list[tuple[ProductRead, int]]:
        """Resolvable entries paired with their product, in catalog order."""
        return [(p, self._entries[p.id]) for p in products if p.id in self._entries]

    def without_out_of_stock(self, products: Iterable[ProductRead]) -> "SelectionLedger":
        """Drop entries for products whose stock is 0."""
        restocking = {p.id for p in products if p.stock <= 0}
        if not restocking & self._entries.keys():
            return self
        return SelectionLedger(
            {pid: qty for pid, qty in self._entries.items() if pid not in restocking}
        )

    def __len__(self) -> int:
        return len(self._entries)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, SelectionLedger):
            return NotImplemented
        return self._entries == other._entries

    def __repr__(self) -> str:
        return f"SelectionLedger({self._entries!r})"
