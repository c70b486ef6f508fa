# merchantconnect/services/render_window.py

ROWS_PER_BATCH = 2

# (min viewport width, columns), widest first
COLUMN_BREAKPOINTS: tuple[tuple[int, int], ...] = (
    (1280, 4),
    (1024, 3),
    (640, 2),
)


def columns_for_width(width: int) -> int:
    for min_width, columns in COLUMN_BREAKPOINTS:
        if width >= min_width:
            return columns
    return 1


class RenderWindow:
    """
    How many grid items are rendered.

    Grows one batch (columns x rows_per_batch) each time the sentinel
    after the grid scrolls into view, shows everything while a search is
    active, and never exceeds the number of available items.
    """

    def __init__(self, width: int = 1024, rows_per_batch: int = ROWS_PER_BATCH):
        self.rows_per_batch = rows_per_batch
        self.columns = columns_for_width(width)
        self.visible_count = self.batch

    @property
    def batch(self) -> int:
        return self.columns * self.rows_per_batch

    def on_sentinel_visible(self, total: int) -> int:
        self.visible_count = min(self.visible_count + self.batch, total)
        return self.visible_count

    def sync(self, total: int, searching: bool) -> int:
        """Re-evaluate after the item list changed."""
        if searching:
            self.visible_count = total
        else:
            self.visible_count = min(max(self.visible_count, self.batch), total)
        return self.visible_count

    def resize(self, width: int, total: int, searching: bool) -> int:
        """
        Apply a viewport width change. A new column count raises the
        window to at least one full batch; it is never lowered.
        """
        columns = columns_for_width(width)
        if columns == self.columns:
            return self.visible_count
        self.columns = columns
        if searching:
            self.visible_count = total
        else:
            self.visible_count = max(self.visible_count, min(self.batch, total))
        return self.visible_count
