# merchantconnect/services/view_state.py
import logging
from enum import Enum
from typing import Callable

logger = logging.getLogger(__name__)


class ViewState(str, Enum):
    LOADING = "LOADING"
    FEED = "FEED"
    ADMIN_DASHBOARD = "ADMIN_DASHBOARD"


class ViewNotAllowedError(Exception):
    """Requested a view the current viewer may not enter."""


class ViewStateMachine:
    """
    Which top-level view a viewer is in.

    LOADING -> FEED once authentication resolves (signed in or not).
    FEED <-> ADMIN_DASHBOARD only for viewers on the admin allow-list.

    The last chosen view (never LOADING) is persisted through `on_persist`
    and handed back as `saved` when the session is re-created. It is
    restored once both the user and the allow-list have loaded; if the
    allow-list arrives after the user, the viewer sits in FEED and is
    upgraded to ADMIN_DASHBOARD when it does.
    """

    def __init__(
        self,
        saved: ViewState | None = None,
        on_persist: Callable[[ViewState], None] | None = None,
    ):
        self.state = ViewState.LOADING
        self.user_loaded = False
        self.allow_list_loaded = False
        self.is_admin = False
        self._pending_restore = saved if saved is not ViewState.LOADING else None
        self._on_persist = on_persist

    def _persist(self) -> None:
        if self._on_persist is not None and self.state is not ViewState.LOADING:
            self._on_persist(self.state)

    def auth_resolved(self) -> ViewState:
        self.user_loaded = True
        if self.state is ViewState.LOADING:
            self.state = ViewState.FEED
        self._try_restore()
        return self.state

    def allow_list_resolved(self, is_admin: bool) -> ViewState:
        self.allow_list_loaded = True
        self.is_admin = is_admin
        if not is_admin and self.state is ViewState.ADMIN_DASHBOARD:
            logger.info("Admin authority revoked; returning to feed")
            self.state = ViewState.FEED
            self._persist()
        self._try_restore()
        return self.state

    def signed_out(self) -> ViewState:
        self.is_admin = False
        if self.state is not ViewState.LOADING:
            self.state = ViewState.FEED
            self._persist()
        return self.state

    def switch(self, target: ViewState) -> ViewState:
        if target is ViewState.LOADING:
            raise ViewNotAllowedError("Cannot switch to LOADING")
        if self.state is ViewState.LOADING:
            raise ViewNotAllowedError("Still loading")
        if target is ViewState.ADMIN_DASHBOARD and not self.is_admin:
            raise ViewNotAllowedError("Admin access required")
        self._pending_restore = None
        self.state = target
        self._persist()
        return self.state

    def _try_restore(self) -> None:
        if self._pending_restore is None:
            return
        if not (self.user_loaded and self.allow_list_loaded):
            return
        saved, self._pending_restore = self._pending_restore, None
        if saved is ViewState.ADMIN_DASHBOARD and not self.is_admin:
            return
        self.state = saved
        self._persist()

    @property
    def is_admin_view(self) -> bool:
        return self.state is ViewState.ADMIN_DASHBOARD and self.is_admin
