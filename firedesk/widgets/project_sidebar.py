"""Sidebar widget listing saved projects and the active project's collections."""

from __future__ import annotations

from typing import Callable

from textual import on
from textual.app import ComposeResult
from textual.binding import Binding
from textual.containers import Container
from textual.widgets import Label, ListItem, ListView, Static

from firedesk.session import SessionManager, SessionState

DEFAULT_WIDTH = 28
MIN_WIDTH = 18
MAX_WIDTH = 64
WIDTH_STEP = 4


class ProjectSidebar(Container):
    """Displays saved projects and the collections of the connected one."""

    DEFAULT_CSS = """
    ProjectSidebar {
        border-right: solid $surface-darken-1;
        padding: 1;
        height: 1fr;
        background: $surface-darken-2;
    }

    ProjectSidebar .sidebar-heading {
        text-style: bold;
        margin-bottom: 1;
    }

    #profile-list {
        height: 6;
        border: round $primary 30%;
        margin-bottom: 1;
    }

    #profile-list .active {
        text-style: bold;
    }

    #collection-list {
        height: 1fr;
        border: round $primary 30%;
    }

    #profile-summary {
        padding-top: 1;
        border-top: solid $surface-darken-1;
        color: $text-muted;
        min-height: 4;
        margin-bottom: 1;
    }
    """

    BINDINGS = [
        Binding("[", "narrow", "Narrow sidebar", show=False),
        Binding("]", "widen", "Widen sidebar", show=False),
    ]

    def __init__(
        self,
        session_manager: SessionManager,
        *,
        initial_width: int | None = None,
        on_width_change: Callable[[int], None] | None = None,
    ) -> None:
        super().__init__(id="project-sidebar")
        self._session_manager = session_manager
        self._on_width_change = on_width_change or (lambda _: None)
        self._width = _clamp_width(initial_width or DEFAULT_WIDTH)
        self.styles.width = self._width
        self._profile_list: _ProfileListView | None = None
        self._profile_items: dict[str, _ProfileListItem] = {}
        self._collection_list: _CollectionListView | None = None
        self._rendered_collections: tuple[str, ...] | None = None
        self._profile_summary: Static | None = None
        self._unsubscribe: Callable[[], None] | None = None

    def compose(self) -> ComposeResult:
        yield Static("Projects", classes="sidebar-heading")
        items = [_ProfileListItem(profile.name) for profile in self._session_manager.profiles]
        self._profile_items = {item.profile_name: item for item in items}
        self._profile_list = _ProfileListView(*items, id="profile-list")
        yield self._profile_list
        self._profile_summary = Static("Not connected.", id="profile-summary")
        yield self._profile_summary
        yield Static("Collections", classes="sidebar-heading")
        self._collection_list = _CollectionListView(id="collection-list")
        yield self._collection_list

    async def on_mount(self) -> None:
        self._unsubscribe = self._session_manager.subscribe(self._handle_session_update)

    def on_unmount(self) -> None:
        if self._unsubscribe:
            self._unsubscribe()
            self._unsubscribe = None

    @property
    def sidebar_width(self) -> int:
        return self._width

    def action_narrow(self) -> None:
        self.resize_to(self._width - WIDTH_STEP)

    def action_widen(self) -> None:
        self.resize_to(self._width + WIDTH_STEP)

    def resize_to(self, width: int) -> None:
        """Apply a new width and report it so the app can persist it."""

        width = _clamp_width(width)
        if width == self._width:
            return
        self._width = width
        self.styles.width = width
        self._on_width_change(width)

    def _handle_session_update(self, state: SessionState) -> None:
        self._render_profiles(state)
        self._render_summary(state)
        self._render_collections(state)

    @property
    def profile_names(self) -> tuple[str, ...]:
        """Names currently listed in the profile list."""

        return tuple(self._profile_items)

    def _render_profiles(self, state: SessionState) -> None:
        if not self._profile_list:
            return
        names = tuple(profile.name for profile in self._session_manager.profiles)
        if names != self.profile_names:
            items = [_ProfileListItem(name) for name in names]
            self._profile_items = {item.profile_name: item for item in items}
            self._profile_list.clear()
            self._profile_list.extend(items)
        active = state.profile.name if state.profile else None
        for name, item in self._profile_items.items():
            item.set_class(name == active, "active")

    def _render_summary(self, state: SessionState) -> None:
        if not self._profile_summary:
            return
        if state.profile is None:
            self._profile_summary.update("Not connected.")
            return
        lines = [
            f"Project: {state.project_id or state.profile.project_id or '—'}",
            f"Database: {state.database_id or '(default)'}",
            f"Status: {state.status}",
        ]
        if state.last_error:
            lines.append(f"Error: {state.last_error.splitlines()[0][:60]}")
        self._profile_summary.update("\n".join(lines))

    def _render_collections(self, state: SessionState) -> None:
        if not self._collection_list or state.collections == self._rendered_collections:
            return
        self._rendered_collections = state.collections
        self._collection_list.clear()
        for name in state.collections:
            self._collection_list.append(_CollectionListItem(name))

    @on(ListView.Selected, "#profile-list")
    async def _handle_profile_selected(self, event: ListView.Selected) -> None:
        item = event.item
        if isinstance(item, _ProfileListItem):
            event.stop()
            switcher = getattr(self.app, "switch_profile", None)
            if switcher is not None:
                await switcher(item.profile_name)

    @on(ListView.Selected, "#collection-list")
    def _handle_collection_selected(self, event: ListView.Selected) -> None:
        item = event.item
        if isinstance(item, _CollectionListItem):
            event.stop()
            selector = getattr(self.app, "select_collection", None)
            if selector is not None:
                selector(item.collection_id)


def _clamp_width(width: int) -> int:
    return max(MIN_WIDTH, min(MAX_WIDTH, width))


class _CollectionListView(ListView):
    BINDINGS = ListView.BINDINGS + [
        Binding("r", "refresh_collections", "Refresh collections", show=False),
    ]

    async def action_refresh_collections(self) -> None:
        refresher = getattr(self.app, "action_refresh", None)
        if refresher is not None:
            await refresher()


class _ProfileListView(ListView):
    BINDINGS = ListView.BINDINGS + [
        Binding("delete", "remove_profile", "Remove project", show=False),
    ]

    async def action_remove_profile(self) -> None:
        item = self.highlighted_child
        remover = getattr(self.app, "remove_project", None)
        if isinstance(item, _ProfileListItem) and remover is not None:
            await remover(item.profile_name)


class _ProfileListItem(ListItem):
    """List item storing a profile name for selection callbacks."""

    def __init__(self, name: str) -> None:
        super().__init__(Label(name))
        self.profile_name = name


class _CollectionListItem(ListItem):
    def __init__(self, collection_id: str) -> None:
        super().__init__(Label(collection_id))
        self.collection_id = collection_id


__all__ = ["ProjectSidebar"]
