"""Textual application entry point for firedesk."""

from __future__ import annotations

import argparse
import logging
from typing import Sequence

from textual.app import App, ComposeResult
from textual.containers import Container, Horizontal
from textual.widget import Widget
from textual.widgets import Footer, Header

from .bridge import FirestoreBridge
from .config import AppConfig, load_config, save_config
from .connections import ConnectionBackend
from .models import ConnectRequest
from .providers import CollectionRefreshProvider, ProfileSwitchProvider, ProjectManagementProvider
from .session import SessionManager, SessionState
from .widgets import AddProjectScreen, ProjectSidebar, QueryPad, StatusBar

LOG = logging.getLogger(__name__)


def _load_app_config() -> AppConfig:
    """Load configuration with a small wrapper for future overrides."""

    return load_config()


class FiredeskApp(App[None]):
    """Firestore browser shell around the connection/query bridge."""

    COMMANDS = App.COMMANDS | {ProfileSwitchProvider, CollectionRefreshProvider, ProjectManagementProvider}
    CSS = """
    Screen {
        layout: vertical;
    }
    #content {
        layout: horizontal;
        height: 1fr;
    }
    #main-column {
        layout: vertical;
        padding: 1 2;
        height: 1fr;
        border-left: solid $surface-darken-1;
    }
    """

    BINDINGS = [
        ("ctrl+c", "quit", "Quit"),
        ("ctrl+r", "refresh", "Refresh Collections"),
        ("ctrl+d", "disconnect", "Disconnect"),
        ("ctrl+n", "add_project", "Add Project"),
        ("ctrl+p", "command_palette", "Command Palette"),
    ]

    def __init__(self, *, backend: ConnectionBackend | None = None) -> None:
        super().__init__()
        config = _load_app_config()
        self._bridge = FirestoreBridge(backend=backend, query_timeout=config.query_timeout)
        self._session_manager = SessionManager(
            self._bridge,
            config=config,
            on_config_change=self._persist_config,
        )
        self._query_pad: QueryPad | None = None
        self._last_session_state: SessionState | None = None
        self._session_manager.subscribe(self._handle_session_state)

    def compose(self) -> ComposeResult:
        """Compose the root layout."""

        yield Header(show_clock=True)
        sidebar = ProjectSidebar(
            self._session_manager,
            initial_width=self.app_config.layout.sidebar_width,
            on_width_change=self.remember_sidebar_width,
        )
        self._query_pad = QueryPad(self._session_manager)
        content_children: list[Widget] = [sidebar, Container(self._query_pad, id="main-column")]
        yield Horizontal(*content_children, id="content")
        yield StatusBar(self._session_manager)
        yield Footer()

    async def on_mount(self) -> None:
        active = self.app_config.active_profile
        if active and any(profile.name == active for profile in self._session_manager.profiles):
            await self.switch_profile(active)

    @property
    def session_manager(self) -> SessionManager:
        """Expose the session manager for tests."""

        return self._session_manager

    @property
    def app_config(self) -> AppConfig:
        return self._session_manager.config

    async def action_refresh(self) -> None:
        await self._session_manager.refresh_collections()

    async def action_disconnect(self) -> None:
        await self._session_manager.disconnect()

    async def switch_profile(self, name: str) -> None:
        """Connect to the requested project; the session manager persists the choice."""

        try:
            state = await self._session_manager.connect_profile(name)
        except ValueError as exc:
            self._safe_notify(str(exc), severity="error")
            return
        if state.connected:
            self._safe_notify(f"Connected to {state.project_id or name}", severity="information")

    def action_add_project(self) -> None:
        self.push_screen(AddProjectScreen(), self._handle_add_project)

    async def connect_service_account(self, request: ConnectRequest | str) -> None:
        """Connect with a key file; the project is saved once the connection succeeds."""

        try:
            state = await self._session_manager.connect_service_account(request)
        except ValueError as exc:
            self._safe_notify(str(exc), severity="error")
            return
        if state.connected and state.status != "Connection failed":
            self._safe_notify(f"Connected to {state.project_id}", severity="information")

    async def remove_project(self, name: str) -> None:
        try:
            await self._session_manager.remove_profile(name)
        except ValueError as exc:
            self._safe_notify(str(exc), severity="error")
            return
        self._safe_notify(f"Removed project {name}", severity="information")

    async def _handle_add_project(self, request: ConnectRequest | None) -> None:
        if request is not None:
            await self.connect_service_account(request)

    def select_collection(self, collection: str) -> None:
        if self._query_pad is not None:
            self._query_pad.load_collection(collection)

    def remember_sidebar_width(self, width: int) -> None:
        """Persist the sidebar width when it changes."""

        config = self._session_manager.config
        if config.layout.sidebar_width == width:
            return
        self._session_manager.update_config(config.with_layout(sidebar_width=width))

    def _persist_config(self, config: AppConfig) -> None:
        try:
            save_config(config)
        except OSError:
            LOG.exception("Failed to save config")

    async def _shutdown(self) -> None:
        await self._bridge.disconnect()
        await super()._shutdown()

    def _handle_session_state(self, state: SessionState) -> None:
        previous = self._last_session_state
        self._last_session_state = state
        if state.last_error and (previous is None or previous.last_error != state.last_error):
            self._safe_notify(state.last_error.splitlines()[0][:160], severity="error")

    def _safe_notify(self, message: str, *, severity: str = "information") -> None:
        if not self.is_running:
            return
        try:
            self.notify(message, severity=severity)
        except Exception:
            LOG.exception("Failed to display notification", extra={"notification": message})


def _parse_args(argv: Sequence[str] | None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(prog="firedesk", description="Browse Firestore databases from the terminal.")
    parser.add_argument("--log-file", help="Write logs to this file (the TUI owns the terminal).")
    parser.add_argument("--verbose", action="store_true", help="Log at DEBUG level.")
    return parser.parse_args(argv)


def setup_logging(log_file: str | None, *, verbose: bool = False) -> None:
    if not log_file:
        logging.getLogger().addHandler(logging.NullHandler())
        return
    logging.basicConfig(
        filename=log_file,
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )


def main(argv: Sequence[str] | None = None) -> None:
    """Invoke the Textual application."""

    args = _parse_args(argv)
    setup_logging(args.log_file, verbose=args.verbose)
    FiredeskApp().run()


if __name__ == "__main__":
    main()
