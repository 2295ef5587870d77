"""Modal prompt for connecting a new project from a service-account key."""

from __future__ import annotations

from textual.app import ComposeResult
from textual.binding import Binding
from textual.containers import Horizontal, Vertical
from textual.screen import ModalScreen
from textual.widgets import Button, Input, Static

from firedesk.models import ConnectRequest


class AddProjectScreen(ModalScreen[ConnectRequest | None]):
    """Collects a key path and optional database id; dismisses with a ``ConnectRequest``."""

    DEFAULT_CSS = """
    AddProjectScreen {
        align: center middle;
    }

    AddProjectScreen #add-project-dialog {
        width: 72;
        height: auto;
        padding: 1 2;
        border: round $primary;
        background: $surface;
    }

    AddProjectScreen Input {
        margin-bottom: 1;
    }

    AddProjectScreen #add-project-error {
        color: $error;
        height: auto;
    }

    AddProjectScreen .dialog-actions {
        height: auto;
        align-horizontal: right;
    }

    AddProjectScreen .dialog-actions > Button {
        margin-left: 1;
    }
    """

    BINDINGS = [Binding("escape", "cancel", "Cancel")]

    def __init__(self, *, service_account_path: str = "", database_id: str = "") -> None:
        super().__init__()
        self._initial_path = service_account_path
        self._initial_database = database_id

    def compose(self) -> ComposeResult:
        with Vertical(id="add-project-dialog"):
            yield Static("Add project", classes="panel-title")
            yield Input(
                self._initial_path,
                placeholder="path to service-account JSON",
                id="service-account-path",
            )
            yield Input(
                self._initial_database,
                placeholder="database id (optional, default database when empty)",
                id="database-id",
            )
            yield Static("", id="add-project-error")
            with Horizontal(classes="dialog-actions"):
                yield Button("Cancel", id="add-project-cancel")
                yield Button("Connect", id="add-project-submit", variant="primary")

    def on_mount(self) -> None:
        self.query_one("#service-account-path", Input).focus()

    def on_button_pressed(self, event: Button.Pressed) -> None:
        event.stop()
        if event.button.id == "add-project-submit":
            self.submit()
        elif event.button.id == "add-project-cancel":
            self.dismiss(None)

    def on_input_submitted(self, event: Input.Submitted) -> None:
        event.stop()
        self.submit()

    def action_cancel(self) -> None:
        self.dismiss(None)

    def submit(self) -> None:
        path = self.query_one("#service-account-path", Input).value.strip()
        database_id = self.query_one("#database-id", Input).value.strip()
        if not path:
            self.query_one("#add-project-error", Static).update("A service account path is required.")
            return
        self.dismiss(ConnectRequest(service_account_path=path, database_id=database_id or None))


__all__ = ["AddProjectScreen"]
