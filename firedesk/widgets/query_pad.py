"""Query pad widget: Python query editor plus a result table."""

from __future__ import annotations

import json
from typing import Callable

from textual.app import ComposeResult
from textual.binding import Binding
from textual.containers import Container, Horizontal
from textual.widgets import Button, DataTable, Input, Static, TextArea

from firedesk.models import DocumentRecord, QueryExecutionResult
from firedesk.session import SessionManager, SessionState

QUERY_TEMPLATE = '''def run():
    return db.collection("{collection}").limit(50).get()
'''


def query_template(collection: str) -> str:
    """Starter query for a collection."""

    escaped = collection.replace("\\", "\\\\").replace('"', '\\"')
    return QUERY_TEMPLATE.format(collection=escaped)


class QueryPad(Container):
    """Editor surface for Python queries run through the session manager."""

    DEFAULT_CSS = """
    QueryPad {
        layout: vertical;
        border: round $primary 40%;
        padding: 1 2;
        height: 1fr;
        background: $surface;
    }

    QueryPad .panel-title {
        text-style: bold;
    }

    QueryPad #query-editor {
        height: 10;
        border: heavy $primary;
    }

    QueryPad:focus-within {
        border: round $primary;
        background: $surface-lighten-1;
    }

    QueryPad .query-actions {
        margin-top: 1;
        height: auto;
        align-horizontal: left;
    }

    QueryPad .query-actions > * {
        margin-right: 1;
    }

    QueryPad #collection-path {
        width: 32;
    }

    QueryPad #query-results {
        height: 1fr;
        margin-top: 1;
        border-top: solid $surface-darken-2;
    }
    """

    BINDINGS = Container.BINDINGS + [
        Binding("ctrl+enter", "run_query", "Run query", show=False, priority=True),
        Binding("ctrl+j", "run_query", "Run query", show=False, priority=True),
    ]

    def __init__(self, session_manager: SessionManager, *, result_limit: int = 200) -> None:
        super().__init__(id="query-pad")
        self._session_manager = session_manager
        self._editor: TextArea | None = None
        self._collection_input: Input | None = None
        self._status_panel: Static | None = None
        self._result_table: DataTable | None = None
        self._unsubscribe: Callable[[], None] | None = None
        self._result_limit = result_limit
        self._last_result: QueryExecutionResult | None = None

    def compose(self) -> ComposeResult:
        yield Static("Query", classes="panel-title")
        yield TextArea(query_template("users"), id="query-editor")
        yield Horizontal(
            Input(placeholder="collection path", id="collection-path"),
            Button("Run query", id="run-query", variant="primary"),
            Static("", id="query-status"),
            classes="query-actions",
        )
        yield DataTable(id="query-results", zebra_stripes=True)

    async def on_mount(self) -> None:
        self._editor = self.query_one("#query-editor", TextArea)
        self._collection_input = self.query_one("#collection-path", Input)
        self._status_panel = self.query_one("#query-status", Static)
        self._result_table = self.query_one("#query-results", DataTable)
        self._result_table.cursor_type = "row"
        self._unsubscribe = self._session_manager.subscribe(self._handle_session_update)

    def on_unmount(self) -> None:
        if self._unsubscribe:
            self._unsubscribe()
            self._unsubscribe = None

    @property
    def last_result(self) -> QueryExecutionResult | None:
        return self._last_result

    def load_collection(self, collection: str) -> None:
        """Prefill the editor with a starter query for ``collection``."""

        if self._collection_input:
            self._collection_input.value = collection
        if self._editor:
            self._editor.load_text(query_template(collection))

    async def action_run_query(self) -> None:
        await self.execute_current_query()

    async def on_button_pressed(self, event: Button.Pressed) -> None:
        if event.button.id == "run-query":
            event.stop()
            await self.execute_current_query()

    async def execute_current_query(self) -> QueryExecutionResult | None:
        if not self._editor:
            return None
        source = self._editor.text
        if not source.strip():
            self._set_status("Enter a query to run.", severity="warning")
            return None
        collection = self._collection_input.value.strip() if self._collection_input else ""
        self._set_status("Executing…", severity="information")
        result = await self._session_manager.run_query(collection, source)
        self._last_result = result
        if not result.success:
            self._set_status(f"Error: {result.error}", severity="error")
            self._render_documents(())
            return result
        self._render_documents(result.documents)
        elapsed = f" · {result.elapsed_ms} ms" if result.elapsed_ms is not None else ""
        self._set_status(f"{len(result.documents)} document(s){elapsed}", severity="success")
        return result

    def _handle_session_update(self, state: SessionState) -> None:
        if not state.connected and self._status_panel and state.status == "Disconnected":
            self._set_status("Not connected.", severity="warning")

    def _render_documents(self, documents: tuple[DocumentRecord, ...]) -> None:
        if not self._result_table:
            return
        self._result_table.clear(columns=True)
        if not documents:
            return
        self._result_table.add_columns("id", "path", "data")
        for record in documents[: self._result_limit]:
            self._result_table.add_row(record.id, record.path, self._format_data(record))

    def _set_status(self, message: str, *, severity: str) -> None:
        if not self._status_panel:
            return
        prefix = {
            "information": "ℹ",
            "warning": "⚠",
            "error": "✖",
            "success": "✔",
        }.get(severity, "•")
        self._status_panel.update(f"{prefix} {message}")

    @staticmethod
    def _format_data(record: DocumentRecord, limit: int = 160) -> str:
        text = json.dumps(record.data, ensure_ascii=False, sort_keys=True)
        if len(text) > limit:
            return text[: limit - 1] + "…"
        return text


__all__ = ["QueryPad", "query_template"]
