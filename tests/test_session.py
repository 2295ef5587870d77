"""Tests for the session manager."""

from __future__ import annotations

import json
from pathlib import Path
from types import SimpleNamespace
from typing import Any

import pytest

from firedesk.bridge import FirestoreBridge
from firedesk.config import AppConfig, ProjectProfileConfig
from firedesk.errors import ErrorKind
from firedesk.models import Connection, ConnectRequest, ServiceAccountCredential
from firedesk.session import SessionManager, SessionState


@pytest.fixture
def anyio_backend() -> str:
    return "asyncio"


class _Snapshot:
    id = "u1"
    exists = True
    reference = SimpleNamespace(path="users/u1")

    def to_dict(self) -> dict[str, Any]:
        return {"name": "Ada"}


class _Db:
    def __init__(self, collection_ids: list[str], error: Exception | None = None) -> None:
        self._collection_ids = collection_ids
        self._error = error

    def collections(self) -> list[SimpleNamespace]:
        if self._error:
            raise self._error
        return [SimpleNamespace(id=name) for name in self._collection_ids]

    def collection(self, name: str) -> SimpleNamespace:
        return SimpleNamespace(get=lambda: [_Snapshot()])


class _Backend:
    def __init__(self, db: _Db) -> None:
        self.db = db
        self.database_ids: list[str | None] = []

    def initialize(self, credential: ServiceAccountCredential, database_id: str | None) -> Connection:
        self.database_ids.append(database_id)
        return Connection(admin_app=object(), db=self.db)

    def teardown(self, connection: Connection) -> None:
        return None


def _key(tmp_path: Path, project_id: str = "acme-prod") -> str:
    path = tmp_path / f"{project_id}.json"
    path.write_text(json.dumps({"project_id": project_id}))
    return str(path)


def _manager(
    tmp_path: Path,
    db: _Db | None = None,
    saved: list[AppConfig] | None = None,
) -> tuple[SessionManager, _Backend]:
    backend = _Backend(db or _Db(["users", "orders"]))
    config = AppConfig(
        profiles=[
            ProjectProfileConfig(name="Prod", service_account_path=_key(tmp_path), database_id="analytics"),
            ProjectProfileConfig(name="Missing", service_account_path=str(tmp_path / "nope.json")),
        ]
    )
    manager = SessionManager(
        FirestoreBridge(backend=backend),
        config=config,
        on_config_change=saved.append if saved is not None else None,
    )
    return manager, backend


@pytest.mark.anyio
async def test_connect_profile_lists_and_persists_collections(tmp_path: Path) -> None:
    saved: list[AppConfig] = []
    manager, backend = _manager(tmp_path, saved=saved)

    state = await manager.connect_profile("Prod")

    assert state.connected is True
    assert state.status == "Connected"
    assert state.project_id == "acme-prod"
    assert state.database_id == "analytics"
    assert state.collections == ("users", "orders")
    assert backend.database_ids == ["analytics"]
    assert manager.active_profile_name == "Prod"
    assert saved[-1].active_profile == "Prod"
    assert saved[-1].profile("Prod").collections == ["users", "orders"]
    assert saved[-1].profile("Prod").project_id == "acme-prod"


@pytest.mark.anyio
async def test_connect_profile_failure_surfaces_error(tmp_path: Path) -> None:
    saved: list[AppConfig] = []
    manager, _ = _manager(tmp_path, saved=saved)

    state = await manager.connect_profile("Missing")

    assert state.connected is False
    assert state.status == "Connection failed"
    assert state.error_kind is ErrorKind.CREDENTIAL_READ
    assert state.last_error is not None and "No such file or directory" in state.last_error
    assert saved == []


@pytest.mark.anyio
async def test_connect_profile_rejects_unknown_name(tmp_path: Path) -> None:
    manager, _ = _manager(tmp_path)

    with pytest.raises(ValueError, match="not found"):
        await manager.connect_profile("Staging")


@pytest.mark.anyio
async def test_refresh_failure_keeps_connection(tmp_path: Path) -> None:
    db = _Db([], error=RuntimeError("7 PERMISSION_DENIED: Missing or insufficient permissions."))
    manager, _ = _manager(tmp_path, db=db)

    state = await manager.connect_profile("Prod")

    assert state.connected is True
    assert state.status == "Listing failed"
    assert state.error_kind is ErrorKind.PERMISSION_DENIED


@pytest.mark.anyio
async def test_disconnect_updates_state(tmp_path: Path) -> None:
    manager, _ = _manager(tmp_path)
    await manager.connect_profile("Prod")

    state = await manager.disconnect()

    assert state.connected is False
    assert state.status == "Disconnected"
    assert manager.bridge.manager.connected is False


@pytest.mark.anyio
async def test_run_query_returns_documents(tmp_path: Path) -> None:
    manager, _ = _manager(tmp_path)
    await manager.connect_profile("Prod")

    result = await manager.run_query("users", "def run():\n    return db.collection('users').get()\n")

    assert result.success is True
    assert [doc.path for doc in result.documents] == ["users/u1"]
    assert manager.state.last_error is None


@pytest.mark.anyio
async def test_run_query_failure_is_recorded(tmp_path: Path) -> None:
    manager, _ = _manager(tmp_path)

    result = await manager.run_query("users", "def run():\n    return None\n")

    assert result.success is False
    assert manager.state.error_kind is ErrorKind.NOT_CONNECTED


def test_subscribe_emits_current_state_and_unsubscribes(tmp_path: Path) -> None:
    manager, _ = _manager(tmp_path)
    seen: list[SessionState] = []

    unsubscribe = manager.subscribe(seen.append)
    unsubscribe()
    manager.add_profile(ProjectProfileConfig(name="Dev", service_account_path="/keys/dev.json"))

    assert len(seen) == 1
    assert seen[0].connected is False


def test_add_profile_persists_config(tmp_path: Path) -> None:
    saved: list[AppConfig] = []
    manager, _ = _manager(tmp_path, saved=saved)

    profile = manager.add_profile(ProjectProfileConfig(name="Dev", service_account_path="/keys/dev.json"))

    assert profile.name == "Dev"
    assert [entry.name for entry in manager.profiles] == ["Prod", "Missing", "Dev"]
    assert len(saved) == 1


def test_update_config_skips_unchanged_values(tmp_path: Path) -> None:
    saved: list[AppConfig] = []
    manager, _ = _manager(tmp_path, saved=saved)

    manager.update_config(manager.config)
    manager.update_config(manager.config.with_layout(sidebar_width=30))

    assert len(saved) == 1
    assert manager.config.layout.sidebar_width == 30


@pytest.mark.anyio
async def test_connect_service_account_saves_project_after_connecting(tmp_path: Path) -> None:
    saved: list[AppConfig] = []
    manager, backend = _manager(tmp_path, saved=saved)
    key = _key(tmp_path, project_id="acme-new")

    state = await manager.connect_service_account(ConnectRequest(key, database_id="my-db"))

    assert state.connected is True
    assert state.profile is not None and state.profile.name == "acme-new (my-db)"
    assert state.collections == ("users", "orders")
    assert backend.database_ids == ["my-db"]
    saved_profile = saved[-1].profile("acme-new (my-db)")
    assert saved_profile is not None
    assert saved_profile.service_account_path == key
    assert saved_profile.database_id == "my-db"
    assert saved_profile.collections == ["users", "orders"]
    assert saved[-1].active_profile == "acme-new (my-db)"


@pytest.mark.anyio
async def test_connect_service_account_failure_saves_nothing(tmp_path: Path) -> None:
    saved: list[AppConfig] = []
    manager, _ = _manager(tmp_path, saved=saved)

    state = await manager.connect_service_account(str(tmp_path / "bad.json"))

    assert state.connected is False
    assert state.status == "Connection failed"
    assert state.error_kind is ErrorKind.CREDENTIAL_READ
    assert [profile.name for profile in manager.profiles] == ["Prod", "Missing"]
    assert saved == []


@pytest.mark.anyio
async def test_remove_inactive_profile_keeps_connection(tmp_path: Path) -> None:
    manager, _ = _manager(tmp_path)
    await manager.connect_profile("Prod")

    state = await manager.remove_profile("Missing")

    assert state.connected is True
    assert manager.active_profile_name == "Prod"
    assert [profile.name for profile in manager.profiles] == ["Prod"]


@pytest.mark.anyio
async def test_remove_active_profile_disconnects(tmp_path: Path) -> None:
    saved: list[AppConfig] = []
    manager, _ = _manager(tmp_path, saved=saved)
    await manager.connect_profile("Prod")

    state = await manager.remove_profile("Prod")

    assert state.connected is False
    assert state.profile is None
    assert manager.bridge.manager.connected is False
    assert saved[-1].active_profile is None
    assert saved[-1].profile("Prod") is None


@pytest.mark.anyio
async def test_remove_unknown_profile_raises(tmp_path: Path) -> None:
    manager, _ = _manager(tmp_path)

    with pytest.raises(ValueError, match="not found"):
        await manager.remove_profile("Staging")
