"""Session manager wiring the bridge into the UI."""

from __future__ import annotations

from dataclasses import dataclass, replace
from datetime import datetime, timezone
from typing import Callable

from .bridge import FirestoreBridge
from .config import AppConfig, ProjectProfileConfig
from .errors import ErrorKind
from .models import ConnectRequest, ConnectResult, QueryExecutionResult, QueryRequest

SessionListener = Callable[["SessionState"], None]
ConfigListener = Callable[[AppConfig], None]


@dataclass(frozen=True, slots=True)
class ProjectProfile:
    """Runtime representation of a saved project."""

    name: str
    service_account_path: str
    database_id: str | None = None
    project_id: str | None = None
    collections: tuple[str, ...] = ()


@dataclass(frozen=True, slots=True)
class SessionState:
    """Current session snapshot (selected profile, connection, collections)."""

    profile: ProjectProfile | None
    connected: bool
    refreshed_at: datetime
    project_id: str | None = None
    database_id: str | None = None
    collections: tuple[str, ...] = ()
    status: str = "Disconnected"
    last_error: str | None = None
    error_kind: ErrorKind | None = None


class SessionManager:
    """Lightweight session orchestrator for the Textual app."""

    def __init__(
        self,
        bridge: FirestoreBridge,
        *,
        config: AppConfig,
        on_config_change: ConfigListener | None = None,
    ) -> None:
        self._bridge = bridge
        self._config = config
        self._on_config_change = on_config_change
        self._listeners: set[SessionListener] = set()
        self._state = SessionState(profile=None, connected=False, refreshed_at=_now())

    @property
    def profiles(self) -> tuple[ProjectProfile, ...]:
        """Profiles available in the current config."""

        return tuple(self._from_config(entry) for entry in self._config.profiles)

    @property
    def config(self) -> AppConfig:
        return self._config

    @property
    def state(self) -> SessionState:
        return self._state

    @property
    def active_profile_name(self) -> str | None:
        if self._state.profile:
            return self._state.profile.name
        return None

    @property
    def bridge(self) -> FirestoreBridge:
        return self._bridge

    async def connect_profile(self, name: str) -> SessionState:
        """Connect to the named profile and load its collections."""

        profile = self._profile_by_name(name)
        self._update_state(profile=profile, connected=False, status="Connecting…", collections=profile.collections)
        result = await self._bridge.connect(
            ConnectRequest(service_account_path=profile.service_account_path, database_id=profile.database_id)
        )
        if not result.success:
            self._update_state(
                profile=profile,
                connected=False,
                status="Connection failed",
                collections=profile.collections,
                last_error=result.error,
                error_kind=result.error_kind,
            )
            return self._state
        return await self._activate(profile, result)

    async def connect_service_account(self, request: ConnectRequest | str) -> SessionState:
        """Connect with a key file and save it as a project once the connection succeeds.

        The project is named after the key's project id (suffixed with the
        database id when one is given). Nothing is saved when connecting fails.
        """

        request = ConnectRequest.coerce(request)
        result = await self._bridge.connect(request)
        if not result.success:
            self._publish(
                replace(
                    self._state,
                    connected=self._bridge.manager.connected,
                    status="Connection failed",
                    last_error=result.error,
                    error_kind=result.error_kind,
                    refreshed_at=_now(),
                )
            )
            return self._state
        name = result.project_id or request.service_account_path
        if result.database_id:
            name = f"{name} ({result.database_id})"
        existing = self._config.profile(name)
        entry = ProjectProfileConfig(
            name=name,
            service_account_path=request.service_account_path,
            database_id=result.database_id,
            project_id=result.project_id,
            collections=list(existing.collections) if existing else [],
        )
        self._set_config(self._config.with_profile(entry))
        return await self._activate(self._from_config(entry), result)

    async def remove_profile(self, name: str) -> SessionState:
        """Forget a saved project, disconnecting first when it is the active one."""

        self._profile_by_name(name)
        if self.active_profile_name == name:
            await self._bridge.disconnect()
            self._set_config(self._config.without_profile(name))
            self._update_state(profile=None, connected=False, status="Disconnected")
            return self._state
        self._set_config(self._config.without_profile(name))
        self._publish(replace(self._state, refreshed_at=_now()))
        return self._state

    async def disconnect(self) -> SessionState:
        await self._bridge.disconnect()
        self._update_state(profile=self._state.profile, connected=False, status="Disconnected")
        return self._state

    async def refresh_collections(self) -> SessionState:
        """Re-list top-level collections for the active connection."""

        result = await self._bridge.get_collections()
        state = self._state
        if not result.success:
            self._publish(
                replace(
                    state,
                    status="Listing failed",
                    last_error=result.error,
                    error_kind=result.error_kind,
                    refreshed_at=_now(),
                )
            )
            return self._state
        self._publish(
            replace(
                state,
                collections=result.collections,
                status="Connected",
                last_error=None,
                error_kind=None,
                refreshed_at=_now(),
            )
        )
        if state.profile is not None:
            self._set_config(
                self._config.with_profile_collections(
                    state.profile.name,
                    list(result.collections),
                    project_id=state.project_id,
                )
            )
        return self._state

    async def run_query(self, collection_path: str, source: str) -> QueryExecutionResult:
        result = await self._bridge.execute_query(
            QueryRequest(collection_path=collection_path, query_source=source)
        )
        if result.success:
            self._publish(replace(self._state, last_error=None, error_kind=None, refreshed_at=_now()))
        else:
            self._publish(
                replace(self._state, last_error=result.error, error_kind=result.error_kind, refreshed_at=_now())
            )
        return result

    def add_profile(self, profile: ProjectProfileConfig) -> ProjectProfile:
        """Save a new (or replacement) project profile."""

        self._set_config(self._config.with_profile(profile))
        self._publish(replace(self._state, refreshed_at=_now()))
        return self._from_config(profile)

    def update_config(self, config: AppConfig) -> None:
        """Replace the config (e.g. layout changes) and notify the persistence hook."""

        self._set_config(config)

    def subscribe(self, listener: SessionListener) -> Callable[[], None]:
        """Subscribe to session updates; returns an unsubscribe handle."""

        self._listeners.add(listener)
        listener(self._state)

        def _unsubscribe() -> None:
            self._listeners.discard(listener)

        return _unsubscribe

    async def _activate(self, profile: ProjectProfile, result: ConnectResult) -> SessionState:
        self._update_state(
            profile=profile,
            connected=True,
            status="Connected",
            project_id=result.project_id,
            database_id=result.database_id,
            collections=profile.collections,
        )
        self._set_config(self._config.with_active_profile(profile.name))
        await self.refresh_collections()
        return self._state

    def _profile_by_name(self, name: str) -> ProjectProfile:
        for profile in self.profiles:
            if profile.name == name:
                return profile
        raise ValueError(f"Profile '{name}' not found.")

    @staticmethod
    def _from_config(profile: ProjectProfileConfig) -> ProjectProfile:
        return ProjectProfile(
            name=profile.name,
            service_account_path=profile.service_account_path,
            database_id=profile.database_id,
            project_id=profile.project_id,
            collections=tuple(profile.collections),
        )

    def _set_config(self, config: AppConfig) -> None:
        if config == self._config:
            return
        self._config = config
        if self._on_config_change:
            self._on_config_change(config)

    def _update_state(
        self,
        *,
        profile: ProjectProfile | None,
        connected: bool,
        status: str,
        project_id: str | None = None,
        database_id: str | None = None,
        collections: tuple[str, ...] = (),
        last_error: str | None = None,
        error_kind: ErrorKind | None = None,
    ) -> None:
        self._publish(
            SessionState(
                profile=profile,
                connected=connected,
                refreshed_at=_now(),
                project_id=project_id,
                database_id=database_id,
                collections=collections,
                status=status,
                last_error=last_error,
                error_kind=error_kind,
            )
        )

    def _publish(self, state: SessionState) -> None:
        self._state = state
        for listener in tuple(self._listeners):
            listener(state)


def _now() -> datetime:
    return datetime.now(tz=timezone.utc)


__all__ = [
    "ProjectProfile",
    "SessionManager",
    "SessionState",
]
