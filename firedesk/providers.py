"""Command palette providers for core app features."""

from __future__ import annotations

from textual.command import DiscoveryHit, Hit, Hits, Provider
from textual.types import IgnoreReturnCallbackType

from .session import SessionManager


class ProfileSwitchProvider(Provider):
    """Expose saved projects to the command palette."""

    async def search(self, query: str) -> Hits:
        manager = self._session_manager
        if manager is None:
            return
        matcher = self.matcher(query)
        for profile in manager.profiles:
            match = matcher.match(profile.name)
            if match > 0:
                yield Hit(
                    score=match,
                    match_display=f"Connect to project: {matcher.highlight(profile.name)}",
                    command=self._build_callback(profile.name),
                    help="Connect with the project's service account.",
                )

    async def discover(self) -> Hits:
        manager = self._session_manager
        if manager is None:
            return
        for profile in manager.profiles:
            yield DiscoveryHit(
                display=f"Connect to project: {profile.name}",
                command=self._build_callback(profile.name),
                help="Connect with the project's service account.",
            )

    @property
    def _session_manager(self) -> SessionManager | None:
        manager = getattr(self.app, "session_manager", None)
        if isinstance(manager, SessionManager):
            return manager
        return None

    def _build_callback(self, name: str) -> IgnoreReturnCallbackType:
        async def _run() -> None:
            switcher = getattr(self.app, "switch_profile", None)
            if switcher is None:
                return
            await switcher(name)

        return _run


class CollectionRefreshProvider(Provider):
    """Expose refresh and disconnect actions for the active connection."""

    _ACTIONS = (
        ("Refresh collections", "action_refresh", "Re-list top-level collections (Ctrl+R)."),
        ("Disconnect", "action_disconnect", "Close the active Firestore connection (Ctrl+D)."),
    )

    async def search(self, query: str) -> Hits:
        if self._session_manager is None:
            return
        matcher = self.matcher(query)
        for label, action, help_text in self._ACTIONS:
            score = matcher.match(label)
            if score > 0:
                yield Hit(
                    score=score,
                    match_display=matcher.highlight(label),
                    command=self._build_callback(action),
                    help=help_text,
                )

    async def discover(self) -> Hits:
        if self._session_manager is None:
            return
        for label, action, help_text in self._ACTIONS:
            yield DiscoveryHit(display=label, command=self._build_callback(action), help=help_text)

    @property
    def _session_manager(self) -> SessionManager | None:
        manager = getattr(self.app, "session_manager", None)
        if isinstance(manager, SessionManager):
            return manager
        return None

    def _build_callback(self, action: str) -> IgnoreReturnCallbackType:
        async def _run() -> None:
            handler = getattr(self.app, action, None)
            if handler is None:
                return
            await handler()

        return _run


class ProjectManagementProvider(Provider):
    """Add a project from a key file or forget a saved one."""

    async def search(self, query: str) -> Hits:
        matcher = self.matcher(query)
        for display, command, help_text in self._commands():
            score = matcher.match(display)
            if score > 0:
                yield Hit(score=score, match_display=matcher.highlight(display), command=command, help=help_text)

    async def discover(self) -> Hits:
        for display, command, help_text in self._commands():
            yield DiscoveryHit(display=display, command=command, help=help_text)

    def _commands(self) -> list[tuple[str, IgnoreReturnCallbackType, str]]:
        manager = getattr(self.app, "session_manager", None)
        if not isinstance(manager, SessionManager):
            return []
        commands: list[tuple[str, IgnoreReturnCallbackType, str]] = [
            ("Add project…", self._add_callback(), "Connect a service-account key and save it (Ctrl+N)."),
        ]
        for profile in manager.profiles:
            commands.append(
                (
                    f"Remove project: {profile.name}",
                    self._remove_callback(profile.name),
                    "Forget the saved project; disconnects it when active.",
                )
            )
        return commands

    def _add_callback(self) -> IgnoreReturnCallbackType:
        def _run() -> None:
            opener = getattr(self.app, "action_add_project", None)
            if opener is not None:
                opener()

        return _run

    def _remove_callback(self, name: str) -> IgnoreReturnCallbackType:
        async def _run() -> None:
            remover = getattr(self.app, "remove_project", None)
            if remover is not None:
                await remover(name)

        return _run


__all__ = ["CollectionRefreshProvider", "ProfileSwitchProvider", "ProjectManagementProvider"]
