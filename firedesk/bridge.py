"""Boundary between the transport and the connection/query core.

Handlers are keyed by channel name and always resolve to plain dicts; no
exception crosses this boundary.
"""

from __future__ import annotations

import logging
from typing import Any, Awaitable, Callable

from .connections import ConnectionBackend, ConnectionManager
from .errors import normalize_error
from .models import CollectionsResult, ConnectResult, DisconnectResult, QueryExecutionResult
from .query import FirestoreQueryExecutor

LOG = logging.getLogger(__name__)

CONNECT = "firebase:connect"
DISCONNECT = "firebase:disconnect"
GET_COLLECTIONS = "firestore:getCollections"
EXECUTE_QUERY = "firestore:executeJsQuery"

ChannelHandler = Callable[[Any], Awaitable[dict[str, object]]]


class FirestoreBridge:
    """Wires the connection manager and query executor behind named channels."""

    def __init__(
        self,
        manager: ConnectionManager | None = None,
        *,
        backend: ConnectionBackend | None = None,
        query_timeout: float | None = None,
    ) -> None:
        self._manager = manager or ConnectionManager(backend)
        self._executor = FirestoreQueryExecutor(self._manager, timeout=query_timeout)
        self._channels: dict[str, ChannelHandler] = {
            CONNECT: self._handle_connect,
            DISCONNECT: self._handle_disconnect,
            GET_COLLECTIONS: self._handle_get_collections,
            EXECUTE_QUERY: self._handle_execute_query,
        }

    @property
    def manager(self) -> ConnectionManager:
        return self._manager

    @property
    def executor(self) -> FirestoreQueryExecutor:
        return self._executor

    @property
    def channels(self) -> tuple[str, ...]:
        return tuple(self._channels)

    async def connect(self, request: Any) -> ConnectResult:
        return await self._manager.connect(request)

    async def disconnect(self) -> DisconnectResult:
        return await self._manager.disconnect()

    async def get_collections(self) -> CollectionsResult:
        return await self._manager.get_collections()

    async def execute_query(self, request: Any) -> QueryExecutionResult:
        return await self._executor.execute(request)

    async def dispatch(self, channel: str, payload: Any = None) -> dict[str, object]:
        """Invoke the handler for ``channel`` and return its wire payload."""

        handler = self._channels.get(channel)
        if handler is None:
            return {"success": False, "error": f"Unknown channel: {channel}"}
        try:
            return await handler(payload)
        except Exception as exc:
            LOG.exception("Channel handler failed", extra={"channel": channel})
            return {"success": False, "error": normalize_error(exc).message}

    async def _handle_connect(self, payload: Any) -> dict[str, object]:
        return (await self.connect(payload)).as_dict()

    async def _handle_disconnect(self, _payload: Any) -> dict[str, object]:
        return (await self.disconnect()).as_dict()

    async def _handle_get_collections(self, _payload: Any) -> dict[str, object]:
        return (await self.get_collections()).as_dict()

    async def _handle_execute_query(self, payload: Any) -> dict[str, object]:
        return (await self.execute_query(payload if payload is not None else {})).as_dict()


__all__ = [
    "CONNECT",
    "DISCONNECT",
    "EXECUTE_QUERY",
    "FirestoreBridge",
    "GET_COLLECTIONS",
]
