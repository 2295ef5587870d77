"""Collection listing and sandboxed query execution against the live connection."""

from __future__ import annotations

import asyncio
import base64
import inspect
import logging
import time
from datetime import date, datetime
from typing import Any, Awaitable, Iterable, Mapping, Protocol, TypeVar

from google.cloud.firestore import GeoPoint
from google.cloud.firestore_v1.base_document import BaseDocumentReference

from .errors import NOT_CONNECTED_MESSAGE, ErrorKind, normalize_error
from .models import Connection, DocumentRecord, JSONValue, QueryExecutionResult, QueryRequest
from .sandbox import CompiledQuery, compile_query

LOG = logging.getLogger(__name__)

T = TypeVar("T")


class ConnectionSource(Protocol):
    """Read-only view of the current connection."""

    @property
    def connection(self) -> Connection | None: ...


async def with_deadline(awaitable: Awaitable[T], timeout: float | None) -> T:
    """Await ``awaitable``, bounded by ``timeout`` seconds when one is given.

    Work already handed to a thread keeps running after the deadline; only the
    caller stops waiting.
    """

    if timeout is None:
        return await awaitable
    return await asyncio.wait_for(awaitable, timeout)


def list_collection_ids(db: Any) -> list[str]:
    """Top-level collection ids in the order the client returns them."""

    return [str(collection.id) for collection in db.collections()]


def serialize_result(result: Any) -> list[DocumentRecord]:
    """Turn whatever ``run()`` returned into plain document records.

    Accepts a single document snapshot, anything iterable over snapshots
    (``Query.get()`` lists, ``stream()`` generators), or an object exposing
    ``.documents``. Snapshots for missing documents are skipped.
    """

    if result is None:
        return []
    if _is_snapshot(result):
        return [to_record(result)] if _exists(result) else []
    documents = getattr(result, "documents", None)
    if documents is not None and not isinstance(result, (str, bytes, Mapping)):
        result = documents
    if isinstance(result, (str, bytes, Mapping)) or not isinstance(result, Iterable):
        raise TypeError(
            f"run() must return a document snapshot or query results, got {type(result).__name__}"
        )
    records: list[DocumentRecord] = []
    for item in result:
        if not _is_snapshot(item):
            raise TypeError(f"Query results must contain document snapshots, got {type(item).__name__}")
        if _exists(item):
            records.append(to_record(item))
    return records


def to_record(snapshot: Any) -> DocumentRecord:
    data = snapshot.to_dict() or {}
    return DocumentRecord(
        id=str(snapshot.id),
        path=str(snapshot.reference.path),
        data={str(key): to_plain(value) for key, value in data.items()},
    )


def to_plain(value: Any) -> JSONValue:
    """Recursively convert Firestore values into JSON-compatible data."""

    if value is None or isinstance(value, (bool, int, float, str)):
        return value
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    if isinstance(value, GeoPoint):
        return {"latitude": value.latitude, "longitude": value.longitude}
    if isinstance(value, BaseDocumentReference):
        return value.path
    if isinstance(value, (bytes, bytearray)):
        return base64.b64encode(bytes(value)).decode("ascii")
    if isinstance(value, Mapping):
        return {str(key): to_plain(item) for key, item in value.items()}
    if isinstance(value, (list, tuple, set, frozenset)):
        return [to_plain(item) for item in value]
    return str(value)


def _is_snapshot(value: Any) -> bool:
    return hasattr(value, "to_dict") and hasattr(value, "reference") and hasattr(value, "id")


def _exists(snapshot: Any) -> bool:
    return bool(getattr(snapshot, "exists", True))


class FirestoreQueryExecutor:
    """Runs user query source against whatever connection is current."""

    def __init__(self, connections: ConnectionSource, *, timeout: float | None = None) -> None:
        self._connections = connections
        self._timeout = timeout

    async def execute(
        self,
        request: QueryRequest | Mapping[str, Any],
        *,
        timeout: float | None = None,
    ) -> QueryExecutionResult:
        connection = self._connections.connection
        if connection is None:
            return QueryExecutionResult(
                success=False,
                error=NOT_CONNECTED_MESSAGE,
                error_kind=ErrorKind.NOT_CONNECTED,
            )
        started = time.perf_counter()
        deadline = timeout if timeout is not None else self._timeout
        try:
            query = QueryRequest.coerce(request)
            compiled = compile_query(query.query_source)
            records = await with_deadline(self._run(compiled, connection.db), deadline)
        except Exception as exc:
            failure = normalize_error(exc)
            LOG.warning("Query failed", extra={"error_kind": failure.kind.value})
            return QueryExecutionResult(success=False, error=failure.message, error_kind=failure.kind)
        elapsed_ms = int((time.perf_counter() - started) * 1000)
        LOG.debug(
            "Query finished",
            extra={"collection": query.collection_path, "documents": len(records), "elapsed_ms": elapsed_ms},
        )
        return QueryExecutionResult(success=True, documents=tuple(records), elapsed_ms=elapsed_ms)

    async def _run(self, compiled: CompiledQuery, db: Any) -> list[DocumentRecord]:
        result = await asyncio.to_thread(compiled.invoke, db)
        if inspect.isawaitable(result):
            result = await result
        if hasattr(result, "__aiter__"):
            snapshots = [snapshot async for snapshot in result]
            return serialize_result(snapshots)
        return await asyncio.to_thread(serialize_result, result)


__all__ = [
    "ConnectionSource",
    "FirestoreQueryExecutor",
    "list_collection_ids",
    "serialize_result",
    "to_plain",
    "to_record",
    "with_deadline",
]
