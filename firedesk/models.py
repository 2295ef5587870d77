"""Shared dataclasses used across the connection, query, and bridge modules."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Mapping

from .errors import ErrorKind

JSONValue = Any


@dataclass(frozen=True, slots=True)
class ServiceAccountCredential:
    """Parsed service-account key file."""

    project_id: str
    raw: Mapping[str, Any]


@dataclass(frozen=True, slots=True)
class Connection:
    """Live admin app plus the Firestore client created from it."""

    admin_app: Any
    db: Any

    def __post_init__(self) -> None:
        if self.admin_app is None or self.db is None:
            raise ValueError("Connection requires both an admin app and a database handle.")


@dataclass(frozen=True, slots=True)
class ConnectRequest:
    """Arguments accepted by ``ConnectionManager.connect``."""

    service_account_path: str
    database_id: str | None = None

    @classmethod
    def coerce(cls, value: "ConnectRequest | Mapping[str, Any] | str") -> "ConnectRequest":
        """Accept a request, a camelCase/snake_case mapping, or a bare path."""

        if isinstance(value, ConnectRequest):
            return value
        if isinstance(value, str):
            path, database_id = value, None
        elif isinstance(value, Mapping):
            path = value.get("serviceAccountPath", value.get("service_account_path"))
            database_id = value.get("databaseId", value.get("database_id"))
        else:
            raise TypeError(f"Unsupported connect request: {type(value).__name__}")
        if not isinstance(path, str) or not path.strip():
            raise ValueError("A service account path is required.")
        if database_id is not None and not isinstance(database_id, str):
            raise ValueError("databaseId must be a string.")
        return cls(service_account_path=path, database_id=database_id or None)


@dataclass(frozen=True, slots=True)
class QueryRequest:
    """A single query invocation."""

    collection_path: str
    query_source: str

    @classmethod
    def coerce(cls, value: "QueryRequest | Mapping[str, Any]") -> "QueryRequest":
        if isinstance(value, QueryRequest):
            return value
        if not isinstance(value, Mapping):
            raise TypeError(f"Unsupported query request: {type(value).__name__}")
        source = value.get("jsQuery", value.get("query", value.get("query_source")))
        collection = value.get("collectionPath", value.get("collection_path", ""))
        if not isinstance(source, str):
            raise ValueError("Query source must be a string.")
        return cls(collection_path=str(collection or ""), query_source=source)


@dataclass(frozen=True, slots=True)
class DocumentRecord:
    """Plain-data copy of a document snapshot."""

    id: str
    path: str
    data: Mapping[str, JSONValue]

    def as_dict(self) -> dict[str, object]:
        return {"id": self.id, "path": self.path, "data": dict(self.data)}


@dataclass(frozen=True, slots=True)
class ConnectResult:
    success: bool
    project_id: str | None = None
    database_id: str | None = None
    error: str | None = None
    error_kind: ErrorKind | None = None

    def as_dict(self) -> dict[str, object]:
        if not self.success:
            return {"success": False, "error": self.error}
        # databaseId stays in the payload even when unset.
        return {"success": True, "projectId": self.project_id, "databaseId": self.database_id}


@dataclass(frozen=True, slots=True)
class DisconnectResult:
    success: bool = True

    def as_dict(self) -> dict[str, object]:
        return {"success": self.success}


@dataclass(frozen=True, slots=True)
class CollectionsResult:
    success: bool
    collections: tuple[str, ...] = ()
    error: str | None = None
    error_kind: ErrorKind | None = None

    def as_dict(self) -> dict[str, object]:
        if not self.success:
            return {"success": False, "error": self.error}
        return {"success": True, "collections": list(self.collections)}


@dataclass(frozen=True, slots=True)
class QueryExecutionResult:
    success: bool
    documents: tuple[DocumentRecord, ...] = field(default_factory=tuple)
    error: str | None = None
    error_kind: ErrorKind | None = None
    elapsed_ms: int | None = None

    def as_dict(self) -> dict[str, object]:
        if not self.success:
            return {"success": False, "error": self.error}
        return {"success": True, "documents": [doc.as_dict() for doc in self.documents]}


__all__ = [
    "CollectionsResult",
    "ConnectRequest",
    "ConnectResult",
    "Connection",
    "DisconnectResult",
    "DocumentRecord",
    "JSONValue",
    "QueryExecutionResult",
    "QueryRequest",
    "ServiceAccountCredential",
]
