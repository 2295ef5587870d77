"""Connection lifecycle for the single live Firestore connection."""

from __future__ import annotations

import asyncio
import itertools
import logging
from typing import Any, Callable, Mapping, Protocol, runtime_checkable

import firebase_admin
from firebase_admin import credentials, firestore

from .credentials import load_service_account
from .errors import NOT_CONNECTED_MESSAGE, ErrorKind, normalize_error
from .models import (
    CollectionsResult,
    ConnectRequest,
    ConnectResult,
    Connection,
    DisconnectResult,
    ServiceAccountCredential,
)
from .query import list_collection_ids, with_deadline

LOG = logging.getLogger(__name__)

CredentialLoader = Callable[[str], ServiceAccountCredential]


@runtime_checkable
class ConnectionBackend(Protocol):
    """Protocol implemented by connection backends."""

    def initialize(self, credential: ServiceAccountCredential, database_id: str | None) -> Connection:
        """Create an admin app and database handle for the credential."""

    def teardown(self, connection: Connection) -> None:
        """Release the admin app behind ``connection``."""


class FirebaseAdminBackend:
    """Connection backend built on the Firebase Admin SDK."""

    def __init__(self, *, app_name_prefix: str = "firedesk") -> None:
        self._app_name_prefix = app_name_prefix
        self._sequence = itertools.count(1)

    def initialize(self, credential: ServiceAccountCredential, database_id: str | None) -> Connection:
        # Apps get unique names so a reconnect never collides with a stale registration.
        name = f"{self._app_name_prefix}-{next(self._sequence)}"
        cert = credentials.Certificate(dict(credential.raw))
        app = firebase_admin.initialize_app(cert, {"projectId": credential.project_id}, name=name)
        try:
            db = firestore.client(app=app, database_id=database_id)
        except Exception:
            firebase_admin.delete_app(app)
            raise
        return Connection(admin_app=app, db=db)

    def teardown(self, connection: Connection) -> None:
        close = getattr(connection.db, "close", None)
        try:
            if callable(close):
                close()
        finally:
            firebase_admin.delete_app(connection.admin_app)


class ConnectionManager:
    """Owns the process-wide connection; the only code allowed to replace it."""

    def __init__(
        self,
        backend: ConnectionBackend | None = None,
        *,
        credential_loader: CredentialLoader = load_service_account,
    ) -> None:
        self._backend = backend or FirebaseAdminBackend()
        self._load_credential = credential_loader
        self._connection: Connection | None = None
        self._project_id: str | None = None
        self._database_id: str | None = None

    @property
    def connection(self) -> Connection | None:
        """Current connection, or ``None`` when disconnected."""

        return self._connection

    @property
    def connected(self) -> bool:
        return self._connection is not None

    @property
    def project_id(self) -> str | None:
        return self._project_id if self._connection else None

    @property
    def database_id(self) -> str | None:
        return self._database_id if self._connection else None

    async def connect(self, request: ConnectRequest | Mapping[str, Any] | str) -> ConnectResult:
        """Connect with a service-account file, replacing any existing connection."""

        try:
            params = ConnectRequest.coerce(request)
            credential = await asyncio.to_thread(self._load_credential, params.service_account_path)
            await self._teardown_current()
            connection = await asyncio.to_thread(self._backend.initialize, credential, params.database_id)
        except Exception as exc:
            failure = normalize_error(exc)
            LOG.warning("Connect failed", extra={"error_kind": failure.kind.value})
            return ConnectResult(success=False, error=failure.message, error_kind=failure.kind)
        # Another connect may have installed its connection while this one initialized.
        previous, self._connection = self._connection, connection
        self._project_id = credential.project_id
        self._database_id = params.database_id
        if previous is not None:
            await self._release(previous)
        LOG.info(
            "Connected to Firestore",
            extra={"project_id": credential.project_id, "database_id": params.database_id},
        )
        return ConnectResult(success=True, project_id=credential.project_id, database_id=params.database_id)

    async def disconnect(self) -> DisconnectResult:
        """Tear down the current connection; a no-op when already disconnected."""

        await self._teardown_current()
        return DisconnectResult(success=True)

    async def get_collections(self, *, timeout: float | None = None) -> CollectionsResult:
        connection = self._connection
        if connection is None:
            return CollectionsResult(
                success=False,
                error=NOT_CONNECTED_MESSAGE,
                error_kind=ErrorKind.NOT_CONNECTED,
            )
        try:
            collections = await with_deadline(
                asyncio.to_thread(list_collection_ids, connection.db),
                timeout,
            )
        except Exception as exc:
            failure = normalize_error(exc)
            LOG.warning("Listing collections failed", extra={"error_kind": failure.kind.value})
            return CollectionsResult(success=False, error=failure.message, error_kind=failure.kind)
        return CollectionsResult(success=True, collections=tuple(collections))

    async def _teardown_current(self) -> None:
        connection = self._connection
        if connection is None:
            return
        self._connection = None
        await self._release(connection)

    async def _release(self, connection: Connection) -> None:
        try:
            await asyncio.to_thread(self._backend.teardown, connection)
        except Exception:
            LOG.warning(
                "Failed to tear down previous connection",
                exc_info=True,
                extra={"project_id": self._project_id},
            )


__all__ = [
    "ConnectionBackend",
    "ConnectionManager",
    "CredentialLoader",
    "FirebaseAdminBackend",
]
