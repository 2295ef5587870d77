"""Restricted namespace for user-authored query source.

Query source is plain Python that defines a zero-argument ``run`` function::

    def run():
        return db.collection("users").where(filter=FieldFilter("age", ">", 30)).get()

Composite filters can be spelled with the ``Filter`` shorthands, e.g.
``Filter.or_(Filter.where("age", ">", 30), Filter.where("vip", "==", True))``.

The source is validated before it runs and executed against a namespace that
only exposes ``db``, the ``firestore`` value namespace, and a curated set of
builtins. This guards against accidental over-reach (imports, file access,
rebinding ``db``); it is not a security boundary.

``db`` is the synchronous client. A plain ``def run()`` is executed in a worker
thread, but an ``async def run()`` is awaited on the UI event loop, so any
``db`` call inside it blocks the interface until Firestore answers. Prefer
``def run()`` unless the body only awaits other coroutines.
"""

from __future__ import annotations

import ast
import builtins
from dataclasses import dataclass
from datetime import datetime, timezone
from types import CodeType, MappingProxyType
from typing import Any, Callable, Mapping

from google.api_core.datetime_helpers import DatetimeWithNanoseconds
from google.cloud import firestore
from google.cloud.firestore_v1.base_query import And, FieldFilter, Or
from google.cloud.firestore_v1.field_path import FieldPath

from .errors import QuerySourceError

ENTRY_POINT = "run"
SOURCE_LABEL = "<query>"

_SAFE_BUILTIN_NAMES = (
    "abs",
    "all",
    "any",
    "bool",
    "dict",
    "divmod",
    "enumerate",
    "filter",
    "float",
    "frozenset",
    "int",
    "isinstance",
    "len",
    "list",
    "map",
    "max",
    "min",
    "next",
    "range",
    "reversed",
    "round",
    "set",
    "slice",
    "sorted",
    "str",
    "sum",
    "tuple",
    "zip",
    "Exception",
    "KeyError",
    "IndexError",
    "TypeError",
    "ValueError",
)

SAFE_BUILTINS: Mapping[str, Any] = MappingProxyType(
    {name: getattr(builtins, name) for name in _SAFE_BUILTIN_NAMES if hasattr(builtins, name)}
)

# Frame/generator internals reach the host globals even without dunders.
_BLOCKED_ATTRIBUTES = frozenset(
    {"gi_frame", "gi_code", "cr_frame", "cr_code", "ag_frame", "ag_code", "f_globals", "f_locals", "f_builtins", "f_back"}
)


class ReadOnlyNamespace:
    """Attribute bag whose members cannot be reassigned from query code."""

    __slots__ = ("_name", "_members")

    def __init__(self, name: str, members: Mapping[str, Any]) -> None:
        object.__setattr__(self, "_name", name)
        object.__setattr__(self, "_members", MappingProxyType(dict(members)))

    def __getattr__(self, item: str) -> Any:
        try:
            return self._members[item]
        except KeyError:
            raise AttributeError(f"'{self._name}' has no attribute '{item}'") from None

    def __setattr__(self, key: str, value: Any) -> None:
        raise AttributeError(f"'{self._name}' is read-only")

    def __delattr__(self, key: str) -> None:
        raise AttributeError(f"'{self._name}' is read-only")

    def __dir__(self) -> list[str]:
        return sorted(self._members)

    def __repr__(self) -> str:
        return f"<{self._name} namespace: {', '.join(sorted(self._members))}>"


class TimestampFactory:
    """Builds Firestore timestamps (``DatetimeWithNanoseconds``) for query values."""

    @staticmethod
    def now() -> DatetimeWithNanoseconds:
        return _with_nanos(datetime.now(tz=timezone.utc))

    @staticmethod
    def from_datetime(value: datetime) -> DatetimeWithNanoseconds:
        return _with_nanos(value)

    @staticmethod
    def from_millis(millis: int | float) -> DatetimeWithNanoseconds:
        return _with_nanos(datetime.fromtimestamp(millis / 1000, tz=timezone.utc))

    @staticmethod
    def from_iso(text: str) -> DatetimeWithNanoseconds:
        return _with_nanos(datetime.fromisoformat(text))


def _with_nanos(value: datetime) -> DatetimeWithNanoseconds:
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return DatetimeWithNanoseconds(
        value.year,
        value.month,
        value.day,
        value.hour,
        value.minute,
        value.second,
        value.microsecond,
        tzinfo=value.tzinfo,
    )


def firestore_values() -> ReadOnlyNamespace:
    """Native Firestore value constructors exposed to query code."""

    return ReadOnlyNamespace(
        "firestore",
        {
            "SERVER_TIMESTAMP": firestore.SERVER_TIMESTAMP,
            "DELETE_FIELD": firestore.DELETE_FIELD,
            "Increment": firestore.Increment,
            "ArrayUnion": firestore.ArrayUnion,
            "ArrayRemove": firestore.ArrayRemove,
            "GeoPoint": firestore.GeoPoint,
            "Timestamp": TimestampFactory,
            "FieldFilter": FieldFilter,
            "And": And,
            "Or": Or,
            "Query": firestore.Query,
            "FieldPath": FieldPath,
        },
    )


def filter_builders() -> ReadOnlyNamespace:
    """``Filter.where``/``Filter.and_``/``Filter.or_`` shorthands for composite filters."""

    def where(field_path: str, op_string: str, value: Any) -> FieldFilter:
        return FieldFilter(field_path, op_string, value)

    def and_(*filters: Any) -> And:
        return And(filters=list(filters))

    def or_(*filters: Any) -> Or:
        return Or(filters=list(filters))

    return ReadOnlyNamespace("Filter", {"where": where, "and_": and_, "or_": or_})


def build_namespace(db: Any) -> dict[str, Any]:
    """Globals visible to query code; rebuilt for every execution."""

    values = firestore_values()
    return {
        "__builtins__": dict(SAFE_BUILTINS),
        "__name__": "firedesk_query",
        "db": db,
        "firestore": values,
        "SERVER_TIMESTAMP": values.SERVER_TIMESTAMP,
        "Timestamp": values.Timestamp,
        "GeoPoint": values.GeoPoint,
        "FieldFilter": values.FieldFilter,
        "Filter": filter_builders(),
        "And": values.And,
        "Or": values.Or,
    }


RESERVED_NAMES = frozenset(
    {"db", "firestore", "SERVER_TIMESTAMP", "Timestamp", "GeoPoint", "FieldFilter", "Filter", "And", "Or"}
)


@dataclass(frozen=True, slots=True)
class CompiledQuery:
    """Validated, compiled query source ready to run against a database."""

    source: str
    code: CodeType

    def entry_point(self, db: Any) -> Callable[[], Any]:
        """Execute the module body and return the ``run`` callable."""

        namespace = build_namespace(db)
        exec(self.code, namespace)
        run = namespace.get(ENTRY_POINT)
        if not callable(run):
            raise QuerySourceError(f"Query source must define a {ENTRY_POINT}() function.")
        return run

    def invoke(self, db: Any) -> Any:
        return self.entry_point(db)()


def compile_query(source: str) -> CompiledQuery:
    """Parse, validate, and compile query source.

    Raises ``SyntaxError`` for unparsable source and :class:`QuerySourceError`
    when the source reaches outside the whitelisted namespace.
    """

    if not source or not source.strip():
        raise QuerySourceError("Provide query source to execute.")
    tree = ast.parse(source, filename=SOURCE_LABEL, mode="exec")
    _QueryValidator().visit(tree)
    code = compile(tree, SOURCE_LABEL, "exec")
    return CompiledQuery(source=source, code=code)


class _QueryValidator(ast.NodeVisitor):
    def visit_Import(self, node: ast.Import) -> None:
        self._reject(node, "imports are not available in queries")

    def visit_ImportFrom(self, node: ast.ImportFrom) -> None:
        self._reject(node, "imports are not available in queries")

    def visit_Global(self, node: ast.Global) -> None:
        self._reject(node, "'global' is not available in queries")

    def visit_Nonlocal(self, node: ast.Nonlocal) -> None:
        self._reject(node, "'nonlocal' is not available in queries")

    def visit_Attribute(self, node: ast.Attribute) -> None:
        if node.attr.startswith("__") or node.attr in _BLOCKED_ATTRIBUTES:
            self._reject(node, f"access to '{node.attr}' is not allowed")
        self.generic_visit(node)

    def visit_Name(self, node: ast.Name) -> None:
        if node.id.startswith("__"):
            self._reject(node, f"access to '{node.id}' is not allowed")
        if node.id in RESERVED_NAMES and not isinstance(node.ctx, ast.Load):
            self._reject(node, f"'{node.id}' is read-only")

    def visit_FunctionDef(self, node: ast.FunctionDef) -> None:
        self._check_binding(node, node.name)
        self.generic_visit(node)

    def visit_AsyncFunctionDef(self, node: ast.AsyncFunctionDef) -> None:
        self._check_binding(node, node.name)
        self.generic_visit(node)

    def visit_ClassDef(self, node: ast.ClassDef) -> None:
        self._reject(node, "class definitions are not available in queries")

    def visit_ExceptHandler(self, node: ast.ExceptHandler) -> None:
        if node.name:
            self._check_binding(node, node.name)
        self.generic_visit(node)

    def _check_binding(self, node: ast.AST, name: str) -> None:
        if name in RESERVED_NAMES:
            self._reject(node, f"'{name}' is read-only")
        if name.startswith("__"):
            self._reject(node, f"access to '{name}' is not allowed")

    @staticmethod
    def _reject(node: ast.AST, reason: str) -> None:
        line = getattr(node, "lineno", None)
        where = f" (line {line})" if line is not None else ""
        raise QuerySourceError(f"Query rejected{where}: {reason}.")


__all__ = [
    "CompiledQuery",
    "ENTRY_POINT",
    "RESERVED_NAMES",
    "ReadOnlyNamespace",
    "SAFE_BUILTINS",
    "TimestampFactory",
    "build_namespace",
    "compile_query",
    "filter_builders",
    "firestore_values",
]
