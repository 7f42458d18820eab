"""Filtering, sorting and limiting notes by fields, tags and paths, and querying tasks."""

from __future__ import annotations

import math
import operator
from dataclasses import dataclass, replace
from enum import Enum
from functools import cmp_to_key
from typing import Any, Callable, Iterable, Mapping, Optional, Protocol, Union

from .model import Tag, TaskStatus
from .vault import VaultPath

_I64_MIN = -(2**63)
_I64_MAX = 2**63 - 1


class _TaskLike(Protocol):
    line: int
    status: TaskStatus
    text: str


class _NoteLike(Protocol):
    fields: Mapping[str, Any]
    tags: Iterable[Tag]
    tasks: Iterable[_TaskLike]


def normalize_field_key(key: str) -> Optional[str]:
    """Canonical form of a field name: trimmed and lower-cased, or None if empty."""
    k = key.strip().lower()
    return k or None


class CmpOp(Enum):
    """Numeric comparison used by field predicates."""

    GT = ">"
    GTE = ">="
    LT = "<"
    LTE = "<="

    def apply(self, left: float, right: float) -> bool:
        return _CMP_FUNCS[self](left, right)


_CMP_FUNCS: dict[CmpOp, Callable[[float, float], bool]] = {
    CmpOp.GT: operator.gt,
    CmpOp.GTE: operator.ge,
    CmpOp.LT: operator.lt,
    CmpOp.LTE: operator.le,
}


class SortDir(Enum):
    """Sort direction."""

    ASC = "asc"
    DESC = "desc"


@dataclass(frozen=True)
class Sort:
    """Sort order: by a field when ``key`` is set, otherwise by path."""

    key: Optional[str]
    direction: SortDir


@dataclass(frozen=True)
class QueryHit:
    """A note matched by a query."""

    path: VaultPath


@dataclass(frozen=True)
class TaskHit:
    """A task matched by a task query."""

    path: VaultPath
    line: int
    status: TaskStatus
    text: str


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def _values_equal(a: Any, b: Any) -> bool:
    if isinstance(a, bool) or isinstance(b, bool):
        return isinstance(a, bool) and isinstance(b, bool) and a == b
    if _is_number(a) and _is_number(b):
        return float(a) == float(b)
    if isinstance(a, list) and isinstance(b, list):
        return len(a) == len(b) and all(_values_equal(x, y) for x, y in zip(a, b))
    return type(a) is type(b) and a == b


@dataclass(frozen=True)
class _Exists:
    key: str

    def matches(self, fields: Mapping[str, Any]) -> bool:
        return self.key in fields


@dataclass(frozen=True)
class _Equals:
    key: str
    value: Any

    def matches(self, fields: Mapping[str, Any]) -> bool:
        if self.key not in fields:
            return False
        v = fields[self.key]
        if isinstance(v, list):
            return any(_values_equal(item, self.value) for item in v)
        return _values_equal(v, self.value)


@dataclass(frozen=True)
class _Contains:
    key: str
    needle: str

    def matches(self, fields: Mapping[str, Any]) -> bool:
        if self.key not in fields:
            return False
        v = fields[self.key]
        if isinstance(v, str):
            return self.needle in v
        if isinstance(v, list):
            return any(isinstance(item, str) and self.needle in item for item in v)
        return False


@dataclass(frozen=True)
class _Compare:
    key: str
    op: CmpOp
    rhs: float

    def matches(self, fields: Mapping[str, Any]) -> bool:
        if self.key not in fields:
            return False
        v = fields[self.key]
        if _is_number(v):
            return self.op.apply(float(v), self.rhs)
        if isinstance(v, list):
            return any(_is_number(item) and self.op.apply(float(item), self.rhs) for item in v)
        return False


_Predicate = Union[_Exists, _Equals, _Contains, _Compare]


def _scaled(n: float) -> int:
    f = float(n) * 1_000_000.0
    if math.isnan(f):
        return 0
    if f >= _I64_MAX:
        return _I64_MAX
    if f <= _I64_MIN:
        return _I64_MIN
    return int(f)


def _scalar_sort_value(v: Any) -> Optional[tuple[int, Any]]:
    if isinstance(v, bool):
        return (0, 1 if v else 0)
    if _is_number(v):
        return (0, _scaled(v))
    if isinstance(v, str):
        return (1, v)
    return None


def _sort_value(fields: Mapping[str, Any], key: str) -> Optional[tuple[int, Any]]:
    v = fields.get(key)
    if isinstance(v, list):
        return next(
            (sv for sv in map(_scalar_sort_value, v) if sv is not None),
            None,
        )
    return _scalar_sort_value(v)


def _cmp(a: Any, b: Any) -> int:
    return (a > b) - (a < b)


def _check_limit(n: int) -> int:
    if n < 0:
        raise ValueError("limit must not be negative")
    return n


@dataclass(frozen=True)
class Query:
    """An immutable note query built by chaining methods."""

    path_prefix: Optional[str] = None
    tag: Optional[Tag] = None
    predicates: tuple[_Predicate, ...] = ()
    sort: Optional[Sort] = None
    max_results: Optional[int] = None

    @classmethod
    def notes(cls) -> "Query":
        """A query matching every note."""
        return cls()

    def from_path_prefix(self, prefix: str) -> "Query":
        return replace(self, path_prefix=prefix)

    def from_tag(self, tag: str) -> "Query":
        return replace(self, tag=Tag(tag.strip().lstrip("#").lower()))

    def where_field(self, key: str) -> "FieldPredicateBuilder":
        return FieldPredicateBuilder(self, key)

    def sort_by_path(self, direction: SortDir) -> "Query":
        return replace(self, sort=Sort(None, direction))

    def sort_by_field(self, key: str, direction: SortDir) -> "Query":
        k = normalize_field_key(key)
        if k is None:
            return self
        return replace(self, sort=Sort(k, direction))

    def limit(self, n: int) -> "Query":
        return replace(self, max_results=_check_limit(n))

    def _with_predicate(self, predicate: _Predicate) -> "Query":
        return replace(self, predicates=self.predicates + (predicate,))

    def execute(self, notes: Mapping[VaultPath, _NoteLike]) -> list[QueryHit]:
        """Run the query against a mapping of note paths to note metadata."""
        if self.tag is not None:
            candidates = [p for p, note in notes.items() if self.tag in note.tags]
        else:
            candidates = list(notes)
        candidates.sort()

        if self.path_prefix is not None:
            candidates = [p for p in candidates if str(p).startswith(self.path_prefix)]

        candidates = [
            p
            for p in candidates
            if all(pred.matches(notes[p].fields) for pred in self.predicates)
        ]

        if self.sort is not None:
            self._sort(notes, candidates, self.sort)

        if self.max_results is not None:
            candidates = candidates[: self.max_results]

        return [QueryHit(p) for p in candidates]

    @staticmethod
    def _sort(
        notes: Mapping[VaultPath, _NoteLike], paths: list[VaultPath], sort: Sort
    ) -> None:
        descending = sort.direction is SortDir.DESC
        key = sort.key
        if key is None:
            paths.sort(reverse=descending)
            return

        def compare(a: VaultPath, b: VaultPath) -> int:
            ak = _sort_value(notes[a].fields, key)
            bk = _sort_value(notes[b].fields, key)
            # Missing values always go last, whatever the direction.
            if ak is None and bk is None:
                return _cmp(a, b)
            if ak is None:
                return 1
            if bk is None:
                return -1
            primary = _cmp(bk, ak) if descending else _cmp(ak, bk)
            return primary or _cmp(a, b)

        paths.sort(key=cmp_to_key(compare))


@dataclass(frozen=True)
class FieldPredicateBuilder:
    """Adds a condition on one field to a query."""

    query: Query
    key: str

    def _add(self, make: Callable[[str], _Predicate]) -> Query:
        k = normalize_field_key(self.key)
        if k is None:
            return self.query
        return self.query._with_predicate(make(k))

    def exists(self) -> Query:
        return self._add(_Exists)

    def eq(self, value: Any) -> Query:
        return self._add(lambda k: _Equals(k, value))

    def contains(self, needle: str) -> Query:
        return self._add(lambda k: _Contains(k, needle))

    def gt(self, rhs: float) -> Query:
        return self._add(lambda k: _Compare(k, CmpOp.GT, float(rhs)))

    def gte(self, rhs: float) -> Query:
        return self._add(lambda k: _Compare(k, CmpOp.GTE, float(rhs)))

    def lt(self, rhs: float) -> Query:
        return self._add(lambda k: _Compare(k, CmpOp.LT, float(rhs)))

    def lte(self, rhs: float) -> Query:
        return self._add(lambda k: _Compare(k, CmpOp.LTE, float(rhs)))


@dataclass(frozen=True)
class TaskQuery:
    """An immutable task query built by chaining methods."""

    path_prefix: Optional[str] = None
    status_filter: Optional[TaskStatus] = None
    needle: Optional[str] = None
    max_results: Optional[int] = None

    @classmethod
    def all(cls) -> "TaskQuery":
        """A query matching every task."""
        return cls()

    def from_path_prefix(self, prefix: str) -> "TaskQuery":
        return replace(self, path_prefix=prefix)

    def status(self, status: TaskStatus) -> "TaskQuery":
        return replace(self, status_filter=status)

    def contains_text(self, needle: str) -> "TaskQuery":
        return replace(self, needle=needle)

    def limit(self, n: int) -> "TaskQuery":
        return replace(self, max_results=_check_limit(n))

    def execute(self, notes: Mapping[VaultPath, _NoteLike]) -> list[TaskHit]:
        """Tasks of the given notes that match, ordered by path then line."""
        hits = [
            TaskHit(path, task.line, task.status, task.text)
            for path, note in notes.items()
            if self.path_prefix is None or str(path).startswith(self.path_prefix)
            for task in note.tasks
            if (self.status_filter is None or task.status == self.status_filter)
            and (self.needle is None or self.needle in task.text)
        ]
        hits.sort(key=lambda h: (h.path, h.line))
        if self.max_results is not None:
            hits = hits[: self.max_results]
        return hits