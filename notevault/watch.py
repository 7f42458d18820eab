"""Turning batches of raw filesystem events into index operations."""

from __future__ import annotations

import os
from dataclasses import dataclass, replace
from enum import Enum
from typing import Iterable, Optional, Union

from .vault import Vault, VaultError, VaultPath


class WatchKind(Enum):
    """Coarse kind of a filesystem change."""

    CREATE = "create"
    MODIFY = "modify"
    MODIFY_DATA = "modify_data"
    MODIFY_METADATA = "modify_metadata"
    REMOVE = "remove"
    RENAME = "rename"
    ACCESS = "access"
    OTHER = "other"


class CauseType(Enum):
    """Why a path was (re)indexed."""

    MANUAL = "manual"
    INITIAL_BUILD = "initial_build"
    WATCH = "watch"


class EventKind(Enum):
    """Kind of a raw filesystem watch event; values are their display names."""

    CREATE = "Create"
    REMOVE = "Remove"
    ACCESS = "Access"
    MODIFY_NAME = "Modify(Name)"
    MODIFY_METADATA = "Modify(Metadata)"
    MODIFY_DATA = "Modify(Data)"
    MODIFY = "Modify(Any)"
    OTHER = "Other"


@dataclass(frozen=True)
class ReindexCause:
    """The reason for an index change; watch causes carry the event kinds."""

    type: CauseType
    kind: Optional[WatchKind] = None
    event_kind: Optional[str] = None

    @classmethod
    def manual(cls) -> "ReindexCause":
        return cls(CauseType.MANUAL)

    @classmethod
    def initial_build(cls) -> "ReindexCause":
        return cls(CauseType.INITIAL_BUILD)

    @classmethod
    def watch(cls, kind: WatchKind, event_kind: str) -> "ReindexCause":
        return cls(CauseType.WATCH, kind, event_kind)


@dataclass(frozen=True)
class RawEvent:
    """A filesystem event as reported by a watcher: its kind and absolute paths."""

    kind: EventKind
    paths: tuple[Union[str, "os.PathLike[str]"], ...]

    def __post_init__(self) -> None:
        object.__setattr__(self, "paths", tuple(self.paths))


@dataclass(frozen=True)
class UpsertOp:
    """Index (or re-index) a path."""

    path: VaultPath
    cause: ReindexCause


@dataclass(frozen=True)
class RemoveOp:
    """Drop a path from the index."""

    path: VaultPath
    cause: ReindexCause


@dataclass(frozen=True)
class RenameOp:
    """Move a path's index entry to a new path."""

    from_path: VaultPath
    to_path: VaultPath
    cause: ReindexCause


Op = Union[UpsertOp, RemoveOp, RenameOp]

_WATCH_KINDS = {
    EventKind.CREATE: WatchKind.CREATE,
    EventKind.REMOVE: WatchKind.REMOVE,
    EventKind.ACCESS: WatchKind.ACCESS,
    EventKind.MODIFY_NAME: WatchKind.RENAME,
    EventKind.MODIFY_METADATA: WatchKind.MODIFY_METADATA,
    EventKind.MODIFY_DATA: WatchKind.MODIFY_DATA,
    EventKind.MODIFY: WatchKind.MODIFY,
    EventKind.OTHER: WatchKind.OTHER,
}

_WATCH_RANKS = {
    WatchKind.REMOVE: 90,
    WatchKind.RENAME: 80,
    WatchKind.CREATE: 70,
    WatchKind.MODIFY_DATA: 60,
    WatchKind.MODIFY: 50,
    WatchKind.MODIFY_METADATA: 40,
    WatchKind.ACCESS: 30,
    WatchKind.OTHER: 20,
}

# Reading files (including our own reads) produces these, so they are not changes.
_IGNORED_KINDS = frozenset({EventKind.ACCESS, EventKind.MODIFY_METADATA})


def watch_kind_for(kind: EventKind) -> WatchKind:
    """The coarse watch kind of a raw event kind."""
    return _WATCH_KINDS[kind]


def cause_for(kind: EventKind) -> ReindexCause:
    """The reindex cause recorded for a raw event kind."""
    return ReindexCause.watch(watch_kind_for(kind), kind.value)


def rank_cause(cause: ReindexCause) -> int:
    """Priority of a cause; the higher one wins when causes are merged."""
    if cause.type is CauseType.MANUAL:
        return 100
    if cause.type is CauseType.INITIAL_BUILD:
        return 10
    assert cause.kind is not None
    return _WATCH_RANKS[cause.kind]


def merge_cause(old: ReindexCause, new: ReindexCause) -> ReindexCause:
    """Keep the higher-ranked cause, preferring the newer one on a tie."""
    return new if rank_cause(new) >= rank_cause(old) else old


def _to_vault_path(vault: Vault, path: Union[str, "os.PathLike[str]"]) -> Optional[VaultPath]:
    try:
        return vault.to_rel(path)
    except VaultError:
        return None


def events_to_ops(vault: Vault, batch: Iterable[RawEvent]) -> list[Op]:
    """Collapse a batch of events into index operations, one per path and kind."""
    ops: list[Op] = []
    upsert_ix: dict[VaultPath, int] = {}
    remove_ix: dict[VaultPath, int] = {}

    def record(
        index: dict[VaultPath, int],
        rel: VaultPath,
        cause: ReindexCause,
        make: type,
    ) -> None:
        if rel in index:
            pos = index[rel]
            existing = ops[pos]
            ops[pos] = replace(existing, cause=merge_cause(existing.cause, cause))
        else:
            index[rel] = len(ops)
            ops.append(make(rel, cause))

    for event in batch:
        if event.kind in _IGNORED_KINDS:
            continue
        cause = cause_for(event.kind)

        if event.kind is EventKind.MODIFY_NAME and len(event.paths) == 2:
            src = _to_vault_path(vault, event.paths[0])
            dst = _to_vault_path(vault, event.paths[1])
            if src is not None and dst is not None:
                ops.append(
                    RenameOp(src, dst, ReindexCause.watch(WatchKind.RENAME, event.kind.value))
                )
        elif event.kind is EventKind.REMOVE:
            for path in event.paths:
                rel = _to_vault_path(vault, path)
                if rel is not None:
                    record(remove_ix, rel, cause, RemoveOp)
        else:
            for path in event.paths:
                rel = _to_vault_path(vault, path)
                if rel is None or not vault.is_indexable_rel(rel):
                    continue
                record(upsert_ix, rel, cause, UpsertOp)

    return ops