"""Value types shared by the parser, the index and the store."""

from __future__ import annotations

from dataclasses import dataclass
from enum import IntEnum
from typing import Optional


@dataclass(frozen=True, order=True)
class Tag:
    """A normalised (lower-case, no leading '#') tag."""

    name: str

    def __str__(self) -> str:
        return self.name


class TaskStatus(IntEnum):
    """Status of a checklist item; values are the stored codes."""

    TODO = 0
    DONE = 1
    IN_PROGRESS = 2
    CANCELLED = 3
    BLOCKED = 4


class LinkKind(IntEnum):
    """Syntax a link was written in; values are the stored codes."""

    WIKI = 0
    MARKDOWN = 1
    AUTO_URL = 2
    OBSIDIAN_URI = 3


class TargetType(IntEnum):
    """What a link points at; values are the stored codes."""

    INTERNAL = 0
    EXTERNAL_URL = 1
    OBSIDIAN_URI = 2


@dataclass(frozen=True, order=True)
class LinkTarget:
    """The destination of a link."""

    type: TargetType
    value: str

    @classmethod
    def internal(cls, reference: str) -> "LinkTarget":
        return cls(TargetType.INTERNAL, reference)

    @classmethod
    def external_url(cls, url: str) -> "LinkTarget":
        return cls(TargetType.EXTERNAL_URL, url)

    @classmethod
    def obsidian_uri(cls, raw: str) -> "LinkTarget":
        return cls(TargetType.OBSIDIAN_URI, raw)


class SubpathKind(IntEnum):
    """Kind of fragment after a link target; values are the stored codes."""

    HEADING = 0
    BLOCK = 1


@dataclass(frozen=True, order=True)
class Subpath:
    """A heading or block reference inside a note."""

    kind: SubpathKind
    value: str


@dataclass(frozen=True, order=True)
class LinkLocation:
    """One-based line and column of a link occurrence."""

    line: int
    column: int


@dataclass(frozen=True)
class Link:
    """One occurrence of a link in a note."""

    kind: LinkKind
    embed: bool
    display: Optional[str]
    target: LinkTarget
    subpath: Optional[Subpath]
    location: LinkLocation
    raw: str