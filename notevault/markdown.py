"""Parsing of Markdown notes: frontmatter, title, tags, links, inline fields and tasks."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Iterator, Optional

import yaml

from .model import (
    Link,
    LinkKind,
    LinkLocation,
    LinkTarget,
    Subpath,
    SubpathKind,
    Tag,
    TargetType,
    TaskStatus,
)
from .vault import VaultPath

_URL_PREFIXES = ("http://", "https://", "mailto:")
_TASK_MARKS = {
    " ": TaskStatus.TODO,
    "x": TaskStatus.DONE,
    "X": TaskStatus.DONE,
    ">": TaskStatus.IN_PROGRESS,
    "-": TaskStatus.CANCELLED,
    "?": TaskStatus.BLOCKED,
}
_ASCII_DIGITS = "0123456789"


class _FrontmatterLoader(yaml.SafeLoader):
    """Safe YAML loader that keeps dates and times as plain strings."""


_FrontmatterLoader.yaml_implicit_resolvers = {
    first: [(tag, rx) for tag, rx in resolvers if tag != "tag:yaml.org,2002:timestamp"]
    for first, resolvers in yaml.SafeLoader.yaml_implicit_resolvers.items()
}


class FrontmatterState(Enum):
    """Whether a note has frontmatter and whether it parsed."""

    NONE = "none"
    VALID = "valid"
    BROKEN = "broken"


@dataclass(frozen=True)
class Frontmatter:
    """Result of reading a note's YAML frontmatter block."""

    state: FrontmatterState
    value: Any = None
    error: Optional[str] = None

    @classmethod
    def none(cls) -> "Frontmatter":
        return cls(FrontmatterState.NONE)

    @classmethod
    def valid(cls, value: Any) -> "Frontmatter":
        return cls(FrontmatterState.VALID, value=value)

    @classmethod
    def broken(cls, error: str) -> "Frontmatter":
        return cls(FrontmatterState.BROKEN, error=error)


@dataclass(frozen=True)
class ParsedTask:
    """A checklist item found in a note body."""

    line: int
    status: TaskStatus
    text: str


@dataclass
class ParsedNote:
    """Everything extracted from one Markdown note."""

    title: str
    tags: set[Tag] = field(default_factory=set)
    links: set[LinkTarget] = field(default_factory=set)
    link_occurrences: list[Link] = field(default_factory=list)
    frontmatter: Frontmatter = field(default_factory=Frontmatter.none)
    inline_fields: list[tuple[str, str]] = field(default_factory=list)
    tasks: list[ParsedTask] = field(default_factory=list)


def _lines(text: str) -> Iterator[str]:
    """Split like a line iterator: '\\n' or '\\r\\n' endings, no empty trailing line."""
    pieces = text.split("\n")
    last = pieces.pop()
    for piece in pieces:
        yield piece[:-1] if piece.endswith("\r") else piece
    if last:
        yield last


def _is_fence(line: str) -> bool:
    return line.lstrip().startswith("```")


def _unfenced_lines(body: str, start_line: int) -> Iterator[tuple[int, str]]:
    """Yield (line number, line) outside fenced code blocks."""
    in_fenced = False
    for offset, line in enumerate(_lines(body)):
        if _is_fence(line):
            in_fenced = not in_fenced
            continue
        if not in_fenced:
            yield start_line + offset, line


def split_frontmatter(content: str) -> tuple[Frontmatter, str, int]:
    """Split a note into frontmatter, body and the body's first line number."""
    if content.startswith("---\n"):
        rest = content[4:]
    elif content.startswith("---\r\n"):
        rest = content[5:]
    else:
        return Frontmatter.none(), content, 1

    idx = 0
    while idx < len(rest):
        newline = rest.find("\n", idx)
        line_end = len(rest) if newline == -1 else newline + 1
        if rest[idx:line_end].rstrip("\r\n") == "---":
            fm_text = rest[:idx]
            body = rest[line_end:]
            start_line = 1 + content[: len(content) - len(body)].count("\n")
            try:
                value = yaml.load(fm_text, Loader=_FrontmatterLoader)
            except yaml.YAMLError as err:
                return Frontmatter.broken(str(err)), body, start_line
            return Frontmatter.valid(value), body, start_line
        idx = line_end

    return Frontmatter.broken("frontmatter fence not closed"), content, 1


def normalize_tag(raw: str) -> Optional[Tag]:
    """Normalise a tag: drop a leading '#', surrounding '/', and lower-case it."""
    s = raw.strip()
    if s.startswith("#"):
        s = s[1:]
    s = s.strip()
    if not s:
        return None
    s = s.strip("/").strip()
    if not s:
        return None
    return Tag(s.lower())


def _tags_from_yaml_value(value: Any) -> set[Tag]:
    out: set[Tag] = set()
    if isinstance(value, list):
        candidates = [item for item in value if isinstance(item, str)]
    elif isinstance(value, str):
        candidates = [p for p in value.replace(",", " ").split() if p]
    else:
        candidates = []
    for candidate in candidates:
        tag = normalize_tag(candidate)
        if tag is not None:
            out.add(tag)
    return out


def _frontmatter_tags(fm: Any) -> set[Tag]:
    out: set[Tag] = set()
    if not isinstance(fm, dict):
        return out
    for key in ("tags", "tag"):
        if key in fm:
            out |= _tags_from_yaml_value(fm[key])
    return out


def _extract_title(path: VaultPath, fm: Any, body: str) -> str:
    if isinstance(fm, dict):
        title = fm.get("title")
        if isinstance(title, str) and title.strip():
            return title.strip()

    for _, line in _unfenced_lines(body, 1):
        if line.startswith("# "):
            heading = line[2:].strip()
            if heading:
                return heading

    return path.stem or "untitled"


def _is_tag_char(c: str) -> bool:
    return (c.isascii() and c.isalnum()) or c in "_-/"


def _inline_tags(line: str) -> set[Tag]:
    out: set[Tag] = set()
    n = len(line)
    i = 0
    while i < n:
        if line[i] != "#":
            i += 1
            continue
        if i + 1 < n and line[i + 1] == " ":
            i += 1
            continue
        if i > 0:
            prev = line[i - 1]
            if prev.isalnum() or prev == "/":
                i += 1
                continue
        j = i + 1
        while j < n and _is_tag_char(line[j]):
            j += 1
        if j > i + 1:
            tag = normalize_tag(line[i + 1 : j])
            if tag is not None:
                out.add(tag)
        i = max(j, i + 1)
    return out


def _non_empty_subpath(kind: SubpathKind, value: str) -> Optional[Subpath]:
    return Subpath(kind, value) if value else None


def _wikilink_components(
    raw: str,
) -> Optional[tuple[LinkTarget, Optional[Subpath], Optional[str]]]:
    s = raw.strip()
    if not s:
        return None

    display: Optional[str] = None
    before_alias = s
    if "|" in s:
        left, right = s.split("|", 1)
        before_alias = left.strip()
        display = right.strip() or None

    subpath: Optional[Subpath] = None
    target_raw = before_alias
    if "^" in before_alias:
        left, right = before_alias.split("^", 1)
        target_raw = left.strip()
        subpath = _non_empty_subpath(SubpathKind.BLOCK, right.strip())
    elif "#" in before_alias:
        left, right = before_alias.split("#", 1)
        target_raw = left.strip()
        subpath = _non_empty_subpath(SubpathKind.HEADING, right.strip())

    target_raw = target_raw.strip()
    if not target_raw:
        return None
    return LinkTarget.internal(target_raw), subpath, display


def _markdown_target(raw: str) -> Optional[tuple[LinkTarget, Optional[Subpath]]]:
    s = raw.strip()
    if not s:
        return None
    if s.startswith("obsidian://"):
        return LinkTarget.obsidian_uri(s), None
    if s.startswith(_URL_PREFIXES):
        return LinkTarget.external_url(s), None
    if "#" in s:
        left, right = s.split("#", 1)
        left = left.strip()
        if not left:
            return None
        return LinkTarget.internal(left), _non_empty_subpath(
            SubpathKind.HEADING, right.strip()
        )
    return LinkTarget.internal(s), None


def _wikilinks(line: str, line_no: int) -> list[Link]:
    out: list[Link] = []
    n = len(line)
    i = 0
    while i + 1 < n:
        embed = line[i] == "!" and line.startswith("[[", i + 1)
        start = i + 1 if embed else i
        if line.startswith("[[", start):
            end = line.find("]]", start + 2)
            if end == -1:
                break
            inner = line[start + 2 : end]
            parts = _wikilink_components(inner)
            if parts is not None:
                target, subpath, display = parts
                out.append(
                    Link(
                        kind=LinkKind.WIKI,
                        embed=embed,
                        display=display,
                        target=target,
                        subpath=subpath,
                        location=LinkLocation(line_no, start + 1),
                        raw=inner,
                    )
                )
            i = end + 2
            continue
        i += 1
    return out


def _markdown_links(line: str, line_no: int) -> list[Link]:
    out: list[Link] = []
    n = len(line)
    i = 0
    while i < n:
        embed = line[i] == "!"
        start = i + 1 if embed else i
        if start >= n or line[start] != "[":
            i += 1
            continue
        j = line.find("]", start + 1)
        if j == -1 or j + 1 >= n or line[j + 1] != "(":
            i += 1
            continue
        display = line[start + 1 : j]
        k = line.find(")", j + 2)
        if k == -1:
            break
        raw = line[j + 2 : k]
        parsed = _markdown_target(raw)
        if parsed is not None:
            target, subpath = parsed
            kind = (
                LinkKind.OBSIDIAN_URI
                if target.type is TargetType.OBSIDIAN_URI
                else LinkKind.MARKDOWN
            )
            out.append(
                Link(
                    kind=kind,
                    embed=embed,
                    display=display if display.strip() else None,
                    target=target,
                    subpath=subpath,
                    location=LinkLocation(line_no, start + 1),
                    raw=raw,
                )
            )
        i = k + 1
    return out


def _autourls(line: str, line_no: int) -> list[Link]:
    out: list[Link] = []
    i = 0
    while True:
        start = line.find("<", i)
        if start == -1:
            break
        j = line.find(">", start + 1)
        if j == -1:
            break
        inner = line[start + 1 : j].strip()
        if inner.startswith(_URL_PREFIXES):
            out.append(
                Link(
                    kind=LinkKind.AUTO_URL,
                    embed=False,
                    display=None,
                    target=LinkTarget.external_url(inner),
                    subpath=None,
                    location=LinkLocation(line_no, start + 1),
                    raw=inner,
                )
            )
        i = j + 1
    return out


def _links_in_line(line: str, line_no: int) -> list[Link]:
    return _wikilinks(line, line_no) + _markdown_links(line, line_no) + _autourls(line, line_no)


def _field_kv(inner: str) -> Optional[tuple[str, str]]:
    if "::" not in inner:
        return None
    key, value = inner.split("::", 1)
    key, value = key.strip(), value.strip()
    if not key or not value:
        return None
    return key, value


def _is_field_key_char(c: str) -> bool:
    return (c.isascii() and c.isalnum()) or c in "_-/."


def _bracketed_fields(line: str) -> list[tuple[str, str]]:
    out: list[tuple[str, str]] = []
    i = 0
    while True:
        start = line.find("[", i)
        if start == -1:
            break
        end = line.find("]", start + 1)
        if end == -1:
            break
        kv = _field_kv(line[start + 1 : end])
        if kv is not None:
            out.append(kv)
        i = end + 1
    return out


def _bracket_ranges(line: str) -> list[tuple[int, int]]:
    out: list[tuple[int, int]] = []
    i = 0
    while True:
        start = line.find("[", i)
        if start == -1:
            break
        end = line.find("]", start + 1)
        if end == -1:
            break
        out.append((start, end + 1))
        i = end + 1
    return out


def _bare_fields(line: str) -> list[tuple[str, str]]:
    ranges = _bracket_ranges(line)
    n = len(line)
    i = 0
    while i + 1 < n:
        if line[i] != ":" or line[i + 1] != ":":
            i += 1
            continue
        if any(s <= i < e for s, e in ranges):
            i += 2
            continue
        ks = i
        while ks > 0 and _is_field_key_char(line[ks - 1]):
            ks -= 1
        key = line[ks:i].strip()
        value = line[i + 2 :].strip()
        if ks == i or not key or not value:
            i += 2
            continue
        return [(key, value)]
    return []


def extract_inline_fields(line: str) -> list[tuple[str, str]]:
    """Inline ``key:: value`` fields of one line, bracketed ones first."""
    return _bracketed_fields(line) + _bare_fields(line)


def parse_task_line(line: str) -> Optional[tuple[TaskStatus, str]]:
    """Parse a list item with a checkbox, returning its status and text."""
    rest = line.lstrip()
    if rest[:2] in ("- ", "* ", "+ "):
        rest = rest[2:]
    else:
        i = 0
        while i < len(rest) and rest[i] in _ASCII_DIGITS:
            i += 1
        if i == 0 or i + 1 >= len(rest):
            return None
        if rest[i] not in ".)" or rest[i + 1] != " ":
            return None
        rest = rest[i + 2 :]

    if len(rest) < 3 or rest[0] != "[" or rest[2] != "]":
        return None
    status = _TASK_MARKS.get(rest[1])
    if status is None:
        return None
    return status, rest[3:].lstrip()


def parse_markdown_note(path: VaultPath, content: str) -> ParsedNote:
    """Extract title, tags, links, fields and tasks from a note's text."""
    frontmatter, body, body_start_line = split_frontmatter(content)
    fm_value = frontmatter.value if frontmatter.state is FrontmatterState.VALID else None

    tags = _frontmatter_tags(fm_value)
    links: set[LinkTarget] = set()
    occurrences: list[Link] = []
    fields: list[tuple[str, str]] = []
    tasks: list[ParsedTask] = []

    for line_no, line in _unfenced_lines(body, body_start_line):
        tags |= _inline_tags(line)
        line_links = _links_in_line(line, line_no)
        links.update(link.target for link in line_links)
        occurrences.extend(line_links)
        fields.extend(extract_inline_fields(line))
        task = parse_task_line(line)
        if task is not None:
            tasks.append(ParsedTask(line_no, task[0], task[1]))

    return ParsedNote(
        title=_extract_title(path, fm_value, body),
        tags=tags,
        links=links,
        link_occurrences=occurrences,
        frontmatter=frontmatter,
        inline_fields=fields,
        tasks=tasks,
    )