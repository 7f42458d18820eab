"""Finding plain-text mentions of a note that are not links to it."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable, Iterator, Mapping, Optional, Protocol

from .markdown import split_frontmatter
from .vault import Vault, VaultPath


class _NoteLike(Protocol):
    title: str
    aliases: Iterable[str]


@dataclass(frozen=True)
class UnlinkedMention:
    """A line in one note that mentions another note without linking it."""

    source: VaultPath
    target: VaultPath
    line: int
    term: str
    line_text: str


def mention_terms(target: VaultPath, title: str, aliases: Iterable[str]) -> list[str]:
    """Lower-cased, de-duplicated, sorted terms that name the target note."""
    terms = {c.strip().lower() for c in (target.stem, title, *aliases) if c.strip()}
    return sorted(terms)


def _lines(text: str) -> Iterator[str]:
    pieces = text.split("\n")
    last = pieces.pop()
    for piece in pieces:
        yield piece[:-1] if piece.endswith("\r") else piece
    if last:
        yield last


def _is_word_char(c: str) -> bool:
    return c.isascii() and (c.isalnum() or c == "_")


def strip_link_spans(line: str) -> str:
    """Replace wiki links, Markdown links and autolinks with a single space each."""
    out: list[str] = []
    n = len(line)
    i = 0
    while i < n:
        if line.startswith("[[", i):
            end = line.find("]]", i + 2)
            if end != -1:
                out.append(" ")
                i = end + 2
                continue
        if line.startswith("![[", i):
            end = line.find("]]", i + 3)
            if end != -1:
                out.append(" ")
                i = end + 2
                continue

        if line[i] == "[" or line.startswith("![", i):
            start = i + 1 if line[i] == "!" else i
            j = line.find("]", start + 1)
            if j != -1 and j + 1 < n and line[j + 1] == "(":
                close = line.find(")", j + 2)
                if close != -1:
                    out.append(" ")
                    i = close + 1
                    continue

        if line[i] == "<":
            close = line.find(">", i + 1)
            if close != -1:
                out.append(" ")
                i = close + 1
                continue

        out.append(line[i])
        i += 1
    return "".join(out)


def find_wordish(hay: str, needle: str) -> bool:
    """Whether needle occurs in hay without word characters glued to its word-character ends."""
    if not needle:
        return False
    start = 0
    while True:
        i = hay.find(needle, start)
        if i == -1:
            return False
        j = i + len(needle)
        left_ok = not _is_word_char(needle[0]) or i == 0 or not _is_word_char(hay[i - 1])
        right_ok = not _is_word_char(needle[-1]) or j >= len(hay) or not _is_word_char(hay[j])
        if left_ok and right_ok:
            return True
        start = i + 1


def scan_mentions_in_text(
    source: VaultPath,
    target: VaultPath,
    terms: Iterable[str],
    text: str,
) -> list[UnlinkedMention]:
    """Mentions of any term in a note's body, outside frontmatter, code fences and links."""
    ordered = sorted({t for t in terms if t})
    _, body, start_line = split_frontmatter(text)

    out: list[UnlinkedMention] = []
    in_fenced = False
    for offset, line in enumerate(_lines(body)):
        if line.lstrip().startswith("```"):
            in_fenced = not in_fenced
            continue
        if in_fenced:
            continue
        hay = strip_link_spans(line).lower()
        out.extend(
            UnlinkedMention(source, target, start_line + offset, term, line)
            for term in ordered
            if find_wordish(hay, term)
        )
    return out


def unlinked_mentions(
    vault: Vault,
    notes: Mapping[VaultPath, _NoteLike],
    target: VaultPath,
    limit: int,
) -> list[UnlinkedMention]:
    """Up to ``limit`` unlinked mentions of ``target`` across the other notes."""
    note: Optional[_NoteLike] = notes.get(target)
    if note is None:
        return []
    terms = mention_terms(target, note.title, note.aliases)
    if not terms or limit <= 0:
        return []

    out: list[UnlinkedMention] = []
    for source in sorted(notes):
        if source == target:
            continue
        with open(vault.to_abs(source), encoding="utf-8", newline="") as fh:
            text = fh.read()
        for mention in scan_mentions_in_text(source, target, terms, text):
            out.append(mention)
            if len(out) >= limit:
                return out
    return out