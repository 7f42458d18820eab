"""Persisting an index of vault files and notes to an SQLite database."""

from __future__ import annotations

import json
import os
import sqlite3
from contextlib import contextmanager
from dataclasses import dataclass, field
from enum import IntEnum
from pathlib import Path
from typing import Any, Iterable, Iterator, Mapping, Optional, Union

from .markdown import FrontmatterState, ParsedNote
from .model import Link
from .vault import Vault, VaultPath

_SCHEMA = """
PRAGMA foreign_keys=ON;

CREATE TABLE IF NOT EXISTS meta(
  key TEXT PRIMARY KEY,
  value TEXT NOT NULL
);

CREATE TABLE IF NOT EXISTS files(
  path TEXT PRIMARY KEY,
  kind INTEGER NOT NULL,
  mtime INTEGER NOT NULL,
  size INTEGER NOT NULL
);

CREATE TABLE IF NOT EXISTS notes(
  path TEXT PRIMARY KEY,
  title TEXT NOT NULL,
  aliases_json TEXT NOT NULL,
  frontmatter_status INTEGER NOT NULL,
  fields_json TEXT NOT NULL,
  FOREIGN KEY(path) REFERENCES files(path) ON DELETE CASCADE
);

CREATE TABLE IF NOT EXISTS tags(
  tag TEXT NOT NULL,
  path TEXT NOT NULL,
  FOREIGN KEY(path) REFERENCES files(path) ON DELETE CASCADE
);
CREATE INDEX IF NOT EXISTS idx_tags_tag ON tags(tag);
CREATE INDEX IF NOT EXISTS idx_tags_path ON tags(path);

CREATE TABLE IF NOT EXISTS tasks(
  path TEXT NOT NULL,
  line INTEGER NOT NULL,
  status INTEGER NOT NULL,
  text TEXT NOT NULL,
  FOREIGN KEY(path) REFERENCES files(path) ON DELETE CASCADE
);
CREATE INDEX IF NOT EXISTS idx_tasks_path ON tasks(path);

CREATE TABLE IF NOT EXISTS links(
  src_path TEXT NOT NULL,
  line INTEGER NOT NULL,
  col INTEGER NOT NULL,
  kind INTEGER NOT NULL,
  embed INTEGER NOT NULL,
  target_type INTEGER NOT NULL,
  target_ref TEXT NOT NULL,
  subpath_type INTEGER,
  subpath TEXT,
  display TEXT,
  raw TEXT NOT NULL,
  FOREIGN KEY(src_path) REFERENCES files(path) ON DELETE CASCADE
);
CREATE INDEX IF NOT EXISTS idx_links_src ON links(src_path);
"""

_FRONTMATTER_CODES = {
    FrontmatterState.NONE: 0,
    FrontmatterState.VALID: 1,
    FrontmatterState.BROKEN: 2,
}

_TABLES = ("files", "notes", "tags", "tasks", "links")


class FileKind(IntEnum):
    """Kind of file in a vault; values are the stored codes."""

    MARKDOWN = 0
    CANVAS = 1
    ATTACHMENT = 2
    OTHER = 3


@dataclass
class IndexedFile:
    """A file of the vault index, with its parsed note data when it is a note."""

    path: VaultPath
    kind: FileKind
    mtime: float
    size: int
    note: Optional[ParsedNote] = None
    aliases: Iterable[str] = ()
    fields: Mapping[str, Any] = field(default_factory=dict)


def _unix_seconds(mtime: float) -> int:
    return int(mtime) if mtime >= 0 else 0


class SqliteIndexStore:
    """An SQLite database holding files, notes, tags, tasks and links."""

    def __init__(self, conn: sqlite3.Connection) -> None:
        self._conn = conn
        self._init_schema()

    @classmethod
    def open_path(cls, path: Union[str, "os.PathLike[str]"]) -> "SqliteIndexStore":
        """Open (creating if needed) the database at ``path``."""
        db_path = Path(path)
        db_path.parent.mkdir(parents=True, exist_ok=True)
        return cls(sqlite3.connect(str(db_path), isolation_level=None))

    @classmethod
    def open_default(cls, vault: Vault) -> "SqliteIndexStore":
        """Open the database at the vault's default location."""
        return cls.open_path(cls.default_db_path(vault))

    @staticmethod
    def default_db_path(vault: Vault) -> Path:
        """Where a vault's database lives by default."""
        return vault.root / ".obsidian" / "notevault" / "notevault.db"

    def __enter__(self) -> "SqliteIndexStore":
        return self

    def __exit__(self, *exc: object) -> None:
        self.close()

    def close(self) -> None:
        """Close the database connection."""
        self._conn.close()

    @contextmanager
    def _transaction(self) -> Iterator[sqlite3.Connection]:
        self._conn.execute("BEGIN")
        try:
            yield self._conn
        except BaseException:
            self._conn.execute("ROLLBACK")
            raise
        self._conn.execute("COMMIT")

    def _init_schema(self) -> None:
        self._conn.executescript(_SCHEMA)
        row = self._conn.execute(
            "SELECT value FROM meta WHERE key='schema_version'"
        ).fetchone()
        if row is None:
            self._conn.execute(
                "INSERT INTO meta(key,value) VALUES('schema_version','1')"
            )

    def write_full_index(self, files: Iterable[IndexedFile]) -> None:
        """Replace the whole stored index with the given files."""
        with self._transaction() as conn:
            for table in ("links", "tasks", "tags", "notes", "files"):
                conn.execute(f"DELETE FROM {table}")
            for indexed in files:
                self._upsert_in_tx(conn, indexed)

    def upsert_file(self, file: IndexedFile) -> None:
        """Insert or replace the stored rows of one file."""
        with self._transaction() as conn:
            self._upsert_in_tx(conn, file)

    def remove_path(self, path: VaultPath) -> None:
        """Delete every row stored for a path."""
        p = str(path)
        with self._transaction() as conn:
            conn.execute("DELETE FROM links WHERE src_path=?", (p,))
            conn.execute("DELETE FROM tasks WHERE path=?", (p,))
            conn.execute("DELETE FROM tags WHERE path=?", (p,))
            conn.execute("DELETE FROM notes WHERE path=?", (p,))
            conn.execute("DELETE FROM files WHERE path=?", (p,))

    def counts(self) -> tuple[int, int, int, int, int]:
        """Row counts of files, notes, tags, tasks and links."""
        files, notes, tags, tasks, links = (
            self._conn.execute(f"SELECT COUNT(1) FROM {table}").fetchone()[0]
            for table in _TABLES
        )
        return files, notes, tags, tasks, links

    @classmethod
    def _upsert_in_tx(cls, conn: sqlite3.Connection, file: IndexedFile) -> None:
        p = str(file.path)
        conn.execute(
            "INSERT INTO files(path,kind,mtime,size) VALUES(?,?,?,?) "
            "ON CONFLICT(path) DO UPDATE SET kind=excluded.kind, "
            "mtime=excluded.mtime, size=excluded.size",
            (p, int(file.kind), _unix_seconds(file.mtime), int(file.size)),
        )
        conn.execute("DELETE FROM notes WHERE path=?", (p,))
        conn.execute("DELETE FROM tags WHERE path=?", (p,))
        conn.execute("DELETE FROM tasks WHERE path=?", (p,))
        conn.execute("DELETE FROM links WHERE src_path=?", (p,))
        if file.note is not None:
            cls._insert_note_rows(conn, p, file)

    @classmethod
    def _insert_note_rows(
        cls, conn: sqlite3.Connection, p: str, file: IndexedFile
    ) -> None:
        note = file.note
        assert note is not None
        aliases_json = json.dumps(sorted(set(file.aliases)))
        fields_json = json.dumps(dict(file.fields), sort_keys=True, default=str)
        conn.execute(
            "INSERT INTO notes(path,title,aliases_json,frontmatter_status,fields_json) "
            "VALUES(?,?,?,?,?)",
            (
                p,
                note.title,
                aliases_json,
                _FRONTMATTER_CODES[note.frontmatter.state],
                fields_json,
            ),
        )
        conn.executemany(
            "INSERT INTO tags(tag,path) VALUES(?,?)",
            [(tag.name, p) for tag in sorted(note.tags)],
        )
        conn.executemany(
            "INSERT INTO tasks(path,line,status,text) VALUES(?,?,?,?)",
            [(p, t.line, int(t.status), t.text) for t in note.tasks],
        )
        conn.executemany(
            "INSERT INTO links(src_path,line,col,kind,embed,target_type,target_ref,"
            "subpath_type,subpath,display,raw) VALUES(?,?,?,?,?,?,?,?,?,?,?)",
            [cls._link_row(p, link) for link in note.link_occurrences],
        )

    @staticmethod
    def _link_row(src: str, link: Link) -> tuple[Any, ...]:
        sub_type = int(link.subpath.kind) if link.subpath is not None else None
        sub_val = link.subpath.value if link.subpath is not None else None
        return (
            src,
            link.location.line,
            link.location.column,
            int(link.kind),
            1 if link.embed else 0,
            int(link.target.type),
            link.target.value,
            sub_type,
            sub_val,
            link.display,
            link.raw,
        )