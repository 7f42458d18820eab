import sqlite3

import pytest

from notevault.markdown import parse_markdown_note
from notevault.store import FileKind, IndexedFile, SqliteIndexStore
from notevault.vault import Vault, VaultPath

SAMPLE = "---\ntags: [a]\naliases: [Alt]\n---\n\n- [ ] task\n[[Link]]\nfield:: value\n"


def make_file(rel, content, kind=FileKind.MARKDOWN, aliases=(), fields=None):
    path = VaultPath.parse(rel)
    note = parse_markdown_note(path, content) if kind is FileKind.MARKDOWN else None
    return IndexedFile(
        path=path,
        kind=kind,
        mtime=1700000000.5,
        size=len(content.encode()),
        note=note,
        aliases=aliases,
        fields=fields or {},
    )


def rows(db_path, sql):
    conn = sqlite3.connect(str(db_path))
    try:
        return conn.execute(sql).fetchall()
    finally:
        conn.close()


@pytest.fixture
def db_path(tmp_path):
    return tmp_path / "idx.sqlite"


def test_store_can_persist_full_index(db_path):
    with SqliteIndexStore.open_path(db_path) as store:
        store.write_full_index([make_file("notes/a.md", SAMPLE, aliases=("alt",))])
        files, notes, tags, tasks, links = store.counts()
    assert files >= 1
    assert notes >= 1
    assert tags >= 1
    assert tasks >= 1
    assert links >= 1
    assert (files, notes, tags, tasks, links) == (1, 1, 1, 1, 1)


def test_stored_rows_hold_note_data(db_path):
    with SqliteIndexStore.open_path(db_path) as store:
        store.write_full_index(
            [make_file("notes/a.md", SAMPLE, aliases=("alt",), fields={"field": "value"})]
        )
    assert rows(db_path, "SELECT path, kind, mtime FROM files") == [
        ("notes/a.md", 0, 1700000000)
    ]
    assert rows(
        db_path, "SELECT title, aliases_json, frontmatter_status, fields_json FROM notes"
    ) == [("a", '["alt"]', 1, '{"field": "value"}')]
    assert rows(db_path, "SELECT tag, path FROM tags") == [("a", "notes/a.md")]
    assert rows(db_path, "SELECT line, status, text FROM tasks") == [(6, 0, "task")]
    assert rows(
        db_path,
        "SELECT line, col, kind, embed, target_type, target_ref, subpath_type, raw FROM links",
    ) == [(7, 1, 0, 0, 0, "Link", None, "Link")]


def test_link_subpath_and_display_are_stored(db_path):
    content = "![[Target#Head|Shown]] [t](https://example.com)\n"
    with SqliteIndexStore.open_path(db_path) as store:
        store.upsert_file(make_file("x.md", content))
    got = rows(
        db_path,
        "SELECT kind, embed, target_type, target_ref, subpath_type, subpath, display "
        "FROM links ORDER BY col",
    )
    assert got == [
        (0, 1, 0, "Target", 0, "Head", "Shown"),
        (1, 0, 1, "https://example.com", None, None, "t"),
    ]


def test_broken_frontmatter_status(db_path):
    with SqliteIndexStore.open_path(db_path) as store:
        store.upsert_file(make_file("b.md", "---\ntags: [a\n---\n# B\n"))
    assert rows(db_path, "SELECT frontmatter_status FROM notes") == [(2,)]


def test_upsert_replaces_rows_without_duplicates(db_path):
    with SqliteIndexStore.open_path(db_path) as store:
        store.upsert_file(make_file("a.md", SAMPLE))
        store.upsert_file(make_file("a.md", "#x #y\n- [x] done\n- [ ] todo\n"))
        assert store.counts() == (1, 1, 2, 2, 0)


def test_attachment_has_file_row_only(db_path):
    with SqliteIndexStore.open_path(db_path) as store:
        store.upsert_file(make_file("img/pic.png", "binary", kind=FileKind.ATTACHMENT))
        assert store.counts() == (1, 0, 0, 0, 0)
    assert rows(db_path, "SELECT kind FROM files") == [(2,)]


def test_remove_path_deletes_everything(db_path):
    with SqliteIndexStore.open_path(db_path) as store:
        store.write_full_index(
            [make_file("a.md", SAMPLE), make_file("b.md", "#tag\n")]
        )
        store.remove_path(VaultPath.parse("a.md"))
        assert store.counts() == (1, 1, 1, 0, 0)


def test_write_full_index_replaces_previous(db_path):
    with SqliteIndexStore.open_path(db_path) as store:
        store.write_full_index([make_file("a.md", SAMPLE), make_file("b.md", SAMPLE)])
        store.write_full_index([make_file("c.md", "plain\n")])
        assert store.counts() == (1, 1, 0, 0, 0)
    assert rows(db_path, "SELECT path FROM files") == [("c.md",)]


def test_negative_mtime_is_stored_as_zero(db_path):
    file = make_file("a.md", "x\n")
    file.mtime = -5.0
    with SqliteIndexStore.open_path(db_path) as store:
        store.upsert_file(file)
    assert rows(db_path, "SELECT mtime FROM files") == [(0,)]


def test_schema_version_written_once(db_path):
    SqliteIndexStore.open_path(db_path).close()
    SqliteIndexStore.open_path(db_path).close()
    assert rows(db_path, "SELECT key, value FROM meta") == [("schema_version", "1")]


def test_data_survives_reopen(db_path):
    with SqliteIndexStore.open_path(db_path) as store:
        store.upsert_file(make_file("a.md", SAMPLE))
    with SqliteIndexStore.open_path(db_path) as store:
        assert store.counts() == (1, 1, 1, 1, 1)


def test_open_path_creates_parent_dirs(tmp_path):
    target = tmp_path / "deep" / "nested" / "db.sqlite"
    with SqliteIndexStore.open_path(target) as store:
        assert store.counts() == (0, 0, 0, 0, 0)
    assert target.is_file()


def test_default_db_path_and_open_default(tmp_path):
    root = tmp_path / "vault"
    root.mkdir()
    vault = Vault(root)
    expected = vault.root / ".obsidian" / "notevault" / "notevault.db"
    assert SqliteIndexStore.default_db_path(vault) == expected
    with SqliteIndexStore.open_default(vault) as store:
        store.upsert_file(make_file("a.md", "x\n"))
        assert store.counts()[0] == 1
    assert expected.is_file()


def test_failed_batch_is_rolled_back(db_path):
    bad = make_file("b.md", "x\n")
    bad.size = "not a number"
    with SqliteIndexStore.open_path(db_path) as store:
        store.upsert_file(make_file("a.md", SAMPLE))
        with pytest.raises(ValueError):
            store.write_full_index([make_file("c.md", "y\n"), bad])
        assert store.counts() == (1, 1, 1, 1, 1)


def test_closed_store_rejects_use(db_path):
    store = SqliteIndexStore.open_path(db_path)
    store.close()
    with pytest.raises(sqlite3.ProgrammingError):
        store.counts()