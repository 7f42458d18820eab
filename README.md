# notevault

`notevault` is a library for working with a folder of Markdown notes (a
"vault"). It parses notes into their YAML frontmatter, title, tags, wiki and
Markdown links, tasks and inline `key:: value` fields; runs field and task
queries over notes; finds unlinked mentions of a note; stores parsed data in
SQLite; and turns batches of file-system events into index operations.

## Installation

```
pip install notevault
```

The only runtime dependency is PyYAML. To run the tests:

```
pip install "notevault[test]"
pytest
```

## Vaults and vault paths (`notevault.vault`)

A note is addressed by a `VaultPath`, a clean path relative to the vault root.
`VaultPath.parse` drops `.` components and refuses empty paths, absolute paths
and `..` components with `InvalidVaultPathError`. `str(path)` joins the parts
with `/`.

```python
from notevault.vault import Vault, VaultPath

vault = Vault("/home/me/notes")            # ignore_dirs defaults to .obsidian, .git, .trash
path = VaultPath.parse("projects/plan.md")
print(vault.to_abs(path))
print(vault.to_rel("/home/me/notes/projects/plan.md"))
```

`Vault(root)` raises `VaultNotFoundError` if the root does not exist;
`to_rel` raises `PathOutsideVaultError` for paths outside it. All errors
derive from `VaultError`. `is_ignored_rel`, `is_indexable_rel` and
`is_indexable_path` report whether a path lies in an ignored directory or
should be indexed (dotfiles and ignored directories are not).

## Parsing a note (`notevault.markdown`)

```python
from notevault.markdown import parse_markdown_note
from notevault.vault import VaultPath

note = parse_markdown_note(
    VaultPath.parse("notes/a.md"),
    "---\ntitle: Hello\ntags: [Foo, bar/baz]\n---\n\n"
    "Body #Quux and [[Target|alias]].\n"
    "- [ ] buy milk\n"
    "status:: open\n",
)
note.title          # "Hello"
note.tags           # {Tag("foo"), Tag("bar/baz"), Tag("quux")}
note.tasks          # [ParsedTask(line=7, status=TaskStatus.TODO, text="buy milk")]
note.inline_fields  # [("status", "open")]
```

The title comes from the frontmatter `title`, else the first `# ` heading,
else the file stem. Frontmatter is reported as a `Frontmatter` whose `state`
is `FrontmatterState.NONE`, `VALID` or `BROKEN` (with an `error` message), so
notes with bad YAML still parse. Fenced code blocks are skipped when looking
for tags, links, fields and tasks. Links are recorded both as a set of
`LinkTarget`s and as `Link` occurrences with kind, embed flag, display text,
heading or block `Subpath`, and one-based line and column.

Helpers are public too: `split_frontmatter`, `normalize_tag`,
`parse_task_line` and `extract_inline_fields`. Task markers:

| marker        | status                   |
|---------------|--------------------------|
| `[ ]`         | `TaskStatus.TODO`        |
| `[x]` / `[X]` | `TaskStatus.DONE`        |
| `[>]`         | `TaskStatus.IN_PROGRESS` |
| `[-]`         | `TaskStatus.CANCELLED`   |
| `[?]`         | `TaskStatus.BLOCKED`     |

The shared value types (`Tag`, `TaskStatus`, `LinkKind`, `LinkTarget`,
`Subpath`, `LinkLocation`, `Link`) live in `notevault.model`.

## Queries (`notevault.query`)

`Query` and `TaskQuery` are immutable and built by chaining:

```python
from notevault.query import Query, SortDir, TaskQuery

q = Query.notes().where_field("priority").gt(1.5)
q = Query.notes().from_tag("#Project").sort_by_field("priority", SortDir.DESC).limit(10)
tq = TaskQuery.all().contains_text("rent")

hits = q.execute(notes)       # list[QueryHit]
tasks = tq.execute(notes)     # list[TaskHit], ordered by path then line
```

`execute` takes a mapping from `VaultPath` to note objects that have
`fields` (a mapping of lower-cased field names to strings, numbers, booleans
or lists), `tags` and `tasks`. Field predicates are `exists`, `eq`,
`contains`, `gt`, `gte`, `lt` and `lte`; against list values they match if any
item matches. When sorting by a field, notes without it always come last,
whichever direction is chosen. A negative limit raises `ValueError`.

## Unlinked mentions (`notevault.mentions`)

`unlinked_mentions(vault, notes, target, limit)` reads the other notes from
disk and returns up to `limit` `UnlinkedMention`s: lines that contain the
target's file stem, title or one of its aliases as a whole word (case
insensitive) without linking to it. `notes` maps `VaultPath` to objects with
`title` and `aliases`. Frontmatter, fenced code, wiki links, Markdown links
and `<...>` autolinks are ignored. The building blocks `mention_terms`,
`scan_mentions_in_text`, `strip_link_spans` and `find_wordish` are public.

## SQLite store (`notevault.store`)

```python
from notevault.store import FileKind, IndexedFile, SqliteIndexStore

files = [
    IndexedFile(path, FileKind.MARKDOWN, mtime=1700000000.0, size=120,
                note=note, aliases=["Alt"], fields={"status": "open"}),
]
with SqliteIndexStore.open_default(vault) as store:   # <vault>/.obsidian/notevault/notevault.db
    store.write_full_index(files)
    print(store.counts())                            # (files, notes, tags, tasks, links)
```

`open_path` opens any database file, creating parent directories.
`upsert_file` replaces one file's rows and `remove_path` deletes them.

## Watch events (`notevault.watch`)

`events_to_ops(vault, batch)` turns `RawEvent`s (an `EventKind` and absolute
paths) into `UpsertOp`, `RemoveOp` and `RenameOp` values. Access and
metadata-only events are dropped, paths outside the vault are skipped, only
indexable paths are upserted, and repeated events for one path are merged
into one operation that keeps the highest-ranked cause (`rank_cause`,
`merge_cause`).

## What this package does not do

- It does not build or maintain a vault-wide index: walking the vault,
  reading files, turning inline fields and frontmatter into a field map and
  collecting aliases is left to the caller.
- It does not watch the file system or run a background service; it only
  converts events you supply into operations, and does not apply them.
- It has no link resolution, backlinks, graph, link-health report, fuzzy
  search or note-similarity features, and no command-line program.