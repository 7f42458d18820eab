import pytest

from notevault.markdown import (
    FrontmatterState,
    ParsedTask,
    extract_inline_fields,
    normalize_tag,
    parse_markdown_note,
    parse_task_line,
    split_frontmatter,
)
from notevault.model import (
    LinkKind,
    LinkLocation,
    LinkTarget,
    Subpath,
    SubpathKind,
    Tag,
    TaskStatus,
)
from notevault.vault import VaultPath


def parse(path, content):
    return parse_markdown_note(VaultPath.parse(path), content)


def test_frontmatter_tags_and_inline_tags_are_collected():
    note = parse(
        "notes/a.md",
        "---\ntitle: Hello\ntags: [Foo, bar/baz]\n---\n\n# Heading\nBody #Quux\n",
    )
    names = {t.name for t in note.tags}
    assert {"foo", "bar/baz", "quux"} <= names
    assert note.title == "Hello"


def test_fenced_code_blocks_are_ignored():
    note = parse(
        "notes/a.md",
        "Here is code:\n```\n#notatag\n[[notalink]]\n```\nBut here is #tag and [[link]].\n",
    )
    assert Tag("tag") in note.tags
    assert Tag("notatag") not in note.tags
    assert LinkTarget.internal("link") in note.links
    assert LinkTarget.internal("notalink") not in note.links


def test_headings_are_not_tags():
    note = parse("a.md", "# Title\n## Subtitle\n#tag\n")
    assert Tag("title") not in note.tags
    assert Tag("tag") in note.tags


def test_wikilink_alias_and_heading_are_stripped():
    note = parse("a.md", "See [[Target|Alias]] and [[Other#Section]].")
    assert LinkTarget.internal("Target") in note.links
    assert LinkTarget.internal("Other") in note.links
    assert LinkTarget.internal("Alias") not in note.links
    first, second = note.link_occurrences
    assert first.display == "Alias"
    assert first.location == LinkLocation(1, 5)
    assert first.raw == "Target|Alias"
    assert second.subpath == Subpath(SubpathKind.HEADING, "Section")


def test_inline_fields_support_bare_and_bracketed_variants():
    note = parse("a.md", "x::y\nx:: y\n- [a::b]\n- [c:: d]\n")
    assert ("x", "y") in note.inline_fields
    assert ("a", "b") in note.inline_fields
    assert ("c", "d") in note.inline_fields
    assert note.inline_fields.count(("x", "y")) == 2


def test_inline_fields_ignore_fenced_code_blocks():
    note = parse("a.md", "```\nstatus:: secret\n```\n\nstatus:: public\n")
    assert ("status", "public") in note.inline_fields
    assert ("status", "secret") not in note.inline_fields


def test_tasks_support_multiple_statuses_and_line_numbers():
    note = parse(
        "a.md",
        "---\nkey: value\n---\n\n- [ ] todo\n- [x] done\n- [>] prog\n- [-] cancelled\n- [?] blocked\n",
    )
    assert len(note.tasks) == 5
    assert note.tasks[0] == ParsedTask(5, TaskStatus.TODO, "todo")
    assert note.tasks[1].status == TaskStatus.DONE
    assert note.tasks[2].status == TaskStatus.IN_PROGRESS
    assert note.tasks[3].status == TaskStatus.CANCELLED
    assert note.tasks[4].status == TaskStatus.BLOCKED


def test_tasks_integration_note():
    note = parse(
        "notes/a.md",
        "- [ ] buy milk\n- [x] paid rent\n- [>] writing\n- [-] canceled plan\n- [?] blocked by something\n",
    )
    assert [(t.status, t.text) for t in note.tasks] == [
        (TaskStatus.TODO, "buy milk"),
        (TaskStatus.DONE, "paid rent"),
        (TaskStatus.IN_PROGRESS, "writing"),
        (TaskStatus.CANCELLED, "canceled plan"),
        (TaskStatus.BLOCKED, "blocked by something"),
    ]
    assert parse("notes/b.md", "no tasks here\n").tasks == []


@pytest.mark.parametrize(
    "line, expected",
    [
        ("- [ ] a", (TaskStatus.TODO, "a")),
        ("* [X] b", (TaskStatus.DONE, "b")),
        ("   + [-]   c", (TaskStatus.CANCELLED, "c")),
        ("1. [x] done", (TaskStatus.DONE, "done")),
        ("12) [?] wait", (TaskStatus.BLOCKED, "wait")),
        ("1.[ ] x", None),
        ("- [q] x", None),
        ("plain text", None),
        ("- []", None),
    ],
)
def test_parse_task_line(line, expected):
    assert parse_task_line(line) == expected


def test_split_frontmatter_valid_and_line_number():
    fm, body, start = split_frontmatter("---\ntags: [a]\n---\n\n# Valid\n")
    assert fm.state is FrontmatterState.VALID
    assert fm.value == {"tags": ["a"]}
    assert body == "\n# Valid\n"
    assert start == 4


def test_split_frontmatter_broken_yaml():
    fm, body, start = split_frontmatter("---\ntags: [a\n---\n\n# Broken\n")
    assert fm.state is FrontmatterState.BROKEN
    assert fm.error
    assert body == "\n# Broken\n"
    assert start == 4


def test_split_frontmatter_unclosed_fence():
    content = "---\nfoo: bar\n"
    fm, body, start = split_frontmatter(content)
    assert fm.state is FrontmatterState.BROKEN
    assert fm.error == "frontmatter fence not closed"
    assert body == content
    assert start == 1


def test_split_frontmatter_none():
    fm, body, start = split_frontmatter("# No frontmatter\nbody\n")
    assert fm.state is FrontmatterState.NONE
    assert body == "# No frontmatter\nbody\n"
    assert start == 1


def test_frontmatter_dates_stay_strings():
    fm, _, _ = split_frontmatter("---\ndate: 2024-01-02\n---\n")
    assert fm.value == {"date": "2024-01-02"}


def test_frontmatter_string_tags_are_split():
    note = parse("a.md", "---\ntags: a, B c\ntag: '#Solo'\n---\n")
    assert note.tags == {Tag("a"), Tag("b"), Tag("c"), Tag("solo")}


@pytest.mark.parametrize(
    "raw, expected",
    [
        ("#Foo", Tag("foo")),
        ("  bar/baz/ ", Tag("bar/baz")),
        ("#", None),
        ("///", None),
        ("", None),
    ],
)
def test_normalize_tag(raw, expected):
    assert normalize_tag(raw) == expected


def test_inline_tag_boundaries():
    note = parse("a.md", "a#b x/#y #Foo-Bar_1 #foo/bar/\n")
    assert note.tags == {Tag("foo-bar_1"), Tag("foo/bar")}


def test_title_falls_back_to_h1_then_stem():
    assert parse("a.md", "```\n# Hidden\n```\n# Shown\n").title == "Shown"
    assert parse("notes/my note.md", "no heading\n").title == "my note"


def test_markdown_links_embeds_and_uris():
    note = parse(
        "a.md",
        "[uri](obsidian://open?vault=V&file=Target) ![img](pic.png) [s](Note.md#Sec) [x](#only)\n",
    )
    kinds = [(o.kind, o.embed, o.target) for o in note.link_occurrences]
    assert kinds == [
        (LinkKind.OBSIDIAN_URI, False, LinkTarget.obsidian_uri("obsidian://open?vault=V&file=Target")),
        (LinkKind.MARKDOWN, True, LinkTarget.internal("pic.png")),
        (LinkKind.MARKDOWN, False, LinkTarget.internal("Note.md")),
    ]
    assert note.link_occurrences[2].subpath == Subpath(SubpathKind.HEADING, "Sec")
    assert note.link_occurrences[1].display == "img"


def test_wiki_embed_and_block_subpath():
    note = parse("a.md", "x ![[Target^blk1]]\n")
    (occ,) = note.link_occurrences
    assert occ.embed is True
    assert occ.target == LinkTarget.internal("Target")
    assert occ.subpath == Subpath(SubpathKind.BLOCK, "blk1")
    assert occ.location == LinkLocation(1, 4)


def test_autourls():
    note = parse("a.md", "<https://example.com> <not a url>\n")
    (occ,) = note.link_occurrences
    assert occ.kind == LinkKind.AUTO_URL
    assert occ.target == LinkTarget.external_url("https://example.com")
    assert note.links == {LinkTarget.external_url("https://example.com")}


def test_link_line_numbers_follow_frontmatter():
    note = parse("a.md", "---\na: 1\n---\n[[X]]\n")
    assert note.link_occurrences[0].location.line == 4


@pytest.mark.parametrize(
    "line, expected",
    [
        ("[a::b] rest:: tail", [("a", "b"), ("rest", "tail")]),
        ("key:: value with: colon", [("key", "value with: colon")]),
        (":: nothing", []),
        ("k::", []),
        ("[ ::x]", []),
    ],
)
def test_extract_inline_fields(line, expected):
    assert extract_inline_fields(line) == expected


def test_crlf_lines_are_handled():
    note = parse("a.md", "---\r\ntitle: T\r\n---\r\n- [ ] task\r\n")
    assert note.title == "T"
    assert note.tasks == [ParsedTask(4, TaskStatus.TODO, "task")]