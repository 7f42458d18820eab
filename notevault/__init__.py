"""Parse Markdown note vaults: frontmatter, tags, links, tasks, fields, queries and storage."""

__version__ = "0.1.4"

__all__ = [
    "markdown",
    "mentions",
    "model",
    "query",
    "store",
    "vault",
    "watch",
]