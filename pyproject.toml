[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "notevault"
version = "0.1.4"
description = "Parse a folder of Markdown notes: frontmatter, tags, links, tasks and inline fields, with queries, unlinked mentions and an SQLite store."
requires-python = ">=3.10"
dependencies = [
    "pyyaml",
]
keywords = [
    "markdown",
    "notes",
    "vault",
    "frontmatter",
    "wikilinks",
    "tags",
    "tasks",
    "sqlite",
]
classifiers = [
    "Development Status :: 3 - Alpha",
    "Intended Audience :: Developers",
    "Operating System :: OS Independent",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: Text Processing :: Markup :: Markdown",
    "Topic :: Text Processing :: Indexing",
    "Topic :: Software Development :: Libraries :: Python Modules",
]

[project.optional-dependencies]
test = [
    "pytest",
]

[tool.hatch.build.targets.wheel]
packages = ["notevault"]

[tool.pytest.ini_options]
addopts = "-ra"
testpaths = ["tests"]

[tool.ruff]
line-length = 100
target-version = "py310"

[tool.ruff.lint]
select = ["E", "F", "W", "I", "B", "UP"]

[tool.mypy]
python_version = "3.10"
warn_unused_ignores = true
warn_redundant_casts = true
