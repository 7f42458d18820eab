"""Vault roots and vault-relative paths."""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path, PurePath
from typing import Iterable, Union

DEFAULT_IGNORE_DIRS: tuple[str, ...] = (".obsidian", ".git", ".trash")


class VaultError(Exception):
    """Base class for vault errors."""


class InvalidVaultPathError(VaultError, ValueError):
    """A path cannot be used as a vault-relative path."""


class VaultNotFoundError(VaultError, FileNotFoundError):
    """The vault root does not exist."""

    def __init__(self, root: Path) -> None:
        super().__init__(f"vault not found: {root}")
        self.root = root


class PathOutsideVaultError(VaultError):
    """A path lies outside the vault root."""

    def __init__(self, path: Path) -> None:
        super().__init__(f"path outside vault: {path}")
        self.path = path


PathInput = Union[str, "os.PathLike[str]"]


@dataclass(frozen=True, order=True)
class VaultPath:
    """A normalised, relative path inside a vault."""

    parts: tuple[str, ...]

    @classmethod
    def parse(cls, value: Union[PathInput, "VaultPath"]) -> "VaultPath":
        """Validate and normalise a relative path."""
        if isinstance(value, VaultPath):
            return value
        raw = os.fspath(value)
        if raw == "":
            raise InvalidVaultPathError("empty path")
        pure = PurePath(raw)
        if pure.is_absolute() or pure.anchor:
            raise InvalidVaultPathError("absolute paths are not allowed")
        cleaned: list[str] = []
        for part in pure.parts:
            if part == ".":
                continue
            if part == "..":
                raise InvalidVaultPathError("path traversal is not allowed")
            cleaned.append(part)
        if not cleaned:
            raise InvalidVaultPathError("empty path")
        return cls(tuple(cleaned))

    def as_path(self) -> Path:
        """The path as a relative filesystem path."""
        return Path(*self.parts)

    @property
    def name(self) -> str:
        return self.parts[-1]

    @property
    def stem(self) -> str:
        return PurePath(self.parts[-1]).stem

    def __str__(self) -> str:
        return "/".join(self.parts)


def _rel_parts(rel: Union[PathInput, VaultPath]) -> tuple[str, ...]:
    if isinstance(rel, VaultPath):
        return rel.parts
    raw = os.fspath(rel)
    if raw == "":
        return ()
    pure = PurePath(raw)
    return tuple(p for p in pure.parts if p not in (pure.anchor, ".", ".."))


class Vault:
    """A directory of notes, with the rules for which files are indexed."""

    def __init__(
        self,
        root: PathInput,
        ignore_dirs: Iterable[str] = DEFAULT_IGNORE_DIRS,
    ) -> None:
        root_path = Path(root)
        if not root_path.exists():
            raise VaultNotFoundError(root_path)
        self.root: Path = root_path.resolve(strict=True)
        self.ignore_dirs: tuple[str, ...] = tuple(ignore_dirs)

    def __repr__(self) -> str:
        return f"Vault(root={str(self.root)!r}, ignore_dirs={self.ignore_dirs!r})"

    def to_abs(self, rel: VaultPath) -> Path:
        """The absolute filesystem path of a vault path."""
        return self.root.joinpath(*rel.parts)

    def to_rel(self, path: PathInput) -> VaultPath:
        """Turn an absolute or root-relative path into a vault path."""
        candidate = Path(path)
        if not candidate.is_absolute():
            candidate = self.root / candidate
        try:
            candidate = candidate.resolve()
        except OSError:
            pass
        try:
            rel = candidate.relative_to(self.root)
        except ValueError:
            raise PathOutsideVaultError(candidate) from None
        return VaultPath.parse(str(rel) if rel.parts else "")

    def is_ignored_rel(self, rel: Union[PathInput, VaultPath]) -> bool:
        """Whether any component of the path is an ignored directory name."""
        return any(part in self.ignore_dirs for part in _rel_parts(rel))

    def is_indexable_rel(self, rel: Union[PathInput, VaultPath]) -> bool:
        """Whether a vault-relative path should be indexed."""
        if self.is_ignored_rel(rel):
            return False
        parts = _rel_parts(rel)
        if not parts:
            return False
        return not parts[-1].startswith(".")

    def is_indexable_path(self, path: PathInput) -> bool:
        """Whether an absolute or relative path should be indexed."""
        try:
            rel = self.to_rel(path)
        except VaultError:
            return False
        return self.is_indexable_rel(rel)