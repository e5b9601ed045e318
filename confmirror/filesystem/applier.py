"""Filesystem applier: the only component that writes to or deletes from the conf tree."""

from __future__ import annotations

import logging
import shutil
from pathlib import Path

from confmirror.exceptions import UnsafePathError

logger = logging.getLogger(__name__)

CONF_DIR_NAME = "conf"


def resolve_conf_root(resource_root: Path) -> Path:
    """Pick the directory config files are mirrored into.

    Prefers a ``conf/`` directory next to the resource root and falls back to
    the resource root itself when there is none.
    """
    sibling = resource_root.resolve().parent / CONF_DIR_NAME
    if sibling.is_dir():
        return sibling
    return resource_root.resolve()


def validate_key_part(part: str | None, what: str) -> str:
    """Validate one segment of a composite key (a category or a name)."""
    if not part or part in (".", ".."):
        raise UnsafePathError(f"Invalid {what}: {part!r}")
    if "/" in part or "\\" in part or "\x00" in part:
        raise UnsafePathError(f"Invalid {what}: {part!r}")
    return part


def validate_key(category: str | None, name: str | None) -> str:
    """Return the relative path for ``category/name`` after validating both segments."""
    return f"{validate_key_part(category, 'category')}/{validate_key_part(name, 'name')}"


class FilesystemApplier:
    """Write and delete files confined to a conf root directory."""

    def __init__(self, root: Path) -> None:
        if not root.exists():
            raise FileNotFoundError(f"Conf root does not exist: {root}")
        if not root.is_dir():
            raise NotADirectoryError(f"Conf root is not a directory: {root}")
        self._root = root.resolve()

    @property
    def root(self) -> Path:
        return self._root

    def _validate_path(self, rel_path: str, follow_symlinks: bool = True) -> Path:
        """Build the absolute path for rel_path under the root.

        The parent directory is always resolved and must stay under the root.
        With ``follow_symlinks`` the final segment is resolved as well, so a
        link cannot redirect a write outside the root. Raises UnsafePathError
        if the path escapes the root or is the root itself.
        """
        if not rel_path or "\x00" in rel_path or Path(rel_path).is_absolute():
            raise UnsafePathError(f"Invalid relative path: {rel_path!r}")
        candidate = self._root / rel_path
        if candidate.name in ("", ".", ".."):
            raise UnsafePathError(f"Invalid relative path: {rel_path!r}")
        full_path = candidate.parent.resolve() / candidate.name
        if follow_symlinks:
            full_path = full_path.resolve()
        if full_path == self._root or not full_path.is_relative_to(self._root):
            raise UnsafePathError(f"Path traversal detected: {rel_path}")
        return full_path

    def write(self, rel_path: str, content: str | None) -> Path:
        """Replace the file at rel_path with content, creating parent directories."""
        full_path = self._validate_path(rel_path)
        full_path.parent.mkdir(parents=True, exist_ok=True)
        with open(full_path, "w", encoding="utf-8") as f:
            f.write(content or "")
            f.flush()
        return full_path

    def remove(self, rel_path: str) -> bool:
        """Delete the file, link or directory tree at rel_path.

        A symlink is removed itself, never its target. Returns True if
        something was deleted; a missing path is not an error.
        """
        full_path = self._validate_path(rel_path, follow_symlinks=False)
        if full_path.is_symlink() or full_path.is_file():
            full_path.unlink()
            return True
        if full_path.is_dir():
            shutil.rmtree(full_path)
            return True
        return False
