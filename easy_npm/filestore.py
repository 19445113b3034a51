"""File system access used by discovery, clean and release.

Everything that touches the disk goes through a FileStore so the
orchestration code can be exercised against a temporary directory.
"""

from __future__ import annotations

import shutil
from pathlib import Path
from typing import Protocol


class FileStore(Protocol):
    def read_text(self, path: Path) -> str: ...

    def write_text(self, path: Path, content: str) -> None: ...

    def exists(self, path: Path) -> bool: ...

    def remove_recursive(self, path: Path) -> None: ...

    def ensure_directory(self, path: Path) -> None: ...


class LocalFileStore:
    """FileStore backed by the local file system."""

    def read_text(self, path: Path) -> str:
        return path.read_text(encoding="utf-8")

    def write_text(self, path: Path, content: str) -> None:
        path.write_text(content, encoding="utf-8")

    def exists(self, path: Path) -> bool:
        return path.exists()

    def remove_recursive(self, path: Path) -> None:
        """Delete a file or directory tree. Missing paths are ignored."""
        if path.is_symlink() or path.is_file():
            path.unlink()
        elif path.is_dir():
            shutil.rmtree(path)

    def ensure_directory(self, path: Path) -> None:
        path.mkdir(parents=True, exist_ok=True)
