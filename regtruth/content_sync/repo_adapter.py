"""Filesystem adapter for the content repository patched by content sync."""

from __future__ import annotations

import logging
import os
import tempfile
from pathlib import Path

from regtruth.content_sync.errors import ContentNotFoundError, RepoWriteFailedError

logger = logging.getLogger(__name__)


class FilesystemContentRepo:
    """Content files under one root directory.

    Writes go to a temporary file in the target directory and are moved into place
    with os.replace, so a reader never sees a half-written file.
    """

    def __init__(self, root: str | Path) -> None:
        self.root = Path(root)

    def resolve(self, relative_path: str) -> Path:
        path = (self.root / relative_path).resolve()
        if not path.is_relative_to(self.root.resolve()):
            raise ValueError(f"Content path escapes the content root: {relative_path}")
        return path

    def read(self, relative_path: str, concept_id: str) -> str:
        path = self.resolve(relative_path)
        if not path.is_file():
            raise ContentNotFoundError(str(path), concept_id)
        try:
            return path.read_text(encoding="utf-8")
        except OSError as exc:
            raise RepoWriteFailedError("read", exc) from exc

    def write(self, relative_path: str, content: str) -> None:
        path = self.resolve(relative_path)
        tmp_name = None
        try:
            fd, tmp_name = tempfile.mkstemp(dir=path.parent, prefix=f".{path.name}.", suffix=".tmp")
            with os.fdopen(fd, "w", encoding="utf-8", newline="") as fh:
                fh.write(content)
            os.replace(tmp_name, path)
            tmp_name = None
        except OSError as exc:
            raise RepoWriteFailedError("write", exc) from exc
        finally:
            if tmp_name is not None and os.path.exists(tmp_name):
                os.unlink(tmp_name)
        logger.debug("Content file written: %s", path)
