"""
file_utils.py

Scratch-file handling for the upload pipeline.

`ScratchFiles` is a per-request registry of temporary files. A path is
registered *before* anything is written to it, so every exit path (success,
upstream failure, crash inside a helper) can release it. Releasing is
best effort: a file that cannot be removed is logged and skipped.

Methods:

1. path_for:
  Registers and returns a new path inside the scratch directory.

2. save_stream:
  Copies an uploaded file object to a registered path.

3. write_text:
  Writes UTF-8 text to a registered path.

4. release:
  Deletes every registered path that exists.
"""

from __future__ import annotations

import os
import re
import shutil
from typing import BinaryIO, List

from domain.errors import ScratchStorageError
from logger import get_logger

log = get_logger("File Utils")

_UNSAFE = re.compile(r"[^A-Za-z0-9._-]+")


def safe_name(value: str) -> str:
    """Deal ids come from the client; keep them out of path traversal."""
    return _UNSAFE.sub("_", value).strip("._") or "unknown"


class ScratchFiles:
    def __init__(self, root: str) -> None:
        self.root = root
        self.paths: List[str] = []

    def __enter__(self) -> "ScratchFiles":
        try:
            os.makedirs(self.root, exist_ok=True)
        except OSError as e:
            raise ScratchStorageError(f"Cannot create scratch directory {self.root}: {e}") from e
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.release()

    def path_for(self, filename: str) -> str:
        path = os.path.join(self.root, filename)
        self.paths.append(path)
        return path

    def save_stream(self, src: BinaryIO, filename: str) -> str:
        path = self.path_for(filename)
        try:
            with open(path, "wb") as fh:
                shutil.copyfileobj(src, fh)
        except OSError as e:
            raise ScratchStorageError(f"Cannot write upload to {path}: {e}") from e
        return path

    def write_text(self, text: str, filename: str) -> str:
        path = self.path_for(filename)
        try:
            with open(path, "w", encoding="utf-8") as fh:
                fh.write(text)
        except OSError as e:
            raise ScratchStorageError(f"Cannot write transcript to {path}: {e}") from e
        return path

    def release(self) -> None:
        while self.paths:
            path = self.paths.pop()
            try:
                if os.path.exists(path):
                    os.remove(path)
            except OSError as e:
                log.warning("Could not remove scratch file %s: %r", path, e)
