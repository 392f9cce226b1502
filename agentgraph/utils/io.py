"""Crash-safe file writes."""

import os
import tempfile
from collections.abc import Iterator
from contextlib import contextmanager
from pathlib import Path
from typing import IO


@contextmanager
def atomic_write(path: Path | str, mode: str = "w", encoding: str | None = "utf-8") -> Iterator[IO]:
    """
    Write to a temp file in the target directory, then rename over ``path``.

    Readers see either the old file or the complete new one. On error the
    temp file is removed and the original is left untouched.

    Example:
        with atomic_write(index_path) as f:
            f.write(index.model_dump_json(indent=2))
    """
    path = Path(path)
    if "b" in mode:
        encoding = None

    fd, tmp_name = tempfile.mkstemp(dir=path.parent, prefix=f".{path.name}.", suffix=".tmp")
    try:
        with os.fdopen(fd, mode, encoding=encoding) as f:
            yield f
            f.flush()
            os.fsync(f.fileno())
        os.replace(tmp_name, path)
    except BaseException:
        if os.path.exists(tmp_name):
            os.unlink(tmp_name)
        raise
