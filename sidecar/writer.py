# ruff: noqa: UP007  # keep Optional[...] for Py3.9; don't force X | Y
from __future__ import annotations

import json
import os
from contextlib import suppress
from pathlib import Path
from typing import Any, Mapping, Optional, TextIO


class SidecarWriter:
    """
    JSON-lines journal: every record is one compact JSON object per line.

    By default an existing file is appended to, so several monitoring
    sessions accumulate in one journal; each session starts with a
    ``type="meta"`` header. Pass ``append=False`` to truncate instead.
    """

    def __init__(self, path: str | Path, append: bool = True):
        self.path = Path(path)
        self._mode = "a" if append else "w"
        self._fh: Optional[TextIO] = None

    def __enter__(self) -> SidecarWriter:
        self.open()
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    @property
    def is_open(self) -> bool:
        return self._fh is not None

    def open(self) -> None:
        if self._fh is None:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            self._fh = self.path.open(self._mode, encoding="utf-8", newline="")

    def append_meta(self, meta: Mapping[str, Any]) -> None:
        self.append_raw({"type": "meta", **meta})

    def append_raw(self, rec: Mapping[str, Any]) -> None:
        fh = self._fh
        if fh is None:
            raise RuntimeError(f"sidecar {self.path} is not open")
        fh.write(json.dumps(dict(rec), ensure_ascii=False, separators=(",", ":")) + "\n")

    def flush(self) -> None:
        if self._fh is not None:
            self._fh.flush()

    def close(self) -> None:
        fh, self._fh = self._fh, None
        if fh is None:
            return
        with suppress(Exception):
            fh.flush()
            # Not every file object has a real descriptor.
            os.fsync(fh.fileno())
        fh.close()
