from __future__ import annotations

import json
import logging
from collections.abc import Iterator
from pathlib import Path
from typing import Any, Optional

_LOG = logging.getLogger(__name__)


class SidecarReader:
    """Iterate the records of a JSON-lines journal, optionally of one ``type`` only.

    Blank and unparsable lines (e.g. a record cut short by a crash) are skipped.
    """

    def __init__(self, path: str | Path, record_type: Optional[str] = None):
        self.path = Path(path)
        self.record_type = record_type

    def __iter__(self) -> Iterator[dict[str, Any]]:
        with self.path.open("r", encoding="utf-8") as fh:
            for lineno, raw in enumerate(fh, start=1):
                text = raw.strip()
                if not text:
                    continue
                try:
                    rec = json.loads(text)
                except ValueError:
                    _LOG.debug("%s:%d: skipping malformed record", self.path, lineno)
                    continue
                if not isinstance(rec, dict):
                    continue
                if self.record_type is None or rec.get("type") == self.record_type:
                    yield rec
