from __future__ import annotations

import logging
from pathlib import Path
from typing import Any, Optional

from record.sink import WriteQueue, abnormal_alert_payload, motion_event_payload
from sidecar.writer import SidecarWriter

from .model import MotionConfig

_LOG = logging.getLogger(__name__)


class MotionSidecarWriter:
    """
    Alert sink that journals motion records to a JSON-lines sidecar.

    One JSON object per line: ``type="motion_event"`` or
    ``type="abnormal_alert"`` plus the same fields the database receives and
    the raw epoch-ms timestamp. Records are written by a background
    :class:`WriteQueue` worker, so the analysis loop never waits on disk;
    write errors are logged, never raised.
    """

    def __init__(
        self,
        path: str | Path,
        queue_max: int = 256,
        logger: Optional[logging.Logger] = None,
    ):
        self._writer = SidecarWriter(path)
        self._log = logger or _LOG
        self._jobs = WriteQueue("motion-sidecar", queue_max=queue_max, logger=self._log)

    def __enter__(self) -> MotionSidecarWriter:
        self.open()
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    @property
    def path(self) -> Path:
        return self._writer.path

    @property
    def failures(self) -> int:
        return self._jobs.failures

    def open(self) -> None:
        self._writer.open()

    def write_meta(self, config: MotionConfig, **extra: Any) -> None:
        """Session header recording the tunables the following records were made with."""
        roi = config.active_roi()
        meta: dict[str, Any] = {
            "schema": "babymon.motion.v1",
            "threshold": int(config.threshold),
            "min_area": int(config.min_area),
            "cooldown_ms": int(config.cooldown_ms),
            "roi": None if roi is None else [roi.x, roi.y, roi.width, roi.height],
        }
        meta.update(extra)
        self._jobs.submit("meta", lambda: self._writer.append_meta(meta))

    def record_motion_event(self, timestamp_ms: float, box_count: int, total_area: int) -> None:
        payload: dict[str, Any] = {"type": "motion_event", "ts_ms": float(timestamp_ms)}
        payload.update(motion_event_payload(timestamp_ms, box_count, total_area))
        self._jobs.submit("motion event", lambda: self._writer.append_raw(payload))

    def record_abnormal_alert(self, timestamp_ms: float, rate_per_minute: int, message: str) -> None:
        payload: dict[str, Any] = {"ts_ms": float(timestamp_ms)}
        payload.update(abnormal_alert_payload(timestamp_ms, rate_per_minute, message))
        payload["alert_type"] = payload["type"]
        payload["type"] = "abnormal_alert"
        self._jobs.submit("abnormal alert", lambda: self._writer.append_raw(payload))

    def flush(self, timeout_s: float = 2.0) -> bool:
        self._jobs.submit("flush", self._writer.flush)
        return self._jobs.flush(timeout_s)

    def close(self, timeout_s: float = 2.0) -> None:
        """Write out queued records, then close the file."""
        self._jobs.close(timeout_s)
        self._writer.close()
