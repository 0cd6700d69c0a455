from __future__ import annotations

import logging
from collections import deque
from dataclasses import dataclass
from typing import Deque, Optional, Sequence

import cv2

from analysis.motion.model import MotionBox
from analysis.motion.overlay import draw_overlay
from analysis.motion.roi import RegionOfInterest
from common.frame import Frame
from common.time import now_ms, to_iso_utc

from .backend import BackendConfig, BackendError, RealtimeDbClient, StorageClient

_LOG = logging.getLogger(__name__)

CAPTURE_HISTORY = 20


class SnapshotError(Exception):
    """The frame could not be rendered or encoded."""


@dataclass
class Capture:
    """A snapshot kept by the monitor, newest first in :attr:`SnapshotRecorder.captures`."""

    timestamp: str
    jpeg: Optional[bytes]  # released once the upload succeeded
    url: Optional[str] = None  # download URL once uploaded
    key: Optional[str] = None  # database key of the metadata record


class SnapshotRecorder:
    """Render the current frame with its overlay, encode it and store it.

    Upload goes to ``captures/<epoch_ms>.jpg`` in object storage, and a
    ``{timestamp, url}`` record is pushed to the captures path. A failed
    upload is logged and the capture is still kept locally without a URL.
    Only the newest ``max_captures`` are kept.
    """

    def __init__(
        self,
        db: Optional[RealtimeDbClient] = None,
        storage: Optional[StorageClient] = None,
        jpeg_quality: int = 90,
        max_captures: int = CAPTURE_HISTORY,
        logger: Optional[logging.Logger] = None,
    ) -> None:
        self._db = db
        self._storage = storage
        self._quality = int(jpeg_quality)
        self._log = logger or _LOG
        self.captures: Deque[Capture] = deque(maxlen=max(1, int(max_captures)))

    @property
    def _cfg(self) -> Optional[BackendConfig]:
        return self._db.config if self._db is not None else None

    def encode(
        self,
        frame: Frame,
        boxes: Sequence[MotionBox] = (),
        roi: Optional[RegionOfInterest] = None,
    ) -> bytes:
        if frame is None or not frame.is_valid():
            raise SnapshotError("cannot snapshot an empty or invalid frame")
        annotated = draw_overlay(frame.img, boxes, roi)
        ok, buf = cv2.imencode(".jpg", annotated, [int(cv2.IMWRITE_JPEG_QUALITY), self._quality])
        if not ok:
            raise SnapshotError("JPEG encoding failed")
        return buf.tobytes()

    def capture(
        self,
        frame: Frame,
        boxes: Sequence[MotionBox] = (),
        roi: Optional[RegionOfInterest] = None,
        t_ms: Optional[float] = None,
    ) -> Capture:
        t_ms = now_ms() if t_ms is None else float(t_ms)
        data = self.encode(frame, boxes, roi)
        snap = Capture(timestamp=to_iso_utc(t_ms), jpeg=data)

        if self._storage is not None:
            name = f"captures/{int(t_ms)}.jpg"
            try:
                snap.url = self._storage.upload(name, data, "image/jpeg")
                snap.jpeg = None
                if self._db is not None and self._cfg is not None:
                    snap.key = self._db.push(
                        self._cfg.captures_path, {"timestamp": snap.timestamp, "url": snap.url}
                    )
            except BackendError as exc:
                self._log.warning("snapshot upload failed (kept locally): %s", exc)

        self.captures.appendleft(snap)
        return snap
