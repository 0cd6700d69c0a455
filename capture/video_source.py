from __future__ import annotations

import logging
import threading
from typing import Any, Callable, Optional, Union

import cv2

from common.frame import Frame
from common.time import now_ms

from .reader import ReaderStats

_LOG = logging.getLogger(__name__)


class CaptureError(Exception):
    """Base class for frame-source errors."""


class CameraUnavailableError(CaptureError):
    """No usable camera: missing device, permission denied, or busy.

    Raised only by :meth:`CameraSource.start`; the message is meant to be
    shown to the operator, who can fix the cause and retry.
    """


def parse_device(value: Union[int, str]) -> Union[int, str]:
    """``"0"`` -> ``0``; anything non-numeric (path, URL) is passed through."""
    if isinstance(value, int):
        return value
    text = str(value).strip()
    return int(text) if text.isdigit() else text


class CameraSource:
    """Frame source backed by ``cv2.VideoCapture``."""

    def __init__(
        self,
        device: Union[int, str] = 0,
        width: int = 1280,
        height: int = 720,
        capture_factory: Optional[Callable[[Union[int, str]], Any]] = None,
        logger: Optional[logging.Logger] = None,
    ) -> None:
        self._device = parse_device(device)
        self._width = int(width)
        self._height = int(height)
        self._factory = capture_factory or cv2.VideoCapture
        self._log = logger or _LOG
        self._cap: Any = None
        self._lock = threading.Lock()
        self._frame_id = 0
        self._stats = ReaderStats()

    @property
    def is_open(self) -> bool:
        return self._cap is not None

    def start(self) -> None:
        if self._cap is not None:
            return
        try:
            cap = self._factory(self._device)
        except Exception as exc:
            raise CameraUnavailableError(f"Cannot access camera {self._device!r}: {exc}") from exc

        if cap is None or not cap.isOpened():
            if cap is not None:
                cap.release()
            if isinstance(self._device, int):
                msg = (
                    f"No camera found at index {self._device}, or access was denied. "
                    "Check that the camera is connected and that this user may use it."
                )
            else:
                msg = f"Cannot open video source {self._device!r}."
            raise CameraUnavailableError(msg)

        # Requested size is a hint; the driver may choose something else.
        cap.set(cv2.CAP_PROP_FRAME_WIDTH, self._width)
        cap.set(cv2.CAP_PROP_FRAME_HEIGHT, self._height)
        self._cap = cap
        self._log.info("camera %r opened", self._device)

    def get_frame(self) -> Optional[Frame]:
        with self._lock:
            cap = self._cap
            if cap is None:
                return None
            try:
                ok, img = cap.read()
            except Exception as exc:
                self._log.debug("camera read failed: %s", exc)
                ok, img = False, None

        if not ok or img is None or getattr(img, "size", 0) == 0:
            self._stats.misses += 1
            return None

        fid = self._frame_id
        self._frame_id += 1
        self._stats.frames_in += 1
        self._stats.frames_out += 1
        return Frame(img=img, pts_ms=now_ms(), frame_id=fid)

    def close(self) -> None:
        with self._lock:
            cap, self._cap = self._cap, None
        if cap is not None:
            cap.release()
            self._log.info("camera %r released", self._device)

    def stats(self) -> ReaderStats:
        return self._stats
