from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from typing import Callable, Iterable, Iterator, Optional, Protocol, Union

import numpy as np

from common.frame import Frame

_LOG = logging.getLogger(__name__)


class FrameStream(Protocol):
    """A frame source: ``get_frame()`` returns ``None`` while no frame is ready."""

    def start(self) -> None: ...
    def get_frame(self) -> Optional[Frame]: ...
    def close(self) -> None: ...


@dataclass
class ReaderStats:
    frames_in: int = 0
    frames_out: int = 0
    misses: int = 0  # reads that returned no (or an unusable) frame
    drops: int = 0  # frames discarded by a bounded queue


class SyntheticSource:
    """
    Replays in-memory images as frames with evenly spaced timestamps.

    ``images`` may be any iterable of arrays (a ``None`` entry models a
    "not ready" read) or a callable ``f(frame_id) -> array | None``.
    Useful for tests and for exercising the pipeline without a camera.

    With ``paced=True`` a frame is only handed out once wall-clock time has
    reached its slot, so a polling consumer sees roughly ``fps`` frames per
    second instead of as many as it can pull.
    """

    def __init__(
        self,
        images: Union[Iterable[Optional[np.ndarray]], Callable[[int], Optional[np.ndarray]]],
        fps: float = 30.0,
        start_ms: Optional[float] = None,
        loop: bool = False,
        paced: bool = False,
    ) -> None:
        self._images = images
        self.fps = float(fps)
        self._start_ms = start_ms
        self._loop = loop
        self._paced = paced
        self._it: Optional[Iterator[Optional[np.ndarray]]] = None
        self._frame_id = 0
        self._t0_ms = 0.0
        self._running = False
        self._stats = ReaderStats()

    def start(self) -> None:
        self._running = True
        self._frame_id = 0
        self._t0_ms = time.time() * 1000.0 if self._start_ms is None else float(self._start_ms)
        if not callable(self._images):
            self._it = iter(self._images)

    def _next_image(self) -> Optional[np.ndarray]:
        if callable(self._images):
            return self._images(self._frame_id)
        assert self._it is not None
        try:
            return next(self._it)
        except StopIteration:
            if not self._loop:
                raise
            self._it = iter(self._images)
            return next(self._it)

    def get_frame(self) -> Optional[Frame]:
        if not self._running:
            return None
        if self._paced and time.time() * 1000.0 < self._slot_ms(self._frame_id):
            return None
        try:
            img = self._next_image()
        except StopIteration:
            self._stats.misses += 1
            return None

        fid = self._frame_id
        self._frame_id += 1
        self._stats.frames_in += 1
        if img is None:
            self._stats.misses += 1
            return None
        self._stats.frames_out += 1
        return Frame(img=img, pts_ms=self._slot_ms(fid), frame_id=fid)

    def _slot_ms(self, fid: int) -> float:
        return self._t0_ms + fid * 1000.0 / max(self.fps, 0.001)

    def close(self) -> None:
        self._running = False
        self._it = None

    def stats(self) -> ReaderStats:
        return self._stats


def black_frames(width: int = 640, height: int = 360) -> Callable[[int], np.ndarray]:
    """Image factory for :class:`SyntheticSource` producing static black frames."""

    def _make(_fid: int) -> np.ndarray:
        return np.zeros((height, width, 3), dtype=np.uint8)

    return _make


# --- Discovery ---------------------------------------------------------------


@dataclass
class ReaderConfig:
    prefer: str = "camera"  # or "synthetic"
    device: Union[int, str] = 0  # camera index, device path or stream URL
    width: int = 1280
    height: int = 720
    fps: float = 30.0


class ReaderFactory:
    @staticmethod
    def from_config(cfg: ReaderConfig) -> FrameStream:
        if cfg.prefer == "synthetic":
            _LOG.info("using synthetic black frames %dx%d", cfg.width, cfg.height)
            return SyntheticSource(black_frames(cfg.width, cfg.height), fps=cfg.fps, paced=True)
        if cfg.prefer != "camera":
            raise ValueError(f"unknown reader backend: {cfg.prefer!r}")

        from .video_source import CameraSource

        return CameraSource(device=cfg.device, width=cfg.width, height=cfg.height)
