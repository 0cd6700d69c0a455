from __future__ import annotations

import time
from typing import Any, Optional

import numpy as np
import pytest

from capture import (
    CameraSource,
    CameraUnavailableError,
    ReaderConfig,
    ReaderFactory,
    SyntheticSource,
    wrap_nonblocking,
)
from capture.video_source import parse_device


class _FakeCap:
    def __init__(self, opened: bool = True, frames: Optional[list] = None) -> None:
        self._opened = opened
        self._frames = list(frames or [])
        self.released = False
        self.props: dict[int, float] = {}

    def isOpened(self) -> bool:
        return self._opened

    def set(self, prop: int, value: float) -> bool:
        self.props[prop] = value
        return True

    def read(self) -> tuple[bool, Any]:
        if not self._frames:
            return False, None
        return True, self._frames.pop(0)

    def release(self) -> None:
        self.released = True


def test_synthetic_source_timestamps_and_misses():
    imgs = [np.zeros((4, 4, 3), np.uint8), None, np.zeros((4, 4, 3), np.uint8)]
    src = SyntheticSource(imgs, fps=20, start_ms=1000.0)
    assert src.get_frame() is None  # not started
    src.start()

    f0 = src.get_frame()
    assert f0 is not None and f0.pts_ms == 1000.0 and f0.frame_id == 0
    assert src.get_frame() is None
    f2 = src.get_frame()
    assert f2 is not None and f2.pts_ms == 1100.0 and f2.frame_id == 2
    assert src.get_frame() is None  # exhausted

    st = src.stats()
    assert (st.frames_in, st.frames_out, st.misses) == (3, 2, 2)


def test_synthetic_source_loops():
    src = SyntheticSource([np.zeros((2, 2), np.uint8)], fps=10, start_ms=0.0, loop=True)
    src.start()
    assert [src.get_frame().frame_id for _ in range(3)] == [0, 1, 2]


def test_parse_device():
    assert parse_device("0") == 0
    assert parse_device(2) == 2
    assert parse_device("rtsp://cam/stream") == "rtsp://cam/stream"


def test_camera_source_reads_frames():
    img = np.zeros((8, 8, 3), np.uint8)
    cap = _FakeCap(frames=[img])
    cam = CameraSource(device="0", width=640, height=480, capture_factory=lambda dev: cap)
    cam.start()
    assert cam.is_open

    frame = cam.get_frame()
    assert frame is not None and frame.frame_id == 0
    assert cam.get_frame() is None  # read failure is a miss
    assert cam.stats().misses == 1

    cam.close()
    assert cap.released
    assert cam.get_frame() is None


def test_camera_unavailable_has_operator_message():
    cap = _FakeCap(opened=False)
    cam = CameraSource(device=1, capture_factory=lambda dev: cap)
    with pytest.raises(CameraUnavailableError) as ei:
        cam.start()
    assert "index 1" in str(ei.value)
    assert cap.released
    assert not cam.is_open


def test_camera_factory_exception_is_wrapped():
    def _boom(dev):
        raise OSError("permission denied")

    with pytest.raises(CameraUnavailableError, match="permission denied"):
        CameraSource(device=0, capture_factory=_boom).start()


def test_reader_factory():
    src = ReaderFactory.from_config(ReaderConfig(prefer="synthetic", width=32, height=16))
    src.start()
    assert src.get_frame().img.shape == (16, 32, 3)
    with pytest.raises(ValueError):
        ReaderFactory.from_config(ReaderConfig(prefer="nope"))


def test_nonblocking_delivers_frames_and_propagates_start_errors():
    nb = wrap_nonblocking(SyntheticSource(lambda fid: np.zeros((4, 4), np.uint8), fps=30))
    nb.start()
    deadline = time.monotonic() + 2.0
    frame = None
    while frame is None and time.monotonic() < deadline:
        frame = nb.get_frame()
        time.sleep(0.001)
    nb.close()
    assert frame is not None
    assert nb.get_frame() is None

    failing = CameraSource(device=0, capture_factory=lambda dev: _FakeCap(opened=False))
    with pytest.raises(CameraUnavailableError):
        wrap_nonblocking(failing).start()
