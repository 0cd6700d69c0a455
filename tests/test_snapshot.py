from __future__ import annotations

import numpy as np
import pytest

from analysis.motion import MotionBox, RegionOfInterest
from analysis.motion.overlay import BOX_COLOR_BGR, ROI_COLOR_BGR, draw_overlay
from common.frame import Frame
from record.backend import BackendConfig, BackendHttpError
from record.snapshot import CAPTURE_HISTORY, SnapshotError, SnapshotRecorder

T_MS = 1_700_000_000_000.0


def _frame() -> Frame:
    return Frame(img=np.full((120, 160, 3), 40, dtype=np.uint8), pts_ms=T_MS, frame_id=0)


class _FakeStorage:
    def __init__(self, fail: bool = False) -> None:
        self.fail = fail
        self.uploads: list[tuple[str, bytes, str]] = []

    def upload(self, name: str, data: bytes, content_type: str = "image/jpeg") -> str:
        if self.fail:
            raise BackendHttpError("upload failed")
        self.uploads.append((name, data, content_type))
        return f"https://files.example.com/{name}"


class _FakeDb:
    def __init__(self) -> None:
        self.config = BackendConfig(database_url="https://demo-rtdb.example.com")
        self.pushes: list[tuple[str, dict]] = []

    def push(self, path: str, payload: dict) -> str:
        self.pushes.append((path, payload))
        return "-cap1"


def test_overlay_draws_roi_and_boxes_on_a_copy():
    img = np.zeros((100, 100, 3), dtype=np.uint8)
    out = draw_overlay(
        img,
        [MotionBox(x=40, y=40, width=20, height=20, area=400.0)],
        RegionOfInterest(x=10, y=10, width=80, height=80),
    )
    assert img.max() == 0
    assert tuple(out[10, 50]) == ROI_COLOR_BGR
    assert tuple(out[40, 50]) == BOX_COLOR_BGR


def test_overlay_accepts_gray():
    out = draw_overlay(np.zeros((20, 20), dtype=np.uint8), [])
    assert out.shape == (20, 20, 3)


def test_encode_produces_jpeg():
    data = SnapshotRecorder().encode(_frame())
    assert data[:2] == b"\xff\xd8"


def test_encode_rejects_invalid_frame():
    with pytest.raises(SnapshotError):
        SnapshotRecorder().encode(Frame(img=np.zeros((0, 0), np.uint8), pts_ms=0.0, frame_id=0))


def test_capture_uploads_and_records_metadata():
    storage, db = _FakeStorage(), _FakeDb()
    rec = SnapshotRecorder(db=db, storage=storage)  # type: ignore[arg-type]

    snap = rec.capture(_frame(), t_ms=T_MS)

    assert storage.uploads[0][0] == "captures/1700000000000.jpg"
    assert snap.url == "https://files.example.com/captures/1700000000000.jpg"
    assert snap.key == "-cap1"
    assert db.pushes == [
        ("captures", {"timestamp": "2023-11-14T22:13:20+00:00", "url": snap.url})
    ]
    assert snap.jpeg is None  # uploaded, bytes released
    assert list(rec.captures) == [snap]


def test_failed_upload_keeps_local_capture():
    db = _FakeDb()
    rec = SnapshotRecorder(db=db, storage=_FakeStorage(fail=True))  # type: ignore[arg-type]
    first = rec.capture(_frame(), t_ms=T_MS)
    second = rec.capture(_frame(), t_ms=T_MS + 1000)

    assert first.url is None and first.key is None
    assert db.pushes == []
    assert first.jpeg is not None and first.jpeg[:2] == b"\xff\xd8"
    assert list(rec.captures) == [second, first]  # newest first


def test_capture_history_is_bounded():
    rec = SnapshotRecorder(max_captures=5)
    frame = _frame()
    snaps = [rec.capture(frame, t_ms=T_MS + i) for i in range(50)]

    assert len(rec.captures) == 5
    assert list(rec.captures) == snaps[::-1][:5]


def test_default_history_limit():
    rec = SnapshotRecorder()
    for i in range(CAPTURE_HISTORY + 10):
        rec.capture(_frame(), t_ms=T_MS + i)
    assert len(rec.captures) == CAPTURE_HISTORY
