from __future__ import annotations

import random

from analysis.motion import RegionOfInterest, RoiModel
from analysis.motion.roi import default_roi


def _inside(roi: RegionOfInterest, fw: int, fh: int) -> bool:
    return roi.x >= 0 and roi.y >= 0 and roi.x + roi.width <= fw and roi.y + roi.height <= fh


def test_default_roi_is_centred_sixty_percent():
    roi = default_roi(1280, 720)
    assert roi == RegionOfInterest(x=256, y=144, width=768, height=432)


def test_toggle_on_and_off():
    m = RoiModel()
    assert not m.enabled
    assert m.toggle(640, 480) is True
    assert m.get() == default_roi(640, 480)
    assert m.toggle(640, 480) is False
    assert m.get() is None


def test_drag_must_start_strictly_inside():
    m = RoiModel()
    m.toggle(640, 480)
    roi = m.get()
    assert not m.begin_drag(roi.x, roi.y)  # on the edge
    assert not m.begin_drag(5, 5)
    assert m.begin_drag(roi.x + 10, roi.y + 10)
    assert m.dragging


def test_drag_moves_by_pointer_delta_and_clamps():
    m = RoiModel()
    m.toggle(640, 480)
    start = m.get()
    m.begin_drag(start.x + 20, start.y + 30)

    moved = m.drag_to(start.x + 70, start.y + 10)
    assert (moved.x, moved.y) == (start.x + 50, start.y - 20)
    assert (moved.width, moved.height) == (start.width, start.height)

    # Far past the bottom-right corner: pinned to the frame edge.
    pinned = m.drag_to(10_000, 10_000)
    assert pinned.x == 640 - start.width
    assert pinned.y == 480 - start.height

    # Past the left edge only: x clamps, y still follows the pointer.
    slid = m.drag_to(-500, start.y + 30)
    assert slid.x == 0
    assert slid.y == start.y

    m.end_drag()
    assert not m.dragging
    assert m.drag_to(0, 0) == slid


def test_random_drags_stay_inside_frame():
    rng = random.Random(3)
    m = RoiModel()
    m.toggle(320, 240)
    r = m.get()
    m.begin_drag(r.x + 1, r.y + 1)
    for _ in range(200):
        roi = m.drag_to(rng.uniform(-1000, 1000), rng.uniform(-1000, 1000))
        assert _inside(roi, 320, 240)


def test_set_and_frame_change_clamp():
    m = RoiModel()
    m.clamp_to_frame(200, 100)
    m.set(RegionOfInterest(x=150, y=80, width=500, height=40))
    roi = m.get()
    assert _inside(roi, 200, 100)
    assert roi.width == 200

    m.set(RegionOfInterest(x=100, y=50, width=80, height=40))
    m.clamp_to_frame(120, 60)
    assert _inside(m.get(), 120, 60)


def test_contains_is_strict():
    roi = RegionOfInterest(x=10, y=10, width=20, height=20)
    assert roi.contains(15, 15)
    assert not roi.contains(10, 15)
    assert not roi.contains(30, 15)


def test_drag_before_frame_size_known_keeps_origin_non_negative():
    m = RoiModel(RegionOfInterest(x=10, y=10, width=100, height=80))
    assert m.begin_drag(60, 60)

    roi = m.drag_to(-500, -500)
    assert (roi.x, roi.y) == (0, 0)
    assert (roi.width, roi.height) == (100, 80)

    # No upper bound yet; clamped once the first frame arrives.
    far = m.drag_to(1000, 1000)
    assert (far.x, far.y) == (950, 950)
    m.clamp_to_frame(320, 240)
    assert (m.get().x, m.get().y) == (220, 160)
