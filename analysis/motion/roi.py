from __future__ import annotations

from dataclasses import dataclass, replace
from typing import Optional, Tuple

# Fraction of the frame covered by a freshly toggled-on ROI.
DEFAULT_ROI_FRAC = 0.6


@dataclass(frozen=True)
class RegionOfInterest:
    """Axis-aligned rectangle in frame pixel coordinates."""

    x: int
    y: int
    width: int
    height: int

    def contains(self, px: float, py: float) -> bool:
        """Strict interior test, matching where a drag may start."""
        return self.x < px < self.x + self.width and self.y < py < self.y + self.height

    def clamped(self, frame_width: int, frame_height: int) -> RegionOfInterest:
        """Return a copy that lies entirely inside a ``frame_width`` x ``frame_height`` frame."""
        fw = max(1, int(frame_width))
        fh = max(1, int(frame_height))
        w = min(max(1, int(self.width)), fw)
        h = min(max(1, int(self.height)), fh)
        x = min(max(0, int(self.x)), fw - w)
        y = min(max(0, int(self.y)), fh - h)
        return RegionOfInterest(x=x, y=y, width=w, height=h)

    def as_slices(self) -> Tuple[slice, slice]:
        return slice(self.y, self.y + self.height), slice(self.x, self.x + self.width)


def default_roi(frame_width: int, frame_height: int) -> RegionOfInterest:
    """Centred rectangle covering 60% of the frame in each dimension."""
    w = frame_width * DEFAULT_ROI_FRAC
    h = frame_height * DEFAULT_ROI_FRAC
    roi = RegionOfInterest(
        x=int((frame_width - w) / 2),
        y=int((frame_height - h) / 2),
        width=int(w),
        height=int(h),
    )
    return roi.clamped(frame_width, frame_height)


class RoiModel:
    """Mutable holder for the operator's region of interest.

    The rectangle is only ever written through this object (by the UI or
    CLI) and read once per analysis cycle. Every mutation leaves it inside
    the last known frame bounds; nothing here raises on bad input.
    """

    def __init__(self, roi: Optional[RegionOfInterest] = None) -> None:
        self._roi: Optional[RegionOfInterest] = roi
        self._frame_size: Optional[Tuple[int, int]] = None
        self._drag_offset: Optional[Tuple[float, float]] = None

    @property
    def enabled(self) -> bool:
        return self._roi is not None

    @property
    def dragging(self) -> bool:
        return self._drag_offset is not None

    def get(self) -> Optional[RegionOfInterest]:
        return self._roi

    def set(self, roi: Optional[RegionOfInterest]) -> None:
        if roi is not None and self._frame_size is not None:
            roi = roi.clamped(*self._frame_size)
        self._roi = roi
        if roi is None:
            self._drag_offset = None

    def clamp_to_frame(self, frame_width: int, frame_height: int) -> None:
        self._frame_size = (max(1, int(frame_width)), max(1, int(frame_height)))
        if self._roi is not None:
            self._roi = self._roi.clamped(*self._frame_size)

    def toggle(self, frame_width: int, frame_height: int) -> bool:
        """Switch the ROI on (default rectangle) or off; returns the new state."""
        self.clamp_to_frame(frame_width, frame_height)
        if self._roi is None:
            self._roi = default_roi(*self._frame_size)  # type: ignore[misc]
        else:
            self.set(None)
        return self.enabled

    # ------------------------------------------------------------------ drag

    def begin_drag(self, px: float, py: float) -> bool:
        roi = self._roi
        if roi is None or not roi.contains(px, py):
            return False
        self._drag_offset = (px - roi.x, py - roi.y)
        return True

    def drag_to(self, px: float, py: float) -> Optional[RegionOfInterest]:
        roi = self._roi
        if roi is None or self._drag_offset is None:
            return roi
        ox, oy = self._drag_offset
        moved = replace(roi, x=max(0, int(px - ox)), y=max(0, int(py - oy)))
        if self._frame_size is not None:
            # Each axis is clamped on its own so the box slides along an edge.
            fw, fh = self._frame_size
            moved = replace(
                moved,
                x=max(0, min(fw - roi.width, moved.x)),
                y=max(0, min(fh - roi.height, moved.y)),
            )
        self._roi = moved
        return moved

    def end_drag(self) -> None:
        self._drag_offset = None
