from __future__ import annotations

from dataclasses import dataclass, replace
from typing import Any, List, Optional

from .roi import RegionOfInterest

# Operator-facing ranges for each tunable.
THRESHOLD_RANGE = (5, 60)
MIN_AREA_RANGE = (200, 20_000)
COOLDOWN_MS_RANGE = (300, 5000)


def _clamp(value: int, bounds: tuple[int, int]) -> int:
    lo, hi = bounds
    return max(lo, min(hi, int(value)))


@dataclass(frozen=True)
class MotionBox:
    """A moving region found in one analysis cycle, in full-frame pixels."""

    x: int
    y: int
    width: int
    height: int
    area: float  # contour area, not the rectangle area


@dataclass
class MotionConfig:
    """
    Configuration knobs for the motion pipeline.

    Instances are treated as immutable snapshots: the pipeline swaps in a
    new object on every update, and each cycle reads exactly one snapshot.
    """

    # Pixel intensity difference that marks a pixel as moving.
    threshold: int = 20

    # Minimum contour area (px^2) for a region to count as motion.
    min_area: int = 2500

    # Minimum time between two emitted motion events.
    cooldown_ms: int = 1200

    # Region of interest; ignored unless use_roi is set.
    use_roi: bool = False
    roi: Optional[RegionOfInterest] = None

    # Audio cue on motion events and abnormal-rate alerts.
    beep_enabled: bool = False

    def active_roi(self) -> Optional[RegionOfInterest]:
        return self.roi if self.use_roi else None

    def clamped(self) -> MotionConfig:
        """Return a copy with every numeric option forced into its range."""
        return replace(
            self,
            threshold=_clamp(self.threshold, THRESHOLD_RANGE),
            min_area=_clamp(self.min_area, MIN_AREA_RANGE),
            cooldown_ms=_clamp(self.cooldown_ms, COOLDOWN_MS_RANGE),
        )


def motion_config_from_cfg(cfg_module: Any) -> MotionConfig:
    """Build :class:`MotionConfig` from a runtime config module.

    Recognised attributes (all optional): ``MOTION_THRESHOLD``,
    ``MOTION_MIN_AREA``, ``MOTION_COOLDOWN_MS``, ``MOTION_USE_ROI``,
    ``MOTION_BEEP_ENABLED``.
    """
    return MotionConfig(
        threshold=int(getattr(cfg_module, "MOTION_THRESHOLD", 20)),
        min_area=int(getattr(cfg_module, "MOTION_MIN_AREA", 2500)),
        cooldown_ms=int(getattr(cfg_module, "MOTION_COOLDOWN_MS", 1200)),
        use_roi=bool(getattr(cfg_module, "MOTION_USE_ROI", False)),
        beep_enabled=bool(getattr(cfg_module, "MOTION_BEEP_ENABLED", False)),
    ).clamped()


def total_area(boxes: List[MotionBox]) -> float:
    return float(sum(b.area for b in boxes))
