"""Public exports for the motion analysis package."""

from __future__ import annotations

from .engine import MotionDetector
from .events import MotionEvent, MotionEventThrottler
from .frequency import FrequencyAnalyzer, FrequencyReading
from .model import MotionBox, MotionConfig, motion_config_from_cfg
from .pipeline import CycleResult, MonitorStatus, MotionPipeline
from .roi import RegionOfInterest, RoiModel
from .sidecar import MotionSidecarWriter

__all__ = [
    "MotionDetector",
    "MotionBox",
    "MotionConfig",
    "motion_config_from_cfg",
    "MotionEvent",
    "MotionEventThrottler",
    "FrequencyAnalyzer",
    "FrequencyReading",
    "RegionOfInterest",
    "RoiModel",
    "MotionPipeline",
    "MonitorStatus",
    "CycleResult",
    "MotionSidecarWriter",
]
