"""Frame-differencing motion detector.

The detector compares each frame against the one processed immediately
before it (not against a learned background), which keeps it tolerant of
slow lighting drift in a nursery. Per cycle it:

- converts the frame to grayscale and smooths it with a 5x5 Gaussian,
- crops current and previous frames to the active ROI,
- thresholds their absolute difference and closes small gaps,
- turns external contours above the minimum area into `MotionBox` objects.

The only state carried between cycles is the previous smoothed frame,
owned exclusively by the detector and replaced (never accumulated) on each
successful cycle.
"""

from __future__ import annotations

import logging
from typing import List, Optional

import numpy as np

from common.frame import Frame

from .model import MotionBox, MotionConfig
from .roi import RegionOfInterest
from .utils.motion_utils import detect_motion_boxes, smooth_gray

_LOG = logging.getLogger(__name__)


class MotionDetector:
    """Stateful wrapper around :func:`detect_motion_boxes`.

    A malformed frame or an OpenCV error is a transient miss: the cycle
    yields no boxes and the stored baseline is left exactly as it was, so
    the next good frame is still compared against the last good one.
    """

    def __init__(self, logger: Optional[logging.Logger] = None) -> None:
        self._prev_gray: Optional[np.ndarray] = None
        self._log = logger or _LOG
        # Outcome of the most recent detect(): "ok", "warmup" or "skipped".
        self.last_status: str = "skipped"

    # ------------------------------------------------------------------ #
    # Public API
    # ------------------------------------------------------------------ #

    @property
    def has_baseline(self) -> bool:
        return self._prev_gray is not None

    def reset(self) -> None:
        """Release the stored previous frame; the next call warms up again."""
        self._prev_gray = None

    def detect(
        self,
        frame: Frame,
        config: MotionConfig,
        roi: Optional[RegionOfInterest] = None,
    ) -> List[MotionBox]:
        """Process one frame and return this cycle's motion boxes.

        Parameters
        ----------
        frame:
            Current frame from the source.
        config:
            Snapshot of the tunables for this cycle (threshold, min_area).
        roi:
            Region to analyse, or ``None`` for the full frame.
        """
        self.last_status = "skipped"
        if frame is None or not frame.is_valid():
            self._log.debug("skipping invalid frame")
            return []

        try:
            gray = smooth_gray(frame.img)
        except Exception as exc:
            self._log.debug("frame %s: grayscale conversion failed: %s", frame.frame_id, exc)
            return []

        prev = self._prev_gray
        if prev is None or prev.shape != gray.shape:
            # Warm-up: nothing to compare against yet (or the size changed).
            if prev is not None:
                self._log.info(
                    "frame size changed %s -> %s; restarting baseline", prev.shape, gray.shape
                )
            self._prev_gray = gray
            self.last_status = "warmup"
            return []

        try:
            boxes = detect_motion_boxes(
                gray,
                prev,
                roi,
                threshold=int(config.threshold),
                min_area=int(config.min_area),
            )
        except Exception as exc:
            self._log.debug("frame %s: motion analysis failed: %s", frame.frame_id, exc)
            return []

        self._prev_gray = gray
        self.last_status = "ok"
        return boxes
