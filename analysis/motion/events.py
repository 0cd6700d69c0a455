from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Callable, Optional, Sequence, Union

from .model import MotionBox


@dataclass(frozen=True)
class MotionEvent:
    """
    A discrete, deduplicated occurrence of motion.

    This is the unit handed to the alert sink; a continuous blob of motion
    produces at most one of these per cooldown interval.
    """

    timestamp_ms: float
    box_count: int
    total_area: int


CooldownSource = Union[float, Callable[[], float]]


class MotionEventThrottler:
    """
    Turn a per-cycle stream of motion boxes into rate-limited MotionEvents.

    API:
        throttler = MotionEventThrottler(cooldown_ms=1200)
        ev = throttler.on_detection_result(boxes, now_ms)   # MotionEvent | None

    ``cooldown_ms`` may be a number or a zero-argument callable; a callable
    is re-read on every cycle so runtime changes apply to the next call.
    """

    def __init__(self, cooldown_ms: CooldownSource = 1200.0) -> None:
        self._cooldown = cooldown_ms
        self._last_event_ms: float = -math.inf
        self.motion_present: bool = False
        self.event_count: int = 0

    # ------------------------------------------------------------------ #
    # Helpers
    # ------------------------------------------------------------------ #

    @property
    def cooldown_ms(self) -> float:
        src = self._cooldown
        return float(src() if callable(src) else src)

    @property
    def last_event_ms(self) -> Optional[float]:
        return None if self._last_event_ms == -math.inf else self._last_event_ms

    def reset(self) -> None:
        self._last_event_ms = -math.inf
        self.motion_present = False
        self.event_count = 0

    # ------------------------------------------------------------------ #
    # Public API
    # ------------------------------------------------------------------ #

    def on_detection_result(
        self, boxes: Sequence[MotionBox], now_ms: float
    ) -> Optional[MotionEvent]:
        # The presence flag follows every cycle, independent of the cooldown.
        self.motion_present = len(boxes) > 0
        if not self.motion_present:
            return None

        if float(now_ms) - self._last_event_ms <= self.cooldown_ms:
            return None

        self._last_event_ms = float(now_ms)
        self.event_count += 1
        return MotionEvent(
            timestamp_ms=float(now_ms),
            box_count=len(boxes),
            total_area=int(sum(b.area for b in boxes)),
        )
