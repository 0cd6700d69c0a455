"""Per-frame motion pipeline and its scheduler loop.

One analysis cycle runs the detector on a frame, feeds the boxes to the
event throttler and the frequency analyzer, and hands any resulting event
or alert to the sink and the audio cue. Cycles are strictly sequential; a
single scheduler thread drives them at the target frame rate.
"""

from __future__ import annotations

import logging
import threading
import time
from dataclasses import dataclass, field, replace
from typing import Any, Callable, List, Optional

from alerts.audio import CUE_ABNORMAL, CUE_MOTION, AudioCue, NullAudioCue
from common.frame import Frame
from common.time import FpsMeter, monotonic_ms
from record.sink import AlertSink, NullAlertSink

from .engine import MotionDetector
from .events import MotionEvent, MotionEventThrottler
from .frequency import FrequencyAnalyzer, FrequencyReading, abnormal_alert_message
from .model import MotionBox, MotionConfig
from .roi import RegionOfInterest, RoiModel, default_roi

_LOG = logging.getLogger(__name__)


@dataclass
class MonitorStatus:
    """What the operator sees after the latest cycle."""

    has_motion: bool = False
    event_count: int = 0
    alert_visible: bool = False
    alert_detail: str = ""
    rate_per_minute: int = 0
    abnormal_alert: bool = False
    fps: int = 0


@dataclass
class CycleResult:
    analyzed: bool  # False for warm-up, "not ready" and skipped frames
    boxes: List[MotionBox] = field(default_factory=list)
    event: Optional[MotionEvent] = None
    frequency: Optional[FrequencyReading] = None
    roi: Optional[RegionOfInterest] = None


class MotionPipeline:
    """Wire the motion core to a frame source, an alert sink and an audio cue.

    Configuration is a single :class:`MotionConfig` snapshot that
    :meth:`update_config` replaces wholesale; every cycle reads the latest
    snapshot once at its start. The ROI rectangle lives in :attr:`roi_model`
    and is mutated only through it.
    """

    def __init__(
        self,
        source: Any = None,
        config: Optional[MotionConfig] = None,
        sink: Optional[AlertSink] = None,
        audio: Optional[AudioCue] = None,
        roi_model: Optional[RoiModel] = None,
        target_fps: float = 30.0,
        clock: Callable[[], float] = monotonic_ms,
        logger: Optional[logging.Logger] = None,
    ) -> None:
        self._source = source
        self._config = (config or MotionConfig()).clamped()
        self._sink: AlertSink = sink or NullAlertSink()
        self._audio: AudioCue = audio or NullAudioCue()
        self.roi_model = roi_model or RoiModel()
        if self._config.roi is not None:
            self.roi_model.set(self._config.roi)
        self._target_fps = max(float(target_fps), 0.1)
        self._clock = clock
        self._log = logger or _LOG

        self.detector = MotionDetector(logger=self._log)
        self.throttler = MotionEventThrottler(cooldown_ms=lambda: self._config.cooldown_ms)
        self.analyzer = FrequencyAnalyzer()
        self._fps = FpsMeter()
        self._status = MonitorStatus()

        self._last_frame: Optional[Frame] = None
        self._last_boxes: List[MotionBox] = []

        # Held for the whole of a cycle and for teardown, so stop() never
        # releases state underneath a running cycle.
        self._cycle_lock = threading.Lock()
        self._stop_ev = threading.Event()
        self._thr: Optional[threading.Thread] = None

    # ------------------------------------------------------------------ #
    # Configuration
    # ------------------------------------------------------------------ #

    @property
    def config(self) -> MotionConfig:
        return self._config

    def update_config(self, **changes: Any) -> MotionConfig:
        """Replace the configuration; takes effect on the next cycle."""
        new_cfg = replace(self._config, **changes).clamped()
        if "roi" in changes:
            self.roi_model.set(new_cfg.roi)
        if not new_cfg.use_roi:
            self.roi_model.set(None)
        self._config = new_cfg
        self._log.debug("config updated: %s", new_cfg)
        return new_cfg

    @property
    def status(self) -> MonitorStatus:
        return replace(self._status)

    @property
    def last_frame(self) -> Optional[Frame]:
        return self._last_frame

    @property
    def last_boxes(self) -> List[MotionBox]:
        return list(self._last_boxes)

    def active_roi(self) -> Optional[RegionOfInterest]:
        return self.roi_model.get() if self._config.use_roi else None

    # ------------------------------------------------------------------ #
    # One analysis cycle
    # ------------------------------------------------------------------ #

    def process_cycle(self, frame: Optional[Frame], now_ms: Optional[float] = None) -> CycleResult:
        """Analyse one frame; ``now_ms`` defaults to the frame's timestamp."""
        with self._cycle_lock:
            return self._process_cycle(frame, now_ms)

    def _process_cycle(self, frame: Optional[Frame], now_ms: Optional[float]) -> CycleResult:
        cfg = self._config
        if frame is None or not frame.is_valid():
            return CycleResult(analyzed=False)

        now = float(frame.pts_ms if now_ms is None else now_ms)

        self.roi_model.clamp_to_frame(frame.width, frame.height)
        if cfg.use_roi and self.roi_model.get() is None:
            self.roi_model.set(default_roi(frame.width, frame.height))
        roi = self.roi_model.get() if cfg.use_roi else None

        boxes = self.detector.detect(frame, cfg, roi)
        self._last_frame = frame
        self._last_boxes = boxes
        if self.detector.last_status != "ok":
            # Warm-up or a transient miss: no motion claim either way.
            return CycleResult(analyzed=False, roi=roi)

        event = self.throttler.on_detection_result(boxes, now)
        st = self._status
        st.has_motion = self.throttler.motion_present
        if event is not None:
            st.event_count = self.throttler.event_count
            st.alert_visible = True
            st.alert_detail = f"objects: {event.box_count}, total area: {event.total_area} px"
            self._log.info(
                "motion event #%d: boxes=%d total_area=%d",
                st.event_count,
                event.box_count,
                event.total_area,
            )
            if cfg.beep_enabled:
                self._play(CUE_MOTION)
            self._deliver(
                "record_motion_event",
                lambda: self._sink.record_motion_event(
                    event.timestamp_ms, event.box_count, event.total_area
                ),
            )
        elif not boxes:
            st.alert_visible = False

        # Fed with the per-cycle flag, not with throttled events.
        reading = self.analyzer.observe(bool(boxes), now)
        st.rate_per_minute = reading.rate_per_minute
        st.abnormal_alert = reading.is_abnormal
        if reading.became_abnormal:
            message = abnormal_alert_message(reading.rate_per_minute)
            self._log.warning(message)
            if cfg.beep_enabled:
                self._play(CUE_ABNORMAL)
            self._deliver(
                "record_abnormal_alert",
                lambda: self._sink.record_abnormal_alert(now, reading.rate_per_minute, message),
            )

        return CycleResult(analyzed=True, boxes=boxes, event=event, frequency=reading, roi=roi)

    def _deliver(self, what: str, call: Callable[[], None]) -> None:
        try:
            call()
        except Exception as exc:
            self._log.warning("%s failed (non-fatal): %s", what, exc)

    def _play(self, cue_id: str) -> None:
        try:
            self._audio.play(cue_id)
        except Exception as exc:
            self._log.debug("audio cue %r failed: %s", cue_id, exc)

    # ------------------------------------------------------------------ #
    # Scheduler
    # ------------------------------------------------------------------ #

    def tick(self) -> Optional[CycleResult]:
        """Read one frame and analyse it; ``None`` when the source had nothing ready."""
        self._status.fps = self._fps.tick(self._clock())
        if self._source is None:
            return None
        try:
            frame = self._source.get_frame()
        except Exception as exc:
            self._log.debug("frame acquisition failed: %s", exc)
            return None
        if frame is None:
            return None
        try:
            return self.process_cycle(frame)
        except Exception as exc:
            self._log.warning("analysis cycle failed; skipping: %s", exc)
            return None

    @property
    def running(self) -> bool:
        return self._thr is not None and self._thr.is_alive()

    def start(self) -> None:
        """Acquire the frame source and start the scheduler thread.

        Raises whatever the source raises on acquisition (for a camera,
        ``CameraUnavailableError``); nothing is left running in that case.
        """
        if self.running:
            return
        if self._source is None:
            raise RuntimeError("MotionPipeline has no frame source")
        self._source.start()
        self._stop_ev.clear()
        self._thr = threading.Thread(target=self._loop, name="motion-pipeline", daemon=True)
        self._thr.start()
        self._log.info("motion pipeline started at %.1f fps", self._target_fps)

    def run(self, max_seconds: float = 0.0) -> None:
        """Run the cycle loop in the calling thread until stopped or ``max_seconds`` elapse."""
        if self._source is None:
            raise RuntimeError("MotionPipeline has no frame source")
        self._source.start()
        self._stop_ev.clear()
        deadline = time.monotonic() + max_seconds if max_seconds > 0 else None
        try:
            self._loop(deadline)
        finally:
            self.stop()

    def _loop(self, deadline: Optional[float] = None) -> None:
        period_s = 1.0 / self._target_fps
        while not self._stop_ev.is_set():
            t0 = time.monotonic()
            if deadline is not None and t0 >= deadline:
                self._log.info("reached time limit, stopping")
                break
            self.tick()
            remaining = period_s - (time.monotonic() - t0)
            if remaining > 0:
                self._stop_ev.wait(remaining)

    def stop(self) -> None:
        """Atomic teardown: stop scheduling, release the source and the baseline."""
        self._stop_ev.set()
        thr = self._thr
        if thr is not None and thr is not threading.current_thread():
            thr.join(timeout=2.0)
        self._thr = None

        with self._cycle_lock:
            if self._source is not None:
                try:
                    self._source.close()
                except Exception as exc:
                    self._log.warning("frame source close failed: %s", exc)
            self.detector.reset()
            self._last_frame = None
            self._last_boxes = []
        self._deliver("sink flush", lambda: self._sink.flush())
        self._log.info("motion pipeline stopped")
