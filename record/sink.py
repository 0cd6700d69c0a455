from __future__ import annotations

import logging
import queue
import threading
import time
from typing import Any, Callable, Iterable, List, Optional, Protocol

from common.time import to_iso_utc

from .backend import BackendConfig, RealtimeDbClient

_LOG = logging.getLogger(__name__)

ABNORMAL_ALERT_TYPE = "abnormal_motion_frequency"


class AlertSink(Protocol):
    """Receiver for motion events and abnormal-rate alerts.

    Implementations must not raise into the caller and must not block the
    analysis loop for longer than it takes to hand the record off.
    """

    def record_motion_event(self, timestamp_ms: float, box_count: int, total_area: int) -> None: ...
    def record_abnormal_alert(self, timestamp_ms: float, rate_per_minute: int, message: str) -> None: ...
    def flush(self, timeout_s: float = 2.0) -> bool: ...
    def close(self) -> None: ...


def motion_event_payload(timestamp_ms: float, box_count: int, total_area: int) -> dict[str, Any]:
    return {
        "timestamp": to_iso_utc(timestamp_ms),
        "boxCount": int(box_count),
        "totalArea": int(total_area),
    }


def abnormal_alert_payload(timestamp_ms: float, rate_per_minute: int, message: str) -> dict[str, Any]:
    return {
        "timestamp": to_iso_utc(timestamp_ms),
        "type": ABNORMAL_ALERT_TYPE,
        "motionsPerMinute": int(rate_per_minute),
        "message": message,
    }


class NullAlertSink:
    """Sink that drops everything; used when no backend is configured."""

    def record_motion_event(self, timestamp_ms: float, box_count: int, total_area: int) -> None:
        pass

    def record_abnormal_alert(self, timestamp_ms: float, rate_per_minute: int, message: str) -> None:
        pass

    def flush(self, timeout_s: float = 2.0) -> bool:
        return True

    def close(self) -> None:
        pass


class WriteQueue:
    """
    Ordered fire-and-forget jobs on one daemon worker.

    ``submit()`` never blocks: when the queue is full, or after ``close()``,
    the job is dropped and logged. A job that raises is logged at WARNING
    and counted in :attr:`failures`; nothing is retried.
    """

    def __init__(
        self,
        name: str,
        queue_max: int = 256,
        logger: Optional[logging.Logger] = None,
    ) -> None:
        self.name = name
        self._log = logger or _LOG
        self._q: "queue.Queue[Optional[Callable[[], Any]]]" = queue.Queue(maxsize=queue_max)
        self._closed = False
        self.failures = 0
        self._thr: Optional[threading.Thread] = threading.Thread(
            target=self._worker, name=name, daemon=True
        )
        self._thr.start()

    def _worker(self) -> None:
        while True:
            job = self._q.get()
            try:
                if job is None:
                    return
                job()
            except Exception as exc:
                self.failures += 1
                self._log.warning("%s write failed (non-fatal): %s", self.name, exc)
            finally:
                self._q.task_done()

    def submit(self, what: str, job: Callable[[], Any]) -> None:
        if self._closed:
            self._log.debug("%s closed; dropping %s", self.name, what)
            return
        try:
            self._q.put_nowait(job)
        except queue.Full:
            self.failures += 1
            self._log.warning("%s queue full; dropping %s", self.name, what)

    def flush(self, timeout_s: float = 2.0) -> bool:
        """Wait until queued jobs are done; False if the timeout expired first."""
        deadline = time.monotonic() + timeout_s
        with self._q.all_tasks_done:
            while self._q.unfinished_tasks:
                remaining = deadline - time.monotonic()
                if remaining <= 0:
                    return False
                self._q.all_tasks_done.wait(remaining)
        return True

    def close(self, timeout_s: float = 2.0) -> None:
        if self._closed:
            return
        self.flush(timeout_s)
        self._closed = True
        try:
            self._q.put_nowait(None)
        except queue.Full:
            self._log.warning("%s queue still full at close", self.name)
        if self._thr is not None:
            self._thr.join(timeout=0.5)
            self._thr = None


class BackendAlertSink:
    """
    Fire-and-forget sink that persists records to the realtime database.

    Calls only enqueue a job on a :class:`WriteQueue`; its worker performs
    the HTTP requests in order. Failures are logged and dropped (no retry).
    """

    def __init__(
        self,
        client: RealtimeDbClient,
        queue_max: int = 256,
        logger: Optional[logging.Logger] = None,
    ) -> None:
        self._client = client
        self._cfg: BackendConfig = client.config
        self._jobs = WriteQueue("alert-sink", queue_max=queue_max, logger=logger or _LOG)

    @property
    def failures(self) -> int:
        return self._jobs.failures

    def record_motion_event(self, timestamp_ms: float, box_count: int, total_area: int) -> None:
        payload = motion_event_payload(timestamp_ms, box_count, total_area)
        path = self._cfg.motion_events_path
        self._jobs.submit("motion event", lambda: self._client.push(path, payload))

    def record_abnormal_alert(self, timestamp_ms: float, rate_per_minute: int, message: str) -> None:
        payload = abnormal_alert_payload(timestamp_ms, rate_per_minute, message)
        path = self._cfg.alerts_path
        self._jobs.submit("abnormal alert", lambda: self._client.push(path, payload))

    def flush(self, timeout_s: float = 2.0) -> bool:
        return self._jobs.flush(timeout_s)

    def close(self, timeout_s: float = 2.0) -> None:
        self._jobs.close(timeout_s)


class FanoutAlertSink:
    """Forward every record to several sinks; one failing sink never stops the rest."""

    def __init__(self, sinks: Iterable[AlertSink], logger: Optional[logging.Logger] = None) -> None:
        self._sinks: List[AlertSink] = list(sinks)
        self._log = logger or _LOG

    def _each(self, what: str, fn: Callable[[AlertSink], Any]) -> None:
        for sink in self._sinks:
            try:
                fn(sink)
            except Exception as exc:
                self._log.warning("%s failed on %s: %s", what, type(sink).__name__, exc)

    def record_motion_event(self, timestamp_ms: float, box_count: int, total_area: int) -> None:
        self._each(
            "record_motion_event",
            lambda s: s.record_motion_event(timestamp_ms, box_count, total_area),
        )

    def record_abnormal_alert(self, timestamp_ms: float, rate_per_minute: int, message: str) -> None:
        self._each(
            "record_abnormal_alert",
            lambda s: s.record_abnormal_alert(timestamp_ms, rate_per_minute, message),
        )

    def flush(self, timeout_s: float = 2.0) -> bool:
        ok = True
        for sink in self._sinks:
            try:
                ok = sink.flush(timeout_s) and ok
            except Exception as exc:
                self._log.warning("flush failed on %s: %s", type(sink).__name__, exc)
                ok = False
        return ok

    def close(self) -> None:
        self._each("close", lambda s: s.close())
