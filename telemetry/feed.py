from __future__ import annotations

import logging
import math
from collections import deque
from dataclasses import dataclass
from typing import Any, Deque, List, Mapping, Optional

from common.time import now_ms
from record.backend import BackendError, RealtimeDbClient

_LOG = logging.getLogger(__name__)

HISTORY_LEN = 30


def _as_number(value: Any) -> Optional[float]:
    try:
        num = float(value)
    except (TypeError, ValueError):
        return None
    return None if math.isnan(num) else num


@dataclass(frozen=True)
class TelemetryReading:
    ts_ms: float
    temperature_c: Optional[float]
    humidity_pct: Optional[float]

    @classmethod
    def from_payload(cls, payload: Mapping[str, Any], ts_ms: float) -> TelemetryReading:
        """Parse the device record (``suhu`` = temperature, ``kelembapan`` = humidity)."""
        return cls(
            ts_ms=float(ts_ms),
            temperature_c=_as_number(payload.get("suhu")),
            humidity_pct=_as_number(payload.get("kelembapan")),
        )


class TelemetryHistory:
    """Rolling buffer of the most recent readings."""

    def __init__(self, maxlen: int = HISTORY_LEN) -> None:
        self._buf: Deque[TelemetryReading] = deque(maxlen=maxlen)

    def __len__(self) -> int:
        return len(self._buf)

    def append(self, reading: TelemetryReading) -> None:
        self._buf.append(reading)

    def latest(self) -> Optional[TelemetryReading]:
        return self._buf[-1] if self._buf else None

    def readings(self) -> List[TelemetryReading]:
        return list(self._buf)

    def temperatures(self) -> List[Optional[float]]:
        return [r.temperature_c for r in self._buf]

    def humidities(self) -> List[Optional[float]]:
        return [r.humidity_pct for r in self._buf]


class TelemetryFeed:
    """Poll the incubator's realtime record into a :class:`TelemetryHistory`."""

    def __init__(
        self,
        client: RealtimeDbClient,
        history: Optional[TelemetryHistory] = None,
        path: Optional[str] = None,
        logger: Optional[logging.Logger] = None,
    ) -> None:
        self._client = client
        self.history = history or TelemetryHistory()
        self._path = path or client.config.telemetry_path
        self._log = logger or _LOG

    def poll(self, t_ms: Optional[float] = None) -> Optional[TelemetryReading]:
        """Fetch one reading; returns None when the record is empty or unreachable."""
        try:
            data = self._client.get(self._path)
        except BackendError as exc:
            self._log.warning("telemetry poll failed: %s", exc)
            return None
        if not isinstance(data, Mapping) or not data:
            return None
        reading = TelemetryReading.from_payload(data, now_ms() if t_ms is None else t_ms)
        self.history.append(reading)
        self._log.debug(
            "telemetry temp=%s humidity=%s", reading.temperature_c, reading.humidity_pct
        )
        return reading
