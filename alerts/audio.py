from __future__ import annotations

import importlib
import importlib.util
import logging
import queue
import threading
from typing import Any, Dict, Optional, Protocol

import numpy as np

_LOG = logging.getLogger(__name__)

CUE_MOTION = "motion"
CUE_ABNORMAL = "abnormal"

SAMPLE_RATE = 48000
TONE_HZ = 880.0
BEEP_S = 0.15
# Start-to-start spacing of the two beeps of an abnormal-rate alert.
BEEP_GAP_S = 0.3


class AudioCue(Protocol):
    def play(self, cue_id: str) -> None: ...
    def close(self) -> None: ...


class NullAudioCue:
    def play(self, cue_id: str) -> None:
        pass

    def close(self) -> None:
        pass


def tone_pcm(
    freq_hz: float = TONE_HZ,
    duration_s: float = BEEP_S,
    rate: int = SAMPLE_RATE,
    volume: float = 0.5,
) -> np.ndarray:
    """Mono int16 sine burst with 5 ms linear fades so it does not click."""
    n = max(1, int(round(duration_s * rate)))
    t = np.arange(n, dtype=np.float32) / float(rate)
    wave = np.sin(2.0 * np.pi * freq_hz * t)
    fade = min(n // 2, int(0.005 * rate))
    if fade > 0:
        ramp = np.linspace(0.0, 1.0, fade, dtype=np.float32)
        wave[:fade] *= ramp
        wave[-fade:] *= ramp[::-1]
    return (wave * volume * 32767.0).astype(np.int16)


def cue_pcm(cue_id: str, rate: int = SAMPLE_RATE, freq_hz: float = TONE_HZ) -> bytes:
    """PCM for a cue: one beep for motion, two beeps ``BEEP_GAP_S`` apart for abnormal."""
    beep = tone_pcm(freq_hz, BEEP_S, rate)
    if cue_id != CUE_ABNORMAL:
        return beep.tobytes()
    silence = np.zeros(max(0, int(round((BEEP_GAP_S - BEEP_S) * rate))), dtype=np.int16)
    return np.concatenate([beep, silence, beep]).tobytes()


class ToneCue:
    """
    Play cue tones through PyAudio on a background worker.

    ``play()`` only enqueues the pre-rendered PCM; the worker performs the
    blocking ``stream.write``. When the queue is full the cue is dropped.
    Raises ``RuntimeError`` on construction when PyAudio is not installed
    or the output device cannot be opened.
    """

    def __init__(
        self,
        rate: int = SAMPLE_RATE,
        freq_hz: float = TONE_HZ,
        output_device_index: Optional[int] = None,
        queue_max: int = 4,
        pyaudio_module: Any = None,
        logger: Optional[logging.Logger] = None,
    ) -> None:
        if pyaudio_module is None:
            if importlib.util.find_spec("pyaudio") is None:
                raise RuntimeError("PyAudio is required for ToneCue (pip install pyaudio)")
            pyaudio_module = importlib.import_module("pyaudio")
        self._log = logger or _LOG

        self._p = pyaudio_module.PyAudio()
        try:
            self._stream = self._p.open(
                format=pyaudio_module.paInt16,
                channels=1,
                rate=int(rate),
                output=True,
                output_device_index=output_device_index,
                start=True,
            )
        except Exception as exc:
            self._p.terminate()
            raise RuntimeError(
                f"Failed to open audio output device (idx={output_device_index})"
            ) from exc

        self._pcm: Dict[str, bytes] = {
            cue: cue_pcm(cue, int(rate), freq_hz) for cue in (CUE_MOTION, CUE_ABNORMAL)
        }
        self._q: "queue.Queue[Optional[bytes]]" = queue.Queue(maxsize=queue_max)
        self._closed = False
        self._t = threading.Thread(target=self._worker, name="audio-cue", daemon=True)
        self._t.start()

    def _worker(self) -> None:
        while True:
            data = self._q.get()
            try:
                if data is None:
                    return
                self._stream.write(data)
            except Exception as exc:
                self._log.warning("audio playback failed: %s", exc)
            finally:
                self._q.task_done()

    def play(self, cue_id: str) -> None:
        pcm = self._pcm.get(cue_id)
        if pcm is None:
            self._log.debug("unknown audio cue %r", cue_id)
            return
        if self._closed:
            return
        try:
            self._q.put_nowait(pcm)
        except queue.Full:
            self._log.warning("audio queue full; dropping %r cue", cue_id)

    def close(self) -> None:
        """Play out queued cues, then release the output stream."""
        if self._closed:
            return
        self._closed = True
        try:
            self._q.put(None, timeout=1.0)
        except queue.Full:
            self._log.warning("audio queue still full at close")
        self._t.join(timeout=2.0)
        try:
            self._stream.stop_stream()
            self._stream.close()
        finally:
            self._p.terminate()
