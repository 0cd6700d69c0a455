from __future__ import annotations

import types
from typing import Any

import numpy as np
import pytest

from alerts.audio import (
    BEEP_GAP_S,
    BEEP_S,
    CUE_ABNORMAL,
    CUE_MOTION,
    SAMPLE_RATE,
    ToneCue,
    cue_pcm,
)


class _FakeStream:
    def __init__(self) -> None:
        self.writes: list[bytes] = []
        self.closed = False

    def write(self, data: bytes) -> None:
        self.writes.append(data)

    def stop_stream(self) -> None:
        pass

    def close(self) -> None:
        self.closed = True


class _FakePyAudio:
    def __init__(self, fail_open: bool = False) -> None:
        self.fail_open = fail_open
        self.stream = _FakeStream()
        self.open_kwargs: dict[str, Any] = {}
        self.terminated = False

    def open(self, **kwargs: Any) -> _FakeStream:
        if self.fail_open:
            raise OSError("Invalid output device")
        self.open_kwargs = kwargs
        return self.stream

    def terminate(self) -> None:
        self.terminated = True


def _fake_module(fail_open: bool = False):
    pa = _FakePyAudio(fail_open=fail_open)
    return types.SimpleNamespace(paInt16=8, PyAudio=lambda: pa), pa


def test_motion_cue_is_one_beep():
    pcm = cue_pcm(CUE_MOTION)
    assert len(pcm) == int(round(BEEP_S * SAMPLE_RATE)) * 2
    assert np.abs(np.frombuffer(pcm, dtype=np.int16)).max() > 10_000


def test_abnormal_cue_is_two_beeps_spaced_apart():
    pcm = cue_pcm(CUE_ABNORMAL)
    beep = int(round(BEEP_S * SAMPLE_RATE))
    gap = int(round((BEEP_GAP_S - BEEP_S) * SAMPLE_RATE))
    samples = np.frombuffer(pcm, dtype=np.int16)

    assert len(samples) == 2 * beep + gap
    assert not samples[beep : beep + gap].any()
    # Second beep starts one gap after the first.
    assert samples[beep + gap : beep + gap + 1000].any()


def test_tone_cue_plays_through_pyaudio_and_closes():
    mod, pa = _fake_module()
    cue = ToneCue(pyaudio_module=mod, output_device_index=3)
    cue.play(CUE_MOTION)
    cue.play(CUE_ABNORMAL)
    cue.play("unknown")
    cue.close()

    assert pa.open_kwargs["format"] == 8
    assert pa.open_kwargs["channels"] == 1
    assert pa.open_kwargs["output_device_index"] == 3
    assert pa.stream.writes == [cue_pcm(CUE_MOTION), cue_pcm(CUE_ABNORMAL)]
    assert pa.stream.closed and pa.terminated

    cue.play(CUE_MOTION)  # after close: ignored
    assert len(pa.stream.writes) == 2


def test_open_failure_raises_runtime_error_and_releases_pyaudio():
    mod, pa = _fake_module(fail_open=True)
    with pytest.raises(RuntimeError, match="audio output"):
        ToneCue(pyaudio_module=mod)
    assert pa.terminated
