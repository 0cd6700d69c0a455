from __future__ import annotations

from analysis.motion import FrequencyAnalyzer
from analysis.motion.frequency import abnormal_alert_message


def _feed(an: FrequencyAnalyzer, times, motion=True):
    return [an.observe(motion, t) for t in times]


def test_rate_counts_motion_cycles_only():
    an = FrequencyAnalyzer()
    an.observe(True, 0.0)
    an.observe(False, 100.0)
    r = an.observe(True, 200.0)
    assert r.rate_per_minute == 2
    assert not r.is_abnormal


def test_latch_fires_once_when_rate_exceeds_nine():
    an = FrequencyAnalyzer()
    readings = _feed(an, [i * 1000.0 for i in range(15)])

    fired = [i for i, r in enumerate(readings) if r.became_abnormal]
    assert fired == [9]  # tenth motion cycle
    assert readings[8].rate_per_minute == 9 and not readings[8].is_abnormal
    assert readings[9].rate_per_minute == 10 and readings[9].is_abnormal
    assert all(r.is_abnormal for r in readings[9:])


def test_window_trims_entries_older_than_sixty_seconds():
    an = FrequencyAnalyzer()
    an.observe(True, 0.0)
    an.observe(True, 1_000.0)

    # Exactly 60 s old is still inside the window.
    assert an.observe(False, 60_000.0).rate_per_minute == 2
    assert an.observe(False, 60_000.5).rate_per_minute == 1
    assert an.observe(False, 61_001.0).rate_per_minute == 0


def test_return_to_normal_is_silent_and_reentry_fires_again():
    an = FrequencyAnalyzer()
    first = _feed(an, [i * 100.0 for i in range(12)])
    assert sum(r.became_abnormal for r in first) == 1

    # Let the whole window drain.
    calm = an.observe(False, 70_000.0)
    assert calm.rate_per_minute == 0
    assert not calm.is_abnormal
    assert not calm.became_abnormal
    assert not an.is_abnormal

    second = _feed(an, [70_000.0 + i * 100.0 for i in range(1, 12)])
    assert sum(r.became_abnormal for r in second) == 1


def test_custom_bound_and_reset():
    an = FrequencyAnalyzer(window_ms=1_000.0, high_bound=2)
    rs = _feed(an, [0.0, 10.0, 20.0])
    assert rs[-1].became_abnormal
    an.reset()
    assert an.rate_per_minute == 0
    assert not an.is_abnormal


def test_alert_message_format():
    assert abnormal_alert_message(14) == "Abnormal motion: 14/min (normal: 6-9)"
