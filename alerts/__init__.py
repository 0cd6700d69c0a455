"""Audio cues played on motion events and abnormal-rate alerts."""

from .audio import AudioCue, NullAudioCue, ToneCue

__all__ = ["AudioCue", "NullAudioCue", "ToneCue"]
