# capture/__init__.py
"""Capture package: camera and synthetic frame sources, nonblocking adapter."""

from .nonblocking_adapter import wrap_nonblocking
from .reader import FrameStream, ReaderConfig, ReaderFactory, SyntheticSource
from .video_source import CameraSource, CameraUnavailableError, CaptureError

__all__ = [
    "FrameStream",
    "ReaderFactory",
    "ReaderConfig",
    "SyntheticSource",
    "CameraSource",
    "CaptureError",
    "CameraUnavailableError",
    "wrap_nonblocking",
]

__version__ = "0.1.0"
