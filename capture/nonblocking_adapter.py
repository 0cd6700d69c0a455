from __future__ import annotations

import contextlib
import logging
import threading
import time
from collections import deque
from typing import Deque, Literal, Optional

from common.frame import Frame

from .reader import FrameStream, ReaderStats

_LOG = logging.getLogger(__name__)

DropPolicy = Literal["drop_new", "drop_old"]


class NonBlockingSource:
    """
    Decouple camera I/O from the analysis loop.

    A grabber thread opens the inner source and keeps pulling frames into a
    short buffer; ``get_frame()`` pops from that buffer and returns ``None``
    immediately when it is empty. With the default ``drop_old`` policy the
    analysis loop always sees the freshest frame rather than a backlog.
    """

    def __init__(
        self,
        inner: FrameStream,
        queue_max: int = 2,
        drop_policy: DropPolicy = "drop_old",
        start_timeout_s: float = 5.0,
        close_timeout_s: float = 0.75,
        idle_sleep_s: float = 0.001,
    ):
        self._inner = inner
        self._buf: Deque[Frame] = deque(maxlen=max(1, queue_max))
        self._buf_lock = threading.Lock()
        self._drop = drop_policy
        self._start_timeout_s = start_timeout_s
        self._close_timeout_s = close_timeout_s
        self._idle_sleep_s = idle_sleep_s

        self._running = threading.Event()
        self._opened = threading.Event()
        self._open_exc: Optional[BaseException] = None
        self._grabber: Optional[threading.Thread] = None
        self._stats = ReaderStats()

    # ------------------------------------------------------------------ lifecycle

    def start(self) -> None:
        """Open the inner source on the grabber thread.

        Waits up to ``start_timeout_s`` for the open to finish and re-raises
        whatever it raised (for a camera, ``CameraUnavailableError``).
        """
        if self._grabber is not None and self._grabber.is_alive():
            return
        self._opened.clear()
        self._open_exc = None
        self._running.set()
        self._grabber = threading.Thread(target=self._grab_loop, name="frame-grabber", daemon=True)
        self._grabber.start()

        if not self._opened.wait(self._start_timeout_s):
            _LOG.warning("frame source still opening after %.2fs", self._start_timeout_s)
        if self._open_exc is not None:
            exc = self._open_exc
            self.close()
            raise exc

    def close(self) -> None:
        self._running.clear()

        # inner.close() can hang on some drivers; give it a bounded window.
        closer = threading.Thread(target=self._close_inner, name="frame-source-close", daemon=True)
        closer.start()
        closer.join(timeout=self._close_timeout_s)

        if self._grabber is not None:
            self._grabber.join(timeout=0.5)
            self._grabber = None
        with self._buf_lock:
            self._buf.clear()

    def _close_inner(self) -> None:
        with contextlib.suppress(Exception):
            self._inner.close()

    # ------------------------------------------------------------------ grabber

    def _grab_loop(self) -> None:
        try:
            try:
                self._inner.start()
            except BaseException as exc:
                self._open_exc = exc
                return
            finally:
                self._opened.set()

            while self._running.is_set():
                try:
                    frame = self._inner.get_frame()
                except Exception as exc:
                    _LOG.debug("frame grab failed: %s", exc)
                    frame = None
                if frame is None:
                    time.sleep(self._idle_sleep_s)
                    continue
                self._push(frame)
        finally:
            self._close_inner()

    def _push(self, frame: Frame) -> None:
        with self._buf_lock:
            self._stats.frames_in += 1
            if len(self._buf) < (self._buf.maxlen or 1):
                self._buf.append(frame)
                return
            self._stats.drops += 1
            if self._drop == "drop_old":
                self._buf.popleft()
                self._buf.append(frame)

    # ------------------------------------------------------------------ consumer

    def get_frame(self) -> Optional[Frame]:
        if self._grabber is None or not self._grabber.is_alive():
            return None
        with self._buf_lock:
            if not self._buf:
                self._stats.misses += 1
                return None
            self._stats.frames_out += 1
            return self._buf.popleft()

    def stats(self) -> ReaderStats:
        return self._stats


def wrap_nonblocking(stream: FrameStream, **kwargs) -> NonBlockingSource:
    """Wrap ``stream`` in a :class:`NonBlockingSource` (keyword options pass through)."""
    return NonBlockingSource(stream, **kwargs)
