from __future__ import annotations

import contextlib
import logging
import threading
import time
from dataclasses import dataclass
from typing import Optional, Tuple

import numpy as np

from .camera import FrameStream

_LOG = logging.getLogger(__name__)

Item = Tuple[np.ndarray, float, int]


@dataclass
class SlotStats:
    frames_in: int = 0
    frames_out: int = 0
    drops: int = 0  # frames overwritten before anyone read them


class LatestFrameSlot:
    """
    Run a FrameStream on a worker thread and keep only its newest frame.

    The consumer never queues behind the camera: ``read`` returns the most
    recent unread frame or ``None``. A frame that arrives while the previous
    one is still unread replaces it and counts as a drop.
    """

    def __init__(self, inner: FrameStream, start_timeout_s: float = 2.0, close_timeout_s: float = 0.75):
        self._inner = inner
        self._start_timeout_s = start_timeout_s
        self._close_timeout_s = close_timeout_s
        self._lock = threading.Lock()
        self._slot: Optional[Item] = None
        self._run = threading.Event()
        self._started = threading.Event()
        self._done = threading.Event()
        self._thr: Optional[threading.Thread] = None
        self._start_exc: Optional[BaseException] = None
        self._stats = SlotStats()

    @property
    def finished(self) -> bool:
        """True once the worker has stopped and the slot is drained."""
        with self._lock:
            return self._done.is_set() and self._slot is None

    def start(self) -> None:
        if self._thr and self._thr.is_alive():
            return
        self._run.set()
        self._thr = threading.Thread(target=self._worker, name="frame-slot", daemon=True)
        self._thr.start()
        if not self._started.wait(self._start_timeout_s):
            _LOG.warning("Frame source not ready after %.2fs, continuing", self._start_timeout_s)
        if self._start_exc:
            raise self._start_exc

    def _worker(self) -> None:
        try:
            try:
                self._inner.start()
            except Exception as exc:
                self._start_exc = exc
                return
            finally:
                self._started.set()

            while self._run.is_set():
                item = self._inner.read()
                if item is None:
                    if getattr(self._inner, "eof", False):
                        break
                    time.sleep(0.001)
                    continue
                with self._lock:
                    self._stats.frames_in += 1
                    if self._slot is not None:
                        self._stats.drops += 1
                    self._slot = item
        except Exception as exc:
            _LOG.warning("Frame source failed: %s", exc)
        finally:
            self._done.set()
            with contextlib.suppress(Exception):
                self._inner.close()

    def read(self) -> Optional[Item]:
        with self._lock:
            item, self._slot = self._slot, None
            if item is not None:
                self._stats.frames_out += 1
            return item

    def stats(self) -> SlotStats:
        with self._lock:
            return SlotStats(self._stats.frames_in, self._stats.frames_out, self._stats.drops)

    def close(self) -> None:
        self._run.clear()
        if self._thr:
            self._thr.join(timeout=self._close_timeout_s)
            self._thr = None
