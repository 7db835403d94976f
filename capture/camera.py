from __future__ import annotations

import logging
import time
from typing import Any, Callable, Optional, Protocol, Tuple, Union

import cv2
import numpy as np

_LOG = logging.getLogger(__name__)


class FrameStream(Protocol):
    def start(self) -> None: ...
    def read(self) -> Optional[Tuple[np.ndarray, float, int]]: ...  # (img, pts_ms, frame_id)
    def close(self) -> None: ...


def _source_arg(source: Union[int, str]) -> Union[int, str]:
    # "0", "1" ... on the command line mean camera indices.
    if isinstance(source, str) and source.isdigit():
        return int(source)
    return source


class CameraStream:
    """``cv2.VideoCapture`` as a FrameStream.

    Yields BGR frames stamped with wall-clock epoch ms at read time.
    ``read`` blocks for one frame; wrap with :class:`LatestFrameSlot` to keep
    the analysis loop from waiting on the device.
    """

    def __init__(
        self,
        source: Union[int, str] = 0,
        width: Optional[int] = None,
        height: Optional[int] = None,
        capture_factory: Callable[[Union[int, str]], Any] = cv2.VideoCapture,
    ) -> None:
        self._source = _source_arg(source)
        self._width = width
        self._height = height
        self._factory = capture_factory
        self._cap: Any = None
        self._frame_id = 0
        self.eof = False

    def start(self) -> None:
        cap = self._factory(self._source)
        if cap is None or not cap.isOpened():
            raise RuntimeError(f"Could not open video source {self._source!r}")
        if self._width:
            cap.set(cv2.CAP_PROP_FRAME_WIDTH, float(self._width))
        if self._height:
            cap.set(cv2.CAP_PROP_FRAME_HEIGHT, float(self._height))
        self._cap = cap
        self.eof = False
        _LOG.info("Opened video source %r", self._source)

    def read(self) -> Optional[Tuple[np.ndarray, float, int]]:
        if self._cap is None or self.eof:
            return None
        ok, img = self._cap.read()
        if not ok or img is None:
            self.eof = True
            _LOG.info("Video source %r exhausted after %d frames", self._source, self._frame_id)
            return None
        fid = self._frame_id
        self._frame_id += 1
        return img, time.time() * 1000.0, fid

    def close(self) -> None:
        if self._cap is not None:
            self._cap.release()
            self._cap = None
