from __future__ import annotations

from typing import Optional

import cv2
import numpy as np

from .model import FlowField

# Farneback settings, tuned for ~480px wide ROIs on handheld footage.
PYR_SCALE = 0.5
LEVELS = 3
WINSIZE = 15
ITERATIONS = 3
POLY_N = 5
POLY_SIGMA = 1.2
FLAGS = 0


class FlowFieldEngine:
    """Dense optical flow between the previous and current ROI.

    The engine owns exactly one "previous" frame. ``estimate`` never moves
    the baseline forward on a successful flow computation; the caller does
    that with ``advance`` once the whole frame has been processed, so a
    frame that fails later in the pipeline leaves the baseline intact.
    """

    def __init__(self) -> None:
        self._prev: Optional[np.ndarray] = None

    @property
    def has_baseline(self) -> bool:
        return self._prev is not None

    def reset(self) -> None:
        self._prev = None

    def estimate(self, gray: np.ndarray) -> Optional[FlowField]:
        """Return the flow from the stored baseline to ``gray``.

        Returns ``None`` (warming up) when there is no baseline or its shape
        differs; in that case ``gray`` becomes the new baseline.
        """
        if self._prev is None or self._prev.shape != gray.shape:
            self.advance(gray)
            return None

        flow = cv2.calcOpticalFlowFarneback(
            self._prev,
            gray,
            None,
            PYR_SCALE,
            LEVELS,
            WINSIZE,
            ITERATIONS,
            POLY_N,
            POLY_SIGMA,
            FLAGS,
        )
        fx = np.ascontiguousarray(flow[..., 0])
        fy = np.ascontiguousarray(flow[..., 1])
        mag = cv2.magnitude(fx, fy)
        return FlowField(fx=fx, fy=fy, mag=mag)

    def advance(self, gray: np.ndarray) -> None:
        # Own a private copy; callers may reuse their buffers.
        self._prev = np.array(gray, dtype=np.uint8, copy=True)
