from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Optional, Tuple

import numpy as np


class FrameError(ValueError):
    """Malformed or unusable frame data; the frame is dropped."""


class Severity(str, Enum):
    PENDING = "pending"
    SAFE = "safe"
    WARNING = "warning"
    DANGER = "danger"

    @property
    def color(self) -> Tuple[int, int, int]:
        """BGR color for overlays."""
        return _SEVERITY_BGR[self]


_SEVERITY_BGR = {
    Severity.PENDING: (0, 255, 255),  # yellow
    Severity.SAFE: (0, 200, 0),  # green
    Severity.WARNING: (0, 165, 255),  # amber
    Severity.DANGER: (0, 0, 255),  # red
}


class NavState(str, Enum):
    WARMING_UP = "warming_up"
    SAFE = "safe"
    WARNING_LEFT = "warning_left"
    WARNING_RIGHT = "warning_right"
    DANGER = "danger"

    @property
    def text(self) -> str:
        return _STATE_TEXT[self]

    @property
    def severity(self) -> Severity:
        return _STATE_SEVERITY[self]

    @property
    def spoken(self) -> bool:
        """Whether this state is ever announced by voice."""
        return self.severity in (Severity.WARNING, Severity.DANGER)


_STATE_TEXT = {
    NavState.WARMING_UP: "Waiting for frames...",
    NavState.SAFE: "Path clear, keep going",
    NavState.WARNING_LEFT: "Obstacle on the left, turn right",
    NavState.WARNING_RIGHT: "Obstacle on the right, turn left",
    NavState.DANGER: "Wall ahead, stop",
}

_STATE_SEVERITY = {
    NavState.WARMING_UP: Severity.PENDING,
    NavState.SAFE: Severity.SAFE,
    NavState.WARNING_LEFT: Severity.WARNING,
    NavState.WARNING_RIGHT: Severity.WARNING,
    NavState.DANGER: Severity.DANGER,
}


@dataclass
class FlowField:
    """Dense per-pixel flow over the (resized) ROI. All arrays share one (H, W) shape."""

    fx: np.ndarray
    fy: np.ndarray
    mag: np.ndarray

    @property
    def shape(self) -> Tuple[int, int]:
        return self.mag.shape[:2]


@dataclass
class ZoneScore:
    """Weighted approach evidence per horizontal third for one frame."""

    left: int
    center: int
    right: int
    expected_samples: int  # (h // stride) * (w // stride)
    threshold: float = 0.0
    strong_threshold: float = 0.0


@dataclass
class Result:
    """
    Per-frame output of the proximity analyzer.

    ``speak`` is the text to voice now, or ``None`` when speech is disabled,
    the state is not announced, or the cooldown gate suppressed it. The
    display fields always reflect the current decision.
    """

    # Core signal
    status_text: str
    severity: Severity
    state: NavState
    pts_ms: float
    frame_id: int

    # Raw weighted counts for this frame
    left_count: int = 0
    center_count: int = 0
    right_count: int = 0

    # ROI rows in full-frame coordinates (for overlays)
    roi_top: int = 0
    roi_bottom: int = 0

    speak: Optional[str] = None

    # Telemetry (best-effort; safe defaults so callers can rely on presence)
    ema_left: float = 0.0
    ema_center: float = 0.0
    ema_right: float = 0.0
    threshold: float = 0.0
    ego_dx: float = 0.0
    ego_dy: float = 0.0
    ego_compensated: bool = False

    @property
    def color(self) -> Tuple[int, int, int]:
        return self.severity.color


@dataclass
class Skipped:
    """Explicit 'no output for this frame' signal; pipeline state is untouched."""

    frame_id: int
    pts_ms: float
    reason: str
