from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from analysis.proximity.model import Severity


def _clamp01(v: float) -> float:
    return 0.0 if v < 0.0 else 1.0 if v > 1.0 else v


@dataclass(frozen=True)
class DetBox:
    """
    One box from the external tracker, normalised to [0, 1] frame coordinates.

    ``growth``, ``vx`` and ``vy`` are the tracker's smoothed per-frame area
    and center deltas; ``approaching`` is its own verdict. All are consumed
    as-is.
    """

    left: float
    top: float
    right: float
    bottom: float
    label: Optional[str] = None
    confidence: float = 0.0
    track_id: Optional[int] = None
    vx: float = 0.0
    vy: float = 0.0
    growth: float = 0.0
    approaching: bool = False

    @property
    def center_x(self) -> float:
        return (self.left + self.right) / 2.0

    @property
    def center_y(self) -> float:
        return (self.top + self.bottom) / 2.0

    @property
    def area(self) -> float:
        return (self.right - self.left) * (self.bottom - self.top)

    @classmethod
    def from_pixels(
        cls,
        x1: float,
        y1: float,
        x2: float,
        y2: float,
        width: float,
        height: float,
        **kwargs,
    ) -> DetBox:
        """Normalise a pixel ``xyxy`` box, clamping to the frame and ordering corners."""
        if width <= 0 or height <= 0:
            raise ValueError(f"invalid frame size {width}x{height}")
        l, r = _clamp01(x1 / width), _clamp01(x2 / width)
        t, b = _clamp01(y1 / height), _clamp01(y2 / height)
        return cls(left=min(l, r), top=min(t, b), right=max(l, r), bottom=max(t, b), **kwargs)


@dataclass
class FusedGuidance:
    """Tracker-driven override of the motion guidance."""

    display_text: str
    speak: Optional[str]
    severity: Severity


@dataclass
class Guidance:
    """Final per-frame output after merging motion and tracker signals."""

    display_text: str
    severity: Severity
    speak: Optional[str] = None
    overridden: bool = False
