from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Optional, Tuple

from .model import NavState, ZoneScore
from .params import DetectionParams

_LOG = logging.getLogger(__name__)

EMA_ALPHA = 0.30
BALANCE_EPS = 0.03

SAFE_COOLDOWN_MS = 3500.0
ALERT_COOLDOWN_MS = 900.0


class ZoneSmoother:
    """Exponential moving average of the normalised per-zone rates."""

    def __init__(self, alpha: float = EMA_ALPHA) -> None:
        self.alpha = float(alpha)
        self.left = 0.0
        self.center = 0.0
        self.right = 0.0

    @staticmethod
    def normalise(score: ZoneScore) -> Tuple[float, float, float]:
        per_zone = max(1, score.expected_samples // 3)
        return score.left / per_zone, score.center / per_zone, score.right / per_zone

    def peek(self, score: ZoneScore) -> Tuple[float, float, float]:
        """EMA values ``update`` would produce, without committing them."""
        a = self.alpha
        nl, nc, nr = self.normalise(score)
        return (
            max(0.0, (1.0 - a) * self.left + a * nl),
            max(0.0, (1.0 - a) * self.center + a * nc),
            max(0.0, (1.0 - a) * self.right + a * nr),
        )

    def update(self, score: ZoneScore) -> Tuple[float, float, float]:
        self.left, self.center, self.right = self.peek(score)
        return self.left, self.center, self.right

    def reset(self) -> None:
        self.left = self.center = self.right = 0.0


@dataclass
class DecisionInputs:
    l_hit: bool
    r_hit: bool
    center_dominant: bool
    forward_motion: bool


def decision_inputs(ema_l: float, ema_c: float, ema_r: float, params: DetectionParams) -> DecisionInputs:
    center_dominant = ema_c >= params.enter_center and ema_c >= max(ema_l, ema_r) + params.center_margin
    balanced = abs(ema_l - ema_r) < BALANCE_EPS
    mean_rate = (ema_l + ema_c + ema_r) / 3.0
    return DecisionInputs(
        l_hit=ema_l >= params.enter_side,
        r_hit=ema_r >= params.enter_side,
        center_dominant=center_dominant,
        forward_motion=balanced and not center_dominant and mean_rate >= params.forward_mean_min,
    )


def decide(ema_l: float, ema_c: float, ema_r: float, params: DetectionParams) -> NavState:
    """Pick one state; rules are checked in priority order and the first match wins."""
    d = decision_inputs(ema_l, ema_c, ema_r, params)
    if d.forward_motion:
        # Walking forward through open space: balanced sides, nothing ahead.
        return NavState.SAFE
    if d.center_dominant or (d.l_hit and d.r_hit and ema_c >= params.enter_side):
        return NavState.DANGER
    if d.l_hit and not d.r_hit:
        return NavState.WARNING_LEFT
    if d.r_hit and not d.l_hit:
        return NavState.WARNING_RIGHT
    return NavState.SAFE


class DecisionStateMachine:
    """
    Holds the current navigation state and gates speech.

    The displayed state always follows the latest decision. Speech is only
    produced for warning/danger states and only when the state changed or
    the severity-dependent cooldown has elapsed since the last announcement.
    """

    def __init__(
        self,
        safe_cooldown_ms: float = SAFE_COOLDOWN_MS,
        alert_cooldown_ms: float = ALERT_COOLDOWN_MS,
    ) -> None:
        self.safe_cooldown_ms = float(safe_cooldown_ms)
        self.alert_cooldown_ms = float(alert_cooldown_ms)
        self.state = NavState.WARMING_UP
        self.changed_ms: Optional[float] = None
        self.last_spoken_ms: Optional[float] = None

    def cooldown_for(self, state: NavState) -> float:
        return self.safe_cooldown_ms if state is NavState.SAFE else self.alert_cooldown_ms

    def step(self, desired: NavState, now_ms: float, speak_enabled: bool = True) -> Optional[str]:
        """Move to ``desired`` and return the text to voice now, if any."""
        changed = desired is not self.state
        elapsed = None if self.last_spoken_ms is None else now_ms - self.last_spoken_ms
        due = elapsed is None or elapsed > self.cooldown_for(desired)

        if changed:
            _LOG.info("Guidance state %s -> %s", self.state.value, desired.value)
            self.state = desired
            self.changed_ms = now_ms

        if not (changed or due):
            return None
        if not (desired.spoken and speak_enabled):
            return None
        self.last_spoken_ms = now_ms
        return desired.text
