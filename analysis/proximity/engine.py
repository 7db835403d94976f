"""Motion-based obstacle proximity analyzer.

One synchronous entry point, :meth:`ProximityAnalyzer.process_frame`, runs the
whole per-frame pipeline:

- grayscale + upright rotation, ROI crop, area downscale
- dense Farneback flow against the previous ROI
- global ego-motion (camera pan) compensation
- adaptive-threshold, radial-motion zone voting
- EMA smoothing and the navigation decision with speech cooldown

Every call returns either a :class:`Result` or an explicit :class:`Skipped`.
A skipped frame leaves the flow baseline, EMA and decision untouched so the
next frame picks up cleanly. The analyzer holds no threads; whatever loop
delivers frames decides the scheduling.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Callable, Optional, Union

import cv2

from common.frame import Frame

from .decision import DecisionStateMachine, ZoneSmoother, decide
from .ego import EGO_NOISE_FLOOR, compensate_ego_motion
from .flow import FlowFieldEngine
from .model import FrameError, NavState, Result, Skipped
from .params import DetectionParams
from .preprocess import prepare_roi, to_gray
from .zones import score_zones

_LOG = logging.getLogger(__name__)

FPS_EMA_ALPHA = 0.2

ParamsProvider = Callable[[], DetectionParams]


@dataclass
class AnalyzerStats:
    frames_in: int = 0
    results: int = 0
    warmups: int = 0
    skipped: int = 0
    last_skip_reason: str = ""
    fps: float = 0.0  # smoothed over frame timestamps


class ProximityAnalyzer:
    def __init__(
        self,
        params: Optional[ParamsProvider] = None,
        ego_noise_floor: float = EGO_NOISE_FLOOR,
        smoother: Optional[ZoneSmoother] = None,
        decider: Optional[DecisionStateMachine] = None,
        flow: Optional[FlowFieldEngine] = None,
    ) -> None:
        self._params: ParamsProvider = params or DetectionParams
        self._ego_noise_floor = float(ego_noise_floor)
        self._flow = flow or FlowFieldEngine()
        self._smoother = smoother or ZoneSmoother()
        self._decider = decider or DecisionStateMachine()
        self._stats = AnalyzerStats()
        self._last_pts_ms: Optional[float] = None

    # ------------------------------------------------------------------ #
    # Introspection
    # ------------------------------------------------------------------ #

    @property
    def state(self) -> NavState:
        """Last decided state.

        Warm-up frames report ``WARMING_UP`` in their ``Result`` but do not
        change this; the decision resumes from here once flow is available.
        """
        return self._decider.state

    @property
    def smoother(self) -> ZoneSmoother:
        return self._smoother

    def stats(self) -> AnalyzerStats:
        return self._stats

    # ------------------------------------------------------------------ #
    # Public API
    # ------------------------------------------------------------------ #

    def process_frame(self, frame: Frame) -> Union[Result, Skipped]:
        self._stats.frames_in += 1
        frame_id = _as_number(getattr(frame, "frame_id", None), int, -1)
        pts_ms = _as_number(getattr(frame, "pts_ms", None), float, None)
        try:
            if pts_ms is None:
                raise FrameError(f"invalid pts_ms {getattr(frame, 'pts_ms', None)!r}")
            out = self._process(frame, pts_ms, frame_id)
        except (FrameError, cv2.error, ValueError) as exc:
            self._stats.skipped += 1
            self._stats.last_skip_reason = str(exc)
            _LOG.warning("Skipping frame %d: %s", frame_id, exc)
            return Skipped(
                frame_id=frame_id,
                pts_ms=-1.0 if pts_ms is None else pts_ms,
                reason=str(exc),
            )
        self._update_fps(pts_ms)
        return out

    def reset(self) -> None:
        self._flow.reset()
        self._last_pts_ms = None
        self._smoother.reset()
        self._decider = DecisionStateMachine(
            self._decider.safe_cooldown_ms, self._decider.alert_cooldown_ms
        )

    # ------------------------------------------------------------------ #
    # Internal helpers
    # ------------------------------------------------------------------ #

    def _process(self, frame: Frame, pts_ms: float, frame_id: int) -> Result:
        params = self._params()

        gray = to_gray(frame.img, frame.rotation_deg)
        roi = prepare_roi(gray, params)

        field = self._flow.estimate(roi.gray)
        if field is None:
            self._stats.warmups += 1
            _LOG.debug("Frame %d: new flow baseline %s", frame_id, roi.gray.shape)
            return Result(
                status_text=NavState.WARMING_UP.text,
                severity=NavState.WARMING_UP.severity,
                state=NavState.WARMING_UP,
                pts_ms=pts_ms,
                frame_id=frame_id,
                roi_top=roi.roi_top,
                roi_bottom=roi.roi_bottom,
            )

        field, (dx, dy), compensated = compensate_ego_motion(field, self._ego_noise_floor)
        score = score_zones(field, params)

        # Nothing below can fail; commit state only from here on.
        ema_l, ema_c, ema_r = self._smoother.update(score)
        desired = decide(ema_l, ema_c, ema_r, params)
        speak = self._decider.step(desired, pts_ms, speak_enabled=params.speak)
        self._flow.advance(roi.gray)
        self._stats.results += 1

        return Result(
            status_text=desired.text,
            severity=desired.severity,
            state=desired,
            pts_ms=pts_ms,
            frame_id=frame_id,
            left_count=score.left,
            center_count=score.center,
            right_count=score.right,
            roi_top=roi.roi_top,
            roi_bottom=roi.roi_bottom,
            speak=speak,
            ema_left=ema_l,
            ema_center=ema_c,
            ema_right=ema_r,
            threshold=score.threshold,
            ego_dx=dx,
            ego_dy=dy,
            ego_compensated=compensated,
        )

    def _update_fps(self, pts_ms: float) -> None:
        last, self._last_pts_ms = self._last_pts_ms, pts_ms
        if last is None or pts_ms <= last:
            return
        inst = 1000.0 / (pts_ms - last)
        fps = self._stats.fps
        self._stats.fps = inst if fps <= 0.0 else fps + FPS_EMA_ALPHA * (inst - fps)


def _as_number(value, cast, fallback):
    try:
        return cast(value)
    except (TypeError, ValueError):
        return fallback
