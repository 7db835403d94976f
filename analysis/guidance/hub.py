from __future__ import annotations

import logging
import threading
from typing import Iterable, List, Optional

from analysis.proximity.model import Result
from common.time import Clock, now_ms

from .cooldown import AnnounceCooldown
from .fusion import MIN_APPROACH_AREA, fuse_detections
from .model import DetBox, FusedGuidance, Guidance

_LOG = logging.getLogger(__name__)


class GuidanceHub:
    """Merge point for the motion pipeline and the tracker pipeline.

    Both pipelines run on their own threads; the latest boxes and the
    announcement cooldown live behind one lock so the two never interleave
    a fusion decision.

    API:
        hub = GuidanceHub()
        hub.update_boxes(boxes)        # tracker thread, per detection frame
        guidance = hub.merge(result)   # motion thread, per analyzer Result

    Only ``merge`` spends announcement cooldowns; ``update_boxes`` reports
    the override text without voicing it.
    """

    def __init__(
        self,
        cooldown: Optional[AnnounceCooldown] = None,
        area_floor: float = MIN_APPROACH_AREA,
        clock: Clock = now_ms,
    ) -> None:
        self._lock = threading.Lock()
        self._cooldown = cooldown or AnnounceCooldown()
        self._area_floor = float(area_floor)
        self._clock = clock
        self._boxes: List[DetBox] = []

    @property
    def boxes(self) -> List[DetBox]:
        with self._lock:
            return list(self._boxes)

    def update_boxes(
        self, boxes: Optional[Iterable[DetBox]], now_ms: Optional[float] = None
    ) -> Optional[FusedGuidance]:
        """Store the tracker's latest boxes; returns the override they imply, if any.

        The returned override is display-only (``speak`` is ``None``); the
        announcement itself is made by the next ``merge``.

        ``None`` or an empty list (tracker failure or nothing seen) clears the
        boxes and never raises.
        """
        t = self._clock() if now_ms is None else float(now_ms)
        with self._lock:
            self._boxes = list(boxes) if boxes else []
            fused = fuse_detections(
                self._boxes, self._cooldown, t, self._area_floor, announce=False
            )
        if fused is not None:
            _LOG.debug("Tracker override: %s", fused.display_text)
        return fused

    def merge(
        self, result: Result, now_ms: Optional[float] = None, speak_enabled: bool = True
    ) -> Guidance:
        """Combine an analyzer ``Result`` with the latest tracker boxes.

        An override replaces the motion text; when its own speech is held
        back by the cooldown, the motion speech (if any) is used instead.
        """
        t = self._clock() if now_ms is None else float(now_ms)
        with self._lock:
            fused = fuse_detections(self._boxes, self._cooldown, t, self._area_floor)
        if fused is None:
            guidance = Guidance(
                display_text=result.status_text, severity=result.severity, speak=result.speak
            )
        else:
            guidance = Guidance(
                display_text=fused.display_text,
                severity=fused.severity,
                speak=fused.speak if fused.speak is not None else result.speak,
                overridden=True,
            )
        if not speak_enabled:
            guidance.speak = None
        return guidance
