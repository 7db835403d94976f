from __future__ import annotations

from typing import Iterable, List, Optional

from analysis.proximity.model import Severity

from .cooldown import AnnounceCooldown
from .model import DetBox, FusedGuidance

MIN_APPROACH_AREA = 0.02
CENTER_LEFT = 1.0 / 3.0
CENTER_RIGHT = 2.0 / 3.0

TEXT_AHEAD = "Object approaching ahead, stop"
TEXT_LEFT = "Object approaching on the left, turn right"
TEXT_RIGHT = "Object approaching on the right, turn left"


def qualifying_boxes(boxes: Optional[Iterable[DetBox]], area_floor: float = MIN_APPROACH_AREA) -> List[DetBox]:
    if not boxes:
        return []
    return [b for b in boxes if b.approaching and b.area > area_floor]


def fuse_detections(
    boxes: Optional[Iterable[DetBox]],
    cooldown: AnnounceCooldown,
    now_ms: float,
    area_floor: float = MIN_APPROACH_AREA,
    announce: bool = True,
) -> Optional[FusedGuidance]:
    """
    Turn approaching tracker boxes into an override of the motion guidance.

    Returns ``None`` when no box is approaching and large enough, in which
    case the motion result stands. Ahead beats left, left beats right. The
    cooldown is keyed on the first qualifying box that carries a track id.
    With ``announce=False`` the cooldown is left untouched and
    ``speak`` stays ``None``.
    """
    near = qualifying_boxes(boxes, area_floor)
    if not near:
        return None

    if any(CENTER_LEFT <= b.center_x <= CENTER_RIGHT for b in near):
        text, severity = TEXT_AHEAD, Severity.DANGER
    elif any(b.center_x < CENTER_LEFT for b in near):
        text, severity = TEXT_LEFT, Severity.WARNING
    else:
        text, severity = TEXT_RIGHT, Severity.WARNING

    track_id = next((b.track_id for b in near if b.track_id is not None), None)
    speak = text if announce and cooldown.try_announce(track_id, now_ms) else None
    return FusedGuidance(display_text=text, speak=speak, severity=severity)
