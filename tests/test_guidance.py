from __future__ import annotations

import threading

import pytest

from analysis.guidance import AnnounceCooldown, DetBox, GuidanceHub, fuse_detections, qualifying_boxes
from analysis.guidance.fusion import TEXT_AHEAD, TEXT_LEFT, TEXT_RIGHT
from analysis.proximity import NavState, Result, Severity


def _mk_box(cx: float, size: float = 0.224, approaching: bool = True, track_id=None) -> DetBox:
    # size 0.224 -> area ~0.05
    half = size / 2.0
    return DetBox(
        left=cx - half,
        top=0.5 - half,
        right=cx + half,
        bottom=0.5 + half,
        track_id=track_id,
        approaching=approaching,
    )


def _mk_result(state: NavState, speak=None) -> Result:
    return Result(
        status_text=state.text,
        severity=state.severity,
        state=state,
        pts_ms=0.0,
        frame_id=0,
        speak=speak,
    )


# ---------------------------------------------------------------- DetBox


def test_detbox_from_pixels_normalises_and_clamps():
    b = DetBox.from_pixels(700, 50, -20, 250, width=640, height=480, track_id=4)
    assert (b.left, b.right) == (0.0, 1.0)
    assert b.top == pytest.approx(50 / 480)
    assert b.bottom == pytest.approx(250 / 480)
    assert b.track_id == 4
    assert b.area == pytest.approx(200 / 480)

    with pytest.raises(ValueError):
        DetBox.from_pixels(0, 0, 1, 1, width=0, height=10)


# ---------------------------------------------------------------- fusion


def test_left_approaching_box_wins_over_non_approaching_right():
    boxes = [
        _mk_box(0.1, approaching=True),
        _mk_box(0.9, approaching=False),
        _mk_box(0.5, size=0.1, approaching=True),  # ahead but too small (area 0.01)
    ]
    fused = fuse_detections(boxes, AnnounceCooldown(), now_ms=10_000.0)

    assert fused is not None
    assert fused.display_text == TEXT_LEFT
    assert fused.speak == TEXT_LEFT
    assert fused.severity is Severity.WARNING


def test_center_beats_sides_and_left_beats_right():
    cd = AnnounceCooldown()
    both_sides = [_mk_box(0.9), _mk_box(0.1)]
    assert fuse_detections(both_sides, cd, 0.0).display_text == TEXT_LEFT

    all_three = [_mk_box(0.9), _mk_box(0.1), _mk_box(0.5)]
    fused = fuse_detections(all_three, cd, 0.0)
    assert fused.display_text == TEXT_AHEAD
    assert fused.severity is Severity.DANGER

    assert fuse_detections([_mk_box(0.9)], cd, 0.0).display_text == TEXT_RIGHT


def test_no_qualifying_box_defers_to_motion():
    cd = AnnounceCooldown()
    assert fuse_detections(None, cd, 0.0) is None
    assert fuse_detections([], cd, 0.0) is None
    assert fuse_detections([_mk_box(0.5, approaching=False)], cd, 0.0) is None
    assert fuse_detections([_mk_box(0.5, size=0.1)], cd, 0.0) is None
    assert qualifying_boxes([_mk_box(0.5)], area_floor=0.06) == []
    # nothing consumed the global cooldown
    assert cd.last_announced(None) is None


def test_fusion_cooldown_is_keyed_on_first_tracked_box():
    cd = AnnounceCooldown(cooldown_ms=3000)
    boxes = [_mk_box(0.1), _mk_box(0.2, track_id=7)]

    assert fuse_detections(boxes, cd, 1000.0).speak == TEXT_LEFT
    again = fuse_detections(boxes, cd, 2000.0)
    assert again.display_text == TEXT_LEFT
    assert again.speak is None
    assert cd.last_announced(7) == 1000.0
    assert cd.last_announced(None) is None


# ---------------------------------------------------------------- cooldown


def test_cooldown_per_track_and_global():
    cd = AnnounceCooldown(cooldown_ms=3000)
    assert cd.try_announce(1, 0.0)
    assert not cd.try_announce(1, 3000.0)  # needs strictly more than the window
    assert cd.try_announce(2, 100.0)  # independent id
    assert cd.try_announce(1, 3001.0)

    assert cd.try_announce(None, 0.0)
    assert not cd.try_announce(None, 2999.0)
    assert cd.try_announce(None, 3500.0)


def test_cooldown_timestamps_never_move_backwards():
    cd = AnnounceCooldown(cooldown_ms=3000)
    assert cd.try_announce(1, 10_000.0)
    assert not cd.try_announce(1, 1_000.0)
    assert cd.last_announced(1) == 10_000.0


def test_cooldown_map_is_bounded():
    cd = AnnounceCooldown(cooldown_ms=3000, max_tracks=4)
    for i in range(4):
        cd.try_announce(i, 0.0)
    # still hot: the least recently announced id is evicted
    cd.try_announce(99, 10.0)
    assert len(cd) == 4
    assert cd.last_announced(0) is None
    assert cd.last_announced(99) == 10.0

    # once the window has passed, everything stale is swept first
    cd.try_announce(100, 10_000.0)
    assert len(cd) == 1
    assert cd.sweep(20_000.0) == 1
    assert len(cd) == 0


# ---------------------------------------------------------------- hub


def test_hub_without_boxes_passes_motion_through():
    hub = GuidanceHub(clock=lambda: 0.0)
    res = _mk_result(NavState.DANGER, speak=NavState.DANGER.text)
    g = hub.merge(res)
    assert g.display_text == NavState.DANGER.text
    assert g.severity is Severity.DANGER
    assert g.speak == NavState.DANGER.text
    assert g.overridden is False


def test_hub_override_and_speech_fallback():
    hub = GuidanceHub()
    fused = hub.update_boxes([_mk_box(0.5, track_id=3)], now_ms=1000.0)
    assert fused.display_text == TEXT_AHEAD
    assert fused.speak is None

    res = _mk_result(NavState.WARNING_LEFT, speak=NavState.WARNING_LEFT.text)
    g = hub.merge(res, now_ms=1033.0)
    assert g.overridden is True
    assert g.display_text == TEXT_AHEAD
    assert g.severity is Severity.DANGER
    assert g.speak == TEXT_AHEAD

    # same track inside its window: text still overrides, motion speech is used
    g = hub.merge(res, now_ms=1500.0)
    assert g.display_text == TEXT_AHEAD
    assert g.speak == NavState.WARNING_LEFT.text

    g = hub.merge(res, now_ms=1600.0, speak_enabled=False)
    assert g.display_text == TEXT_AHEAD
    assert g.speak is None


def test_tracker_updates_do_not_spend_announcements():
    hub = GuidanceHub()
    for t in (1000.0, 1016.0, 1032.0):
        hub.update_boxes([_mk_box(0.5, track_id=3)], now_ms=t)

    g = hub.merge(_mk_result(NavState.SAFE), now_ms=1040.0)
    assert g.display_text == TEXT_AHEAD
    assert g.speak == TEXT_AHEAD


def test_hub_treats_tracker_failure_as_no_boxes():
    hub = GuidanceHub()
    hub.update_boxes([_mk_box(0.1)], now_ms=0.0)
    assert hub.update_boxes(None, now_ms=100.0) is None
    assert hub.boxes == []
    g = hub.merge(_mk_result(NavState.SAFE), now_ms=200.0)
    assert g.display_text == NavState.SAFE.text
    assert g.overridden is False


def test_hub_serialises_concurrent_pipelines():
    hub = GuidanceHub()
    spoken = []
    lock = threading.Lock()
    res = _mk_result(NavState.SAFE)
    hub.update_boxes([_mk_box(0.1, track_id=1)], now_ms=5000.0)

    def tracker():
        for _ in range(200):
            hub.update_boxes([_mk_box(0.1, track_id=1)], now_ms=5000.0)

    def motion():
        for _ in range(200):
            g = hub.merge(res, now_ms=5000.0)
            if g.speak:
                with lock:
                    spoken.append(g.speak)

    threads = [
        threading.Thread(target=tracker),
        threading.Thread(target=motion),
        threading.Thread(target=motion),
    ]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    # one cooldown map, one lock: track 1 is announced exactly once
    assert spoken == [TEXT_LEFT]


def test_fusion_without_announce_leaves_cooldown_alone():
    cd = AnnounceCooldown()
    fused = fuse_detections([_mk_box(0.1, track_id=9)], cd, 0.0, announce=False)
    assert fused.display_text == TEXT_LEFT
    assert fused.speak is None
    assert cd.last_announced(9) is None
    assert len(cd) == 0
