from __future__ import annotations

import numpy as np
import pytest

from analysis.proximity import (
    DetectionParams,
    FlowField,
    adaptive_thresholds,
    compensate_ego_motion,
    histogram_percentile,
    score_zones,
)

H, W = 200, 300


def _mk_field(fx: np.ndarray, fy: np.ndarray, mag: np.ndarray = None) -> FlowField:
    fx = fx.astype(np.float32)
    fy = fy.astype(np.float32)
    if mag is None:
        mag = np.hypot(fx, fy)
    return FlowField(fx=fx, fy=fy, mag=mag.astype(np.float32))


def _left_outward_field(magnitude: float = 10.0, outward: bool = True) -> FlowField:
    """Left third moves radially (away from the ROI center) at ``magnitude`` px/frame."""
    ys, xs = np.mgrid[0:H, 0:W].astype(np.float64)
    vx, vy = xs - W / 2.0, ys - H / 2.0
    norm = np.sqrt(vx * vx + vy * vy) + 1e-9
    sign = 1.0 if outward else -1.0
    left = xs < W / 3.0
    fx = np.where(left, sign * magnitude * vx / norm, 0.0)
    fy = np.where(left, sign * magnitude * vy / norm, 0.0)
    mag = np.where(left, magnitude, 0.0)
    return _mk_field(fx, fy, mag)


def _params(**kw) -> DetectionParams:
    base = dict(step=20, percentile=90.0, strong_mul=2.0, radial_min=0.25, bottom_weight=2)
    base.update(kw)
    return DetectionParams(**base)


# ---------------------------------------------------------------- ego motion


def test_ego_compensation_skipped_below_noise_floor():
    rng = np.random.default_rng(3)
    field = _mk_field(rng.normal(0.3, 0.2, (H, W)), rng.normal(0.1, 0.2, (H, W)))
    fx_before = field.fx.copy()

    out, (dx, dy), applied = compensate_ego_motion(field)

    assert applied is False
    assert out is field
    assert np.array_equal(out.fx, fx_before)
    assert np.hypot(dx, dy) < 1.2


def test_ego_compensation_removes_uniform_pan():
    fx = np.full((H, W), 3.0)
    fy = np.full((H, W), -1.0)
    fx[:20, :20] = 10.0  # a small object moving faster than the pan
    field = _mk_field(fx, fy)

    out, (dx, dy), applied = compensate_ego_motion(field)

    assert applied is True
    assert (dx, dy) == pytest.approx((3.0, -1.0))
    assert float(np.abs(out.fx[50:, 50:]).max()) < 1e-5
    assert float(np.abs(out.fy).max()) < 1e-5
    assert out.fx[0, 0] == pytest.approx(7.0)
    assert out.mag[0, 0] == pytest.approx(7.0)
    # input left untouched
    assert field.fx[100, 100] == pytest.approx(3.0)


# ---------------------------------------------------------------- thresholds


def test_histogram_percentile_bucket_edges():
    assert histogram_percentile(np.full(100, 5.0), 90) == pytest.approx(5.0)
    mixed = np.concatenate([np.zeros(90), np.full(10, 10.0)])
    assert histogram_percentile(mixed, 90) == 0.0
    assert histogram_percentile(mixed, 95) == pytest.approx(10.0)
    # out-of-range magnitudes land in the top bucket
    assert histogram_percentile(np.full(10, 100.0), 50) == pytest.approx(31.875)
    assert histogram_percentile(np.array([]), 90) == 0.0


def test_adaptive_threshold_has_a_floor():
    thr, strong = adaptive_thresholds(np.zeros((10, 10)), 90, 2.5)
    assert thr == 2.0
    assert strong == 5.0


# ---------------------------------------------------------------- zone voting


def test_left_outward_motion_scores_left_zone():
    score = score_zones(_left_outward_field(), _params())

    assert score.threshold == pytest.approx(10.0)
    assert score.expected_samples == (H // 20) * (W // 20)
    # 5 sampled columns in the left third; 7 normal rows + 3 bottom rows at weight 2
    assert score.left == 5 * 7 + 5 * 3 * 2
    assert score.center == 0
    assert score.right == 0


def test_bottom_weight_applies_to_bottom_third_only():
    score = score_zones(_left_outward_field(), _params(bottom_weight=1))
    assert score.left == 50


def test_inward_motion_needs_strong_threshold():
    inward = _left_outward_field(outward=False)
    assert score_zones(inward, _params()).left == 0
    # with strong == thr every above-threshold sample counts regardless of direction
    assert score_zones(inward, _params(strong_mul=1.0)).left == 65


def test_stride_is_clamped_to_minimum():
    coarse = score_zones(_left_outward_field(), _params(step=1))
    assert coarse.expected_samples == (H // 8) * (W // 8)


def test_raising_strong_mul_never_adds_samples():
    rng = np.random.default_rng(7)
    field = _mk_field(rng.normal(0, 4, (H, W)), rng.normal(0, 4, (H, W)))
    prev = None
    for mul in (1.0, 1.5, 2.0, 3.0, 6.0):
        s = score_zones(field, _params(strong_mul=mul))
        cur = (s.left, s.center, s.right)
        if prev is not None:
            assert all(c <= p for c, p in zip(cur, prev)), (mul, cur, prev)
        prev = cur


def test_more_active_samples_never_lower_counts():
    rng = np.random.default_rng(11)
    field = _mk_field(rng.normal(0, 4, (H, W)), rng.normal(0, 4, (H, W)))
    prev = None
    # lowering radial_min only grows the active set
    for radial_min in (5.0, 2.0, 0.25, -2.0, -100.0):
        s = score_zones(field, _params(radial_min=radial_min))
        cur = (s.left, s.center, s.right)
        if prev is not None:
            assert all(c >= p for c, p in zip(cur, prev)), (radial_min, cur, prev)
        prev = cur
