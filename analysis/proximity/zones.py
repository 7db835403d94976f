from __future__ import annotations

from typing import Tuple

import numpy as np

from .model import FlowField, ZoneScore
from .params import DetectionParams

HIST_BINS = 256
HIST_RANGE = 32.0
MIN_THRESHOLD = 2.0
MIN_STRIDE = 8
RADIAL_EPS = 1e-6


def histogram_percentile(mag: np.ndarray, percentile: float) -> float:
    """
    Percentile of ``mag`` from a 256-bin histogram over [0, 32).

    Returns the lower edge of the first bin whose cumulative count reaches
    the target, so the result never exceeds the true value. Magnitudes at or
    above 32 land in the top bin.
    """
    values = np.asarray(mag, dtype=np.float32).ravel()
    if values.size == 0:
        return 0.0
    bins = (values * (HIST_BINS / HIST_RANGE)).astype(np.int64)
    np.clip(bins, 0, HIST_BINS - 1, out=bins)
    hist = np.bincount(bins, minlength=HIST_BINS)

    total = max(float(hist.sum()), 1.0)
    target = total * min(max(percentile / 100.0, 0.0), 1.0)
    idx = int(np.searchsorted(np.cumsum(hist), target, side="left"))
    return (min(idx, HIST_BINS) / float(HIST_BINS)) * HIST_RANGE


def adaptive_thresholds(mag: np.ndarray, percentile: float, strong_mul: float) -> Tuple[float, float]:
    thr = max(MIN_THRESHOLD, histogram_percentile(mag, percentile))
    return thr, thr * strong_mul


def score_zones(field: FlowField, params: DetectionParams) -> ZoneScore:
    """
    Accumulate weighted approach evidence per horizontal third.

    A sample on the stride grid is active when it is both above the
    adaptive threshold and moving outward from the ROI center, or when it
    is above the strong threshold in any direction. Samples in the bottom
    third of the ROI carry ``bottom_weight``.
    """
    h, w = field.shape
    stride = max(MIN_STRIDE, int(params.step))
    thr, strong_thr = adaptive_thresholds(field.mag, params.percentile, params.strong_mul)
    expected = (h // stride) * (w // stride)

    ys = np.arange(0, h, stride)
    xs = np.arange(0, w, stride)
    if ys.size == 0 or xs.size == 0:
        return ZoneScore(0, 0, 0, expected, thr, strong_thr)

    gx, gy = np.meshgrid(xs, ys)
    fx = field.fx[::stride, ::stride].astype(np.float64)
    fy = field.fy[::stride, ::stride].astype(np.float64)
    m = field.mag[::stride, ::stride].astype(np.float64)

    vx = gx - w / 2.0
    vy = gy - h / 2.0
    radial = (fx * vx + fy * vy) / (np.sqrt(vx * vx + vy * vy) + RADIAL_EPS)

    active = ((m >= thr) & (radial > params.radial_min)) | (m >= strong_thr)

    weights = np.where(gy >= (h * 2) // 3, int(params.bottom_weight), 1)
    weighted = np.where(active, weights, 0)

    left_end = int(w / 3.0)
    center_end = int(w * 2.0 / 3.0)
    left = int(weighted[:, xs < left_end].sum())
    center = int(weighted[:, (xs >= left_end) & (xs < center_end)].sum())
    right = int(weighted[:, xs >= center_end].sum())

    return ZoneScore(
        left=left,
        center=center,
        right=right,
        expected_samples=expected,
        threshold=thr,
        strong_threshold=strong_thr,
    )
