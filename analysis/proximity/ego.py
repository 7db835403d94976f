from __future__ import annotations

import math
from typing import Tuple

import cv2
import numpy as np

from .model import FlowField

# Median shifts below this (px/frame) are treated as static-camera noise.
EGO_NOISE_FLOOR = 1.2


def median_flow(field: FlowField) -> Tuple[float, float]:
    if field.fx.size == 0:
        return 0.0, 0.0
    return float(np.median(field.fx)), float(np.median(field.fy))


def compensate_ego_motion(
    field: FlowField, noise_floor: float = EGO_NOISE_FLOOR
) -> Tuple[FlowField, Tuple[float, float], bool]:
    """Remove a global camera pan from ``field``.

    Returns ``(field, (dx, dy), applied)``. When the median flow vector is
    below ``noise_floor`` the input field object is returned untouched.
    """
    dx, dy = median_flow(field)
    if math.hypot(dx, dy) < noise_floor:
        return field, (dx, dy), False

    fx = (field.fx - np.float32(dx)).astype(np.float32)
    fy = (field.fy - np.float32(dy)).astype(np.float32)
    return FlowField(fx=fx, fy=fy, mag=cv2.magnitude(fx, fy)), (dx, dy), True
