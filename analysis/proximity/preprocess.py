"""Frame preparation: grayscale, upright rotation, ROI crop and area downscale."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Tuple

import cv2
import numpy as np

from .model import FrameError
from .params import DetectionParams

_ROTATIONS = {
    90: cv2.ROTATE_90_CLOCKWISE,
    180: cv2.ROTATE_180,
    270: cv2.ROTATE_90_COUNTERCLOCKWISE,
}


@dataclass
class PreparedRoi:
    gray: np.ndarray  # contiguous uint8 (h, w), possibly downscaled
    roi_top: int  # full-frame rows
    roi_bottom: int
    scale: float  # <= 1.0


def _rotation_degrees(rotation_deg) -> int:
    try:
        deg = int(rotation_deg)
    except (TypeError, ValueError):
        raise FrameError(f"invalid rotation {rotation_deg!r}") from None
    if deg != rotation_deg:
        raise FrameError(f"rotation must be whole degrees, got {rotation_deg!r}")
    return deg


def to_gray(img: np.ndarray, rotation_deg: int = 0) -> np.ndarray:
    """Return an upright single-channel uint8 image.

    Unknown rotation values leave the image as delivered.
    """
    if img is None or not hasattr(img, "ndim"):
        raise FrameError("frame has no image data")
    if img.size == 0:
        raise FrameError("frame is empty")
    if img.dtype != np.uint8:
        raise FrameError(f"unsupported frame dtype {img.dtype}")

    if img.ndim == 2:
        gray = img
    elif img.ndim == 3 and img.shape[2] == 1:
        gray = img[:, :, 0]
    elif img.ndim == 3 and img.shape[2] == 3:
        gray = cv2.cvtColor(img, cv2.COLOR_BGR2GRAY)
    elif img.ndim == 3 and img.shape[2] == 4:
        gray = cv2.cvtColor(img, cv2.COLOR_BGRA2GRAY)
    else:
        raise FrameError(f"unsupported frame shape {img.shape}")

    code = _ROTATIONS.get(_rotation_degrees(rotation_deg) % 360)
    if code is not None:
        gray = cv2.rotate(gray, code)
    return gray


def compute_roi(height: int, top_frac: float, bottom_frac: float) -> Tuple[int, int]:
    """Map ROI fractions to rows, keeping ``0 <= top < bottom <= height`` and a 2-row span."""
    if height < 2:
        raise FrameError(f"frame height {height} too small for an ROI")
    top = min(max(int(height * top_frac), 0), height - 2)
    bottom = min(max(int(height * bottom_frac), top + 2), height)
    return top, bottom


def prepare_roi(gray: np.ndarray, params: DetectionParams) -> PreparedRoi:
    h, w = gray.shape[:2]
    top, bottom = compute_roi(h, params.roi_top_frac, params.roi_bottom_frac)
    crop = gray[top:bottom, :]
    if crop.shape[1] == 0:
        raise FrameError("ROI has zero width")

    width = crop.shape[1]
    scale = params.input_width / float(width) if width > params.input_width else 1.0
    if scale < 1.0:
        out = cv2.resize(crop, None, fx=scale, fy=scale, interpolation=cv2.INTER_AREA)
        if out.shape[0] < 2 or out.shape[1] < 1:
            raise FrameError(f"ROI collapsed to {out.shape} after resize")
    else:
        out = np.ascontiguousarray(crop).copy()

    return PreparedRoi(gray=out, roi_top=top, roi_bottom=bottom, scale=scale)
