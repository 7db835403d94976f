from __future__ import annotations

from dataclasses import dataclass

import numpy as np


@dataclass
class Frame:
    img: np.ndarray  # gray (H,W) or BGR/BGRA (H,W,C), uint8
    pts_ms: float  # epoch ms (float)
    frame_id: int
    rotation_deg: int = 0  # clockwise rotation that makes the image upright
