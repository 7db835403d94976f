# capture/__init__.py
"""Capture package: cv2 camera stream and latest-frame-only adapter."""

from .camera import CameraStream, FrameStream
from .latest import LatestFrameSlot, SlotStats

__all__ = [
    "CameraStream",
    "FrameStream",
    "LatestFrameSlot",
    "SlotStats",
]

__version__ = "0.1.0"
