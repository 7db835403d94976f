"""Public exports for tracker fusion and announcement throttling."""

from __future__ import annotations

from .cooldown import AnnounceCooldown
from .fusion import fuse_detections, qualifying_boxes
from .hub import GuidanceHub
from .model import DetBox, FusedGuidance, Guidance
from .speech import HttpSpeechSink, LogSpeechSink, SpeechSink

__all__ = [
    "AnnounceCooldown",
    "DetBox",
    "FusedGuidance",
    "Guidance",
    "GuidanceHub",
    "fuse_detections",
    "qualifying_boxes",
    "SpeechSink",
    "LogSpeechSink",
    "HttpSpeechSink",
]
