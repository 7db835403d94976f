"""Public exports for the motion-based proximity package."""

from __future__ import annotations

from .decision import DecisionStateMachine, ZoneSmoother, decide
from .ego import compensate_ego_motion
from .engine import AnalyzerStats, ProximityAnalyzer
from .flow import FlowFieldEngine
from .model import FlowField, FrameError, NavState, Result, Severity, Skipped, ZoneScore
from .params import DetectionParams, ParamsSource, load_params
from .preprocess import compute_roi, prepare_roi, to_gray
from .zones import adaptive_thresholds, histogram_percentile, score_zones

__all__ = [
    "ProximityAnalyzer",
    "AnalyzerStats",
    "DetectionParams",
    "ParamsSource",
    "load_params",
    "FlowField",
    "FlowFieldEngine",
    "ZoneScore",
    "NavState",
    "Severity",
    "Result",
    "Skipped",
    "FrameError",
    "DecisionStateMachine",
    "ZoneSmoother",
    "decide",
    "compensate_ego_motion",
    "compute_roi",
    "prepare_roi",
    "to_gray",
    "adaptive_thresholds",
    "histogram_percentile",
    "score_zones",
]
