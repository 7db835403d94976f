from __future__ import annotations

import logging
import os
import threading
from dataclasses import dataclass, fields, replace
from importlib import import_module
from types import ModuleType
from typing import Any, Optional

_LOG = logging.getLogger(__name__)

PARAMS_MODULE_ENV = "NAV_PARAMS_MODULE"


@dataclass(frozen=True)
class DetectionParams:
    """
    Per-frame tuning snapshot for the proximity pipeline.

    Instances are immutable; callers build a new one (``dataclasses.replace``)
    to change a knob. The analyzer pulls a fresh snapshot at the start of
    every frame.
    """

    # Sampling stride in ROI pixels (clamped to >= 8 by the zone scorer).
    step: int = 10

    # Adaptive threshold: percentile of the flow magnitude distribution,
    # and the multiplier above which motion counts regardless of direction.
    percentile: float = 90.0
    strong_mul: float = 2.0

    # Minimum outward (radial) flow component for a sample to count.
    radial_min: float = 0.25

    # Hysteresis thresholds on the smoothed, normalised zone rates.
    enter_side: float = 0.12
    enter_center: float = 0.18
    center_margin: float = 0.05

    # Mean zone rate above which balanced side motion reads as walking
    # forward through open space.
    forward_mean_min: float = 0.06

    # Weight for samples in the bottom third of the ROI.
    bottom_weight: int = 2

    # Vertical ROI band as fractions of full frame height.
    roi_top_frac: float = 0.10
    roi_bottom_frac: float = 0.50

    # Maximum analysis width; wider ROIs are area-downscaled.
    input_width: int = 480

    # Voice output enabled.
    speak: bool = True


_FIELD_NAMES = tuple(f.name for f in fields(DetectionParams))


def _find_params_module(name: Optional[str]) -> Optional[ModuleType]:
    candidates = [name] if name else [os.environ.get(PARAMS_MODULE_ENV), "nav_config", "config"]
    for cand in filter(None, candidates):
        try:
            return import_module(cand)
        except ImportError:
            continue
    return None


_TRUE_WORDS = {"1", "true", "yes", "on"}
_FALSE_WORDS = {"0", "false", "no", "off"}


def _coerce(attr: str, default: Any, value: Any) -> Any:
    """Cast ``value`` to the type of ``default``, refusing lossy conversions."""
    if isinstance(default, bool):
        if isinstance(value, bool):
            return value
        if isinstance(value, str) and value.strip().lower() in _TRUE_WORDS | _FALSE_WORDS:
            return value.strip().lower() in _TRUE_WORDS
        if isinstance(value, int) and value in (0, 1):
            return bool(value)
        raise ValueError(f"{attr} must be a boolean, got {value!r}")
    if isinstance(default, int):
        if isinstance(value, bool) or not isinstance(value, (int, float)):
            raise ValueError(f"{attr} must be an integer, got {value!r}")
        if isinstance(value, float) and not value.is_integer():
            raise ValueError(f"{attr} must be a whole number, got {value!r}")
        return int(value)
    if isinstance(value, bool):
        raise ValueError(f"{attr} must be a number, got {value!r}")
    try:
        return type(default)(value)
    except TypeError:
        raise ValueError(f"{attr} must be a number, got {value!r}") from None


def params_from_module(mod: Any, base: Optional[DetectionParams] = None) -> DetectionParams:
    """Overlay upper-case module attributes (``STEP``, ``ROI_TOP_FRAC``...) onto ``base``."""
    base = base or DetectionParams()
    overrides = {}
    for name in _FIELD_NAMES:
        attr = name.upper()
        if hasattr(mod, attr):
            overrides[name] = _coerce(attr, getattr(base, name), getattr(mod, attr))
    return replace(base, **overrides)


def load_params(module: Optional[str] = None) -> DetectionParams:
    """
    Build the startup ``DetectionParams``.

    Looks for a plain Python config module (``$NAV_PARAMS_MODULE``, then
    ``nav_config``, then ``config``) and applies any matching upper-case
    attributes. Without a config module the canonical defaults are used.
    """
    mod = _find_params_module(module)
    if mod is None:
        if module:
            raise ImportError(f"Could not import params module {module!r}")
        _LOG.debug("No params module found; using defaults")
        return DetectionParams()
    params = params_from_module(mod)
    _LOG.info("Loaded detection params from %s", mod.__name__)
    return params


class ParamsSource:
    """Thread-safe holder of the current ``DetectionParams`` snapshot (pull model)."""

    def __init__(self, params: Optional[DetectionParams] = None) -> None:
        self._lock = threading.Lock()
        self._params = params or DetectionParams()

    def get(self) -> DetectionParams:
        with self._lock:
            return self._params

    def update(self, **changes: Any) -> DetectionParams:
        with self._lock:
            self._params = replace(self._params, **changes)
            return self._params

    def __call__(self) -> DetectionParams:
        return self.get()
