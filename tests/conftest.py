# tests/conftest.py
import os
import sys
from pathlib import Path

import numpy as np
import pytest

# pytest-dotenv has already loaded .env at this point
pp = os.getenv("PYTHONPATH")
if pp:
    for p in pp.split(os.pathsep):
        if p:
            sys.path.insert(0, p)

# Flat layout: make the top-level packages importable without installing.
sys.path.insert(0, str(Path(__file__).resolve().parents[1]))


@pytest.fixture
def textured():
    """Smooth random texture (uint8) that dense flow can lock onto."""
    import cv2

    def _make(height: int = 120, width: int = 160, seed: int = 0) -> np.ndarray:
        rng = np.random.default_rng(seed)
        noise = rng.integers(0, 256, size=(height, width)).astype(np.float32)
        blurred = cv2.GaussianBlur(noise, (0, 0), 3.0)
        lo, hi = float(blurred.min()), float(blurred.max())
        return ((blurred - lo) * (255.0 / max(hi - lo, 1e-6))).astype(np.uint8)

    return _make
