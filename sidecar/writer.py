# ruff: noqa: UP007  # keep Optional[...] for Py3.9; don't force X | Y
from __future__ import annotations

import json
import os
from contextlib import suppress
from pathlib import Path
from typing import Any, Optional, TextIO

from analysis.guidance.model import Guidance
from analysis.proximity.model import Result
from common.time import to_iso_utc

SCHEMA = "nav.guidance.v1"


def guidance_record(result: Result, guidance: Optional[Guidance] = None) -> dict[str, Any]:
    """One JSONL row per analyzed frame: motion decision plus the final fused output."""
    rec: dict[str, Any] = {
        "type": "frame",
        "frame": int(result.frame_id),
        "ts_ms": float(result.pts_ms),
        "ts": to_iso_utc(result.pts_ms),
        "state": result.state.value,
        "severity": result.severity.value,
        "status": result.status_text,
        "counts": [result.left_count, result.center_count, result.right_count],
        "ema": [round(result.ema_left, 4), round(result.ema_center, 4), round(result.ema_right, 4)],
        "thr": round(result.threshold, 3),
        "ego": [round(result.ego_dx, 3), round(result.ego_dy, 3)] if result.ego_compensated else None,
        "roi": [result.roi_top, result.roi_bottom],
        "speak": result.speak,
    }
    if guidance is not None and guidance.overridden:
        rec["override"] = {"status": guidance.display_text, "speak": guidance.speak}
    return rec


class SidecarWriter:
    """Append-only JSONL log of guidance decisions."""

    def __init__(self, path: str | Path):
        self.path = Path(path)
        self._fh: Optional[TextIO] = None

    def __enter__(self) -> SidecarWriter:
        self.open()
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    def open(self) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self._fh = self.path.open("w", encoding="utf-8", newline="")

    def append(self, rec: dict) -> None:
        if not self._fh:
            raise RuntimeError("SidecarWriter is not open")
        self._fh.write(json.dumps(rec, ensure_ascii=False) + "\n")

    def append_meta(self, **meta: Any) -> None:
        self.append({"type": "meta", "schema": SCHEMA, **meta})

    def write_result(self, result: Result, guidance: Optional[Guidance] = None) -> None:
        self.append(guidance_record(result, guidance))

    def flush(self) -> None:
        if self._fh:
            self._fh.flush()

    def close(self) -> None:
        if self._fh is not None:
            with suppress(OSError):
                self._fh.flush()
            # Best-effort durability; harmless if underlying file doesn't support fileno()
            with suppress(OSError, ValueError):
                os.fsync(self._fh.fileno())
            self._fh.close()
            self._fh = None
