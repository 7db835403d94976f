from __future__ import annotations

import json
import logging
from collections.abc import Iterator
from pathlib import Path
from typing import Any, Optional

_LOG = logging.getLogger(__name__)


class SidecarReader:
    """Iterate JSONL guidance records, skipping blank and truncated lines."""

    def __init__(self, path: str | Path, record_type: Optional[str] = None):
        self.path = Path(path)
        self.record_type = record_type

    def __iter__(self) -> Iterator[dict[str, Any]]:
        with self.path.open("r", encoding="utf-8") as fh:
            for lineno, line in enumerate(fh, 1):
                line = line.strip()
                if not line:
                    continue
                try:
                    rec = json.loads(line)
                except json.JSONDecodeError:
                    _LOG.debug("%s:%d: skipping malformed line", self.path, lineno)
                    continue
                if self.record_type and rec.get("type") != self.record_type:
                    continue
                yield rec
