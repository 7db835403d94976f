from __future__ import annotations

import logging
from typing import Optional, Protocol

import requests

_LOG = logging.getLogger(__name__)


class SpeechSink(Protocol):
    def say(self, text: str) -> bool: ...


class LogSpeechSink:
    """Writes announcements to the log; the default when no speech service is configured."""

    def __init__(self, logger: Optional[logging.Logger] = None) -> None:
        self._log = logger or _LOG

    def say(self, text: str) -> bool:
        self._log.info("SPEAK: %s", text)
        return True


class HttpSpeechSink:
    """POST announcements to a local text-to-speech service.

    Failures are logged and reported as ``False``; guidance keeps running
    without voice rather than stalling the frame loop.
    """

    def __init__(
        self,
        url: str,
        timeout_s: float = 0.5,
        language: Optional[str] = None,
        session: Optional[requests.Session] = None,
        logger: Optional[logging.Logger] = None,
    ) -> None:
        self._url = url
        self._timeout_s = float(timeout_s) or 0.5
        self._language = language
        self._session = session or requests.Session()
        self._log = logger or _LOG

    def say(self, text: str) -> bool:
        payload = {"text": text, "flush": True}
        if self._language:
            payload["language"] = self._language
        try:
            resp = self._session.post(self._url, json=payload, timeout=self._timeout_s)
        except requests.RequestException as exc:
            self._log.warning("Speech POST to %s failed: %s", self._url, exc)
            return False

        if 200 <= resp.status_code < 300:
            self._log.debug("Speech accepted: HTTP %s", resp.status_code)
            return True

        self._log.warning("Speech service returned HTTP %s: %r", resp.status_code, resp.text)
        return False
