from __future__ import annotations

import argparse
import contextlib
import logging
import time
from dataclasses import asdict
from pathlib import Path
from typing import Optional

from analysis.guidance import GuidanceHub, HttpSpeechSink, LogSpeechSink, SpeechSink
from analysis.proximity import ParamsSource, ProximityAnalyzer, Skipped, load_params
from capture.camera import CameraStream
from capture.latest import LatestFrameSlot
from common.frame import Frame
from sidecar.writer import SidecarWriter

_LOG = logging.getLogger(__name__)


def build_arg_parser() -> argparse.ArgumentParser:
    ap = argparse.ArgumentParser(
        description="Run motion-based obstacle guidance on a camera or video file.",
    )
    ap.add_argument(
        "--source",
        type=str,
        default="0",
        help="Camera index (e.g. 0) or path/URL of a video file.",
    )
    ap.add_argument(
        "--rotation",
        type=int,
        choices=[0, 90, 180, 270],
        default=0,
        help="Clockwise rotation that makes the camera image upright.",
    )
    ap.add_argument(
        "--params-module",
        type=str,
        default=None,
        help="Python module with DetectionParams overrides (default: $NAV_PARAMS_MODULE).",
    )
    ap.add_argument(
        "--speech-url",
        type=str,
        default=None,
        help="POST announcements to this text-to-speech endpoint; log them otherwise.",
    )
    ap.add_argument(
        "--speech-timeout-ms",
        type=int,
        default=500,
        help="Timeout in ms for each speech POST.",
    )
    ap.add_argument(
        "--no-speak",
        action="store_true",
        help="Disable voice announcements (display text is still logged).",
    )
    ap.add_argument(
        "--decision-log",
        type=str,
        default=None,
        help="Optional JSONL file receiving one record per analyzed frame.",
    )
    ap.add_argument(
        "--max-seconds",
        type=int,
        default=0,
        help="If > 0, stop after this many seconds; otherwise run until Ctrl+C or end of file.",
    )
    ap.add_argument(
        "--verbose",
        action="store_true",
        help="Enable debug logging.",
    )
    return ap


def _make_speech(args: argparse.Namespace) -> SpeechSink:
    if args.speech_url:
        return HttpSpeechSink(args.speech_url, timeout_s=args.speech_timeout_ms / 1000.0)
    return LogSpeechSink()


def main(argv: Optional[list[str]] = None) -> None:
    ap = build_arg_parser()
    args = ap.parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    )

    # ------------------------------------------------------------------ params + pipeline

    params = ParamsSource(load_params(args.params_module))
    if args.no_speak:
        params.update(speak=False)
    _LOG.info("Detection params: %s", params.get())

    analyzer = ProximityAnalyzer(params)
    hub = GuidanceHub()
    speech = _make_speech(args)

    reader = LatestFrameSlot(CameraStream(args.source), start_timeout_s=6.0)

    # ------------------------------------------------------------------ main loop

    reader.start()
    t0 = time.time()
    last_text: Optional[str] = None

    with contextlib.ExitStack() as stack:
        log: Optional[SidecarWriter] = None
        if args.decision_log:
            log = stack.enter_context(SidecarWriter(Path(args.decision_log)))
            log.append_meta(source=args.source, params=asdict(params.get()))
            _LOG.info("Writing guidance records to %s", args.decision_log)

        try:
            while True:
                if args.max_seconds > 0 and (time.time() - t0) >= args.max_seconds:
                    _LOG.info("Reached max-seconds=%d, exiting loop.", args.max_seconds)
                    break

                tup = reader.read()
                if tup is None:
                    if reader.finished:
                        break
                    time.sleep(0.005)
                    continue

                img, pts_ms, frame_id = tup
                frame = Frame(img=img, pts_ms=pts_ms, frame_id=frame_id, rotation_deg=args.rotation)

                res = analyzer.process_frame(frame)
                if isinstance(res, Skipped):
                    continue

                guidance = hub.merge(res, now_ms=pts_ms, speak_enabled=params.get().speak)
                if guidance.display_text != last_text:
                    _LOG.info("[%s] %s", guidance.severity.value, guidance.display_text)
                    last_text = guidance.display_text
                if guidance.speak:
                    speech.say(guidance.speak)
                if log is not None:
                    log.write_result(res, guidance)

        except KeyboardInterrupt:
            _LOG.info("KeyboardInterrupt received, shutting down.")
        finally:
            with contextlib.suppress(Exception):
                reader.close()

    st = analyzer.stats()
    slot = reader.stats()
    _LOG.info(
        "Done: frames=%d results=%d warmups=%d skipped=%d fps=%.1f source_drops=%d",
        st.frames_in,
        st.results,
        st.warmups,
        st.skipped,
        st.fps,
        slot.drops,
    )


if __name__ == "__main__":  # pragma: no cover
    main()
