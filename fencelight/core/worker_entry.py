"""Highlight Worker entrypoint (persistent subprocess).

Reads one frame per line from stdin, writes exactly one frame per request to
stdout and flushes after each, until stdin reaches EOF or a SHUTDOWN command
arrives. The engine is loaded once before the first read.

    python -m fencelight.core.worker_entry [--framing json|legacy] [--config PATH]

Engine errors never end the loop: the request is answered with an error
fragment (``ok: false`` in json framing) and the worker keeps serving.
Logging goes to stderr; stdout only ever carries frames.
"""
from __future__ import annotations

import argparse
import sys
import traceback
from pathlib import Path
from typing import Any, Dict, Optional, TextIO, Tuple

from . import worker_protocol as wp
from .config_loader import load_settings
from .engine import HighlightEngine, error_fragment
from .errors import FencelightError, FramingError
from .logging import get_logger, summarize_for_log
from .protocol import HighlightResponse, JsonLineCodec, LegacyLineCodec, get_codec

logger = get_logger("fencelight.worker")


class WorkerLoop:
    def __init__(self, engine: HighlightEngine, codec):
        self.engine = engine
        self.codec = codec
        self.served = 0
        self.errors = 0
        self.handlers = {
            wp.HIGHLIGHT: self.handle_highlight,
            wp.PING: self.handle_ping,
            wp.STATS: self.handle_stats,
            wp.SHUTDOWN: self.handle_shutdown,
        }

    def _highlight(self, language: str, code: str) -> HighlightResponse:
        try:
            html = self.engine.highlight(language, code)
            self.served += 1
            return HighlightResponse(html=html)
        except Exception as e:  # noqa: BLE001
            self.errors += 1
            logger.warning(f"highlight failed language={language} code={summarize_for_log(code)}: {e}")
            logger.debug(traceback.format_exc())
            return HighlightResponse(html=error_fragment(language, code, str(e)), ok=False, error=str(e))

    def handle_legacy(self, line: str) -> str:
        try:
            req = self.codec.decode_request(line)
        except FramingError as e:
            self.errors += 1
            logger.error(f"bad frame: {e}")
            return self.codec.encode_response(HighlightResponse(html=error_fragment("text", line.rstrip("\n"), str(e))))
        # legacy frames have no status field; error fragments go out as plain html
        return self.codec.encode_response(self._highlight(req.language, req.code))

    # json command handlers return (reply frame, keep_running)
    def handle_highlight(self, msg: Dict[str, Any]) -> Tuple[str, bool]:
        req = self.codec.request_from_message(msg)
        return self.codec.encode_response(self._highlight(req.language, req.code)), True

    def handle_ping(self, msg: Dict[str, Any]) -> Tuple[str, bool]:
        return self.codec.encode_reply(wp.PING, data={"pong": True}), True

    def handle_stats(self, msg: Dict[str, Any]) -> Tuple[str, bool]:
        return self.codec.encode_reply(wp.STATS, data=self.stats()), True

    def handle_shutdown(self, msg: Dict[str, Any]) -> Tuple[str, bool]:
        return self.codec.encode_reply(wp.SHUTDOWN, data={"bye": True}), False

    def handle_json(self, line: str) -> Tuple[str, bool]:
        codec: JsonLineCodec = self.codec
        cmd: Optional[str] = None
        try:
            msg = codec.decode_command(line)
            cmd = msg["cmd"]
            return self.handlers[cmd](msg)
        except FramingError as e:
            self.errors += 1
            logger.error(f"bad frame: {e}")
            return codec.encode_reply(cmd, error=str(e)), True

    def stats(self) -> Dict[str, Any]:
        return {
            "served": self.served,
            "errors": self.errors,
            "load_seconds": self.engine.stats.get("load_seconds"),
        }

    def serve(self, stdin: TextIO, stdout: TextIO) -> int:
        self.engine.load()
        logger.info(f"worker ready framing={self.codec.name}")
        for line in stdin:
            if not line.strip():
                continue
            if isinstance(self.codec, LegacyLineCodec):
                out, keep_running = self.handle_legacy(line), True
            else:
                out, keep_running = self.handle_json(line)
            stdout.write(out)
            stdout.flush()
            if not keep_running:
                break
        logger.info(f"worker exiting served={self.served} errors={self.errors}")
        return 0


def serve(stdin: TextIO, stdout: TextIO, engine: HighlightEngine, codec) -> int:
    return WorkerLoop(engine, codec).serve(stdin, stdout)


def build_parser():
    p = argparse.ArgumentParser(prog="fencelight-worker", description="Persistent highlight worker")
    p.add_argument("--framing", choices=["json", "legacy"], help="Wire framing (default: from config)")
    p.add_argument("--config", help="Path to fencelight YAML config")
    return p


def main(argv=None):
    args = build_parser().parse_args(argv)
    try:
        settings = load_settings(Path(args.config) if args.config else None)
        codec = get_codec(args.framing or settings.worker.framing)
        engine = HighlightEngine(settings.engine)
    except FencelightError as e:
        logger.error(f"worker startup failed: {e}")
        return 2
    # frames are split on "\n" only; a bare "\r" inside code must not end a line
    sys.stdin.reconfigure(encoding="utf-8", newline="\n")
    sys.stdout.reconfigure(encoding="utf-8", newline="\n")
    return serve(sys.stdin, sys.stdout, engine, codec)


if __name__ == "__main__":  # pragma: no cover
    sys.exit(main())
