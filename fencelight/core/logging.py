"""Lightweight logging setup for fencelight.

Users can override log level with FENCELIGHT_LOG_LEVEL env var and add a
file sink with FENCELIGHT_LOG_DIR.

Handlers always write to stderr: the worker's stdout is the wire protocol
and must only ever carry frames.
"""
from __future__ import annotations
import logging
import os
import sys
from pathlib import Path
from typing import Any, Dict


def summarize_for_log(obj: Any, *, max_len: int = 80) -> Any:
    """Return a compact summary suitable for logging.

    - str: length, line count and a truncated single-line preview
    - bytes/bytearray: length
    - dict: size and keys
    - scalars are returned directly
    """
    try:
        if obj is None or isinstance(obj, (bool, int, float)):
            return obj
        if isinstance(obj, str):
            preview = obj.replace("\n", "\\n")
            if len(preview) > max_len:
                preview = preview[: max_len - 3] + "..."
            return {"type": "str", "len": len(obj), "lines": obj.count("\n") + 1, "preview": preview}
        if isinstance(obj, (bytes, bytearray)):
            return {"type": type(obj).__name__, "len": len(obj)}
        if isinstance(obj, dict):
            out: Dict[str, Any] = {"type": "dict", "len": len(obj)}
            out["keys"] = [str(k) for k in list(obj.keys())[:8]]
            return out
        return {"type": type(obj).__name__}
    except Exception:
        return {"type": "unprintable"}


def get_logger(name: str = "fencelight") -> logging.Logger:
    logger = logging.getLogger(name)
    if not logger.handlers:
        fmt = "%(asctime)s %(levelname)s [%(name)s] %(message)s"
        stream_handler = logging.StreamHandler(sys.stderr)
        stream_handler.setFormatter(logging.Formatter(fmt))
        logger.addHandler(stream_handler)
        # Optional file handler if FENCELIGHT_LOG_DIR is set
        log_dir = os.getenv("FENCELIGHT_LOG_DIR")
        if log_dir:
            try:
                p = Path(log_dir)
                p.mkdir(parents=True, exist_ok=True)
                fh = logging.FileHandler(p / "fencelight.log", encoding="utf-8")
                fh.setFormatter(logging.Formatter(fmt))
                logger.addHandler(fh)
            except OSError as e:
                logger.warning(f"cannot open log dir {log_dir}: {e}")
        logger.setLevel(os.getenv("FENCELIGHT_LOG_LEVEL", "INFO").upper())
        logger.propagate = False
    return logger

core_logger = get_logger("fencelight.core")

__all__ = ["get_logger", "core_logger", "summarize_for_log"]
