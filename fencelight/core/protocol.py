"""Line protocol codecs for the worker channel.

The channel between the caller and the Highlight Worker is line-delimited:
frames are separated by a single "\\n" and a frame never contains a raw
newline. Two framings are supported:

legacy
    ``<language>;<code>`` with real newlines written as the two characters
    backslash + n. Literal backslashes are not escaped, so code that already
    contains the two characters backslash + n is corrupted on decode. Kept
    for workers that only speak this format (e.g. a node shiki script).

json
    One JSON object per line (default). ``json.dumps`` escapes newlines and
    backslashes, so every string round-trips exactly.
"""
from __future__ import annotations

import json
from dataclasses import dataclass
from typing import Any, Dict, Optional

from . import worker_protocol as wp
from .errors import ConfigError, FramingError

SEP = ";"
NEWLINE = "\n"
ESCAPED_NEWLINE = "\\n"


@dataclass
class HighlightRequest:
    language: str
    code: str


@dataclass
class HighlightResponse:
    html: str
    ok: bool = True
    error: Optional[str] = None


def validate_language(language: str) -> str:
    if not language or any(c.isspace() for c in language) or SEP in language:
        raise ValueError(f"invalid language token: {language!r}")
    return language


def escape_newlines(text: str) -> str:
    return text.replace(NEWLINE, ESCAPED_NEWLINE)


def unescape_newlines(text: str) -> str:
    return text.replace(ESCAPED_NEWLINE, NEWLINE)


def _strip_terminator(line: str) -> str:
    # only "\n" terminates a frame; a trailing "\r" belongs to the payload
    if line.endswith(NEWLINE):
        return line[:-1]
    return line


class LegacyLineCodec:
    name = "legacy"
    supports_commands = False

    def encode_request(self, req: HighlightRequest) -> str:
        validate_language(req.language)
        return req.language + SEP + escape_newlines(req.code) + NEWLINE

    def decode_request(self, line: str) -> HighlightRequest:
        line = _strip_terminator(line)
        sep = line.find(SEP)
        if sep <= 0:
            raise FramingError(f"request frame has no language separator: {line[:40]!r}")
        return HighlightRequest(language=line[:sep], code=unescape_newlines(line[sep + 1:]))

    def encode_response(self, resp: HighlightResponse) -> str:
        return escape_newlines(resp.html) + NEWLINE

    def decode_response(self, line: str) -> HighlightResponse:
        # the frame carries no status; error fragments arrive as plain html
        return HighlightResponse(html=unescape_newlines(_strip_terminator(line)))


class JsonLineCodec:
    name = "json"
    supports_commands = True

    def _dump(self, payload: Dict[str, Any]) -> str:
        return json.dumps(payload, ensure_ascii=False) + NEWLINE

    def _load(self, line: str) -> Dict[str, Any]:
        try:
            payload = json.loads(line)
        except json.JSONDecodeError as e:
            raise FramingError(f"invalid JSON frame: {e}") from e
        if not isinstance(payload, dict):
            raise FramingError("frame must be a JSON object")
        return payload

    def encode_command(self, cmd: str, **fields: Any) -> str:
        if cmd not in wp.COMMANDS:
            raise ValueError(f"Unknown cmd {cmd}")
        return self._dump({"cmd": cmd, **fields})

    def decode_command(self, line: str) -> Dict[str, Any]:
        msg = self._load(line)
        if msg.get("cmd") not in wp.COMMANDS:
            raise FramingError(f"Unknown cmd {msg.get('cmd')}")
        return msg

    def encode_request(self, req: HighlightRequest) -> str:
        validate_language(req.language)
        return self.encode_command(wp.HIGHLIGHT, request={"language": req.language, "code": req.code})

    def decode_request(self, line: str) -> HighlightRequest:
        msg = self.decode_command(line)
        return self.request_from_message(msg)

    def request_from_message(self, msg: Dict[str, Any]) -> HighlightRequest:
        request = msg.get("request")
        if not isinstance(request, dict):
            raise FramingError("HIGHLIGHT frame without request object")
        language, code = request.get("language"), request.get("code")
        if not isinstance(language, str) or not language or not isinstance(code, str):
            raise FramingError("HIGHLIGHT request needs string language and code")
        return HighlightRequest(language=language, code=code)

    def encode_reply(self, cmd: Optional[str], data: Any = None, error: Optional[str] = None) -> str:
        payload: Dict[str, Any] = {"ok": error is None, "cmd": cmd}
        if data is not None:
            payload["data"] = data
        if error is not None:
            payload["error"] = error
        return self._dump(payload)

    def decode_reply(self, line: str) -> Dict[str, Any]:
        reply = self._load(line)
        if "ok" not in reply:
            raise FramingError("reply frame without 'ok' field")
        return reply

    def encode_response(self, resp: HighlightResponse) -> str:
        return self.encode_reply(wp.HIGHLIGHT, data={"html": resp.html}, error=None if resp.ok else (resp.error or "error"))

    def decode_response(self, line: str) -> HighlightResponse:
        reply = self.decode_reply(line)
        data = reply.get("data") or {}
        html = data.get("html") if isinstance(data, dict) else None
        if reply.get("ok") and not isinstance(html, str):
            raise FramingError("HIGHLIGHT reply without html")
        return HighlightResponse(html=html or "", ok=bool(reply.get("ok")), error=reply.get("error"))


CODECS = {"legacy": LegacyLineCodec, "json": JsonLineCodec}


def get_codec(name: str):
    try:
        return CODECS[name]()
    except KeyError:
        raise ConfigError(f"Unknown framing: {name}") from None


__all__ = [
    "HighlightRequest",
    "HighlightResponse",
    "LegacyLineCodec",
    "JsonLineCodec",
    "get_codec",
    "validate_language",
    "escape_newlines",
    "unescape_newlines",
]
