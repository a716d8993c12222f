"""Command vocabulary of the JSON line worker protocol.

Caller -> worker (one JSON object per line):
    {"cmd": "HIGHLIGHT", "request": {"language": "ts", "code": "..."}}
    {"cmd": "PING"} | {"cmd": "STATS"} | {"cmd": "SHUTDOWN"}

Worker -> caller:
    {"ok": bool, "cmd": <cmd>, "data": {...}, "error"?: str}

The legacy framing has no commands: every line is a highlight request.
"""
from __future__ import annotations

HIGHLIGHT = "HIGHLIGHT"
PING = "PING"
STATS = "STATS"
SHUTDOWN = "SHUTDOWN"

COMMANDS = (HIGHLIGHT, PING, STATS, SHUTDOWN)

__all__ = [
    "HIGHLIGHT",
    "PING",
    "STATS",
    "SHUTDOWN",
    "COMMANDS",
]
