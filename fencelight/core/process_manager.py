"""Worker Handle: owns the single Highlight Worker subprocess of a pipeline run.

The handle spawns the worker lazily on first use and serializes every
request/response exchange under one lock, so the Nth reply line always
belongs to the Nth request line. A reader thread moves worker stdout lines
into a queue; the blocking read in ``highlight`` is a ``queue.get`` with a
deadline.

A dead channel (EOF, broken pipe, timeout or an undecodable frame) fails only
the in-flight request: the process is killed and the next call respawns a
fresh worker, up to ``max_restarts`` times.
"""
from __future__ import annotations

import io
import queue
import subprocess
import sys
import threading
import time
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional

from . import worker_protocol as wp
from .config_loader import WorkerSettings
from .errors import (
    FramingError,
    HighlightError,
    WorkerCrashedError,
    WorkerInitError,
    WorkerTimeoutError,
)
from .logging import core_logger, summarize_for_log
from .protocol import HighlightRequest, get_codec, validate_language

_EOF = None


@dataclass
class WorkerInfo:
    process: subprocess.Popen
    stdin: io.TextIOWrapper
    lines: "queue.Queue[Optional[str]]"
    started: float
    last_used: float
    status: str = "starting"
    reader: Optional[threading.Thread] = field(default=None, repr=False)

    def alive(self) -> bool:
        return self.status != "dead" and self.process.poll() is None


def _pump(stdout, lines: "queue.Queue[Optional[str]]"):
    try:
        for line in stdout:
            lines.put(line)
    except (OSError, ValueError) as e:
        core_logger.debug(f"worker stdout reader stopped: {e}")
    finally:
        lines.put(_EOF)


class WorkerHandle:
    def __init__(
        self,
        settings: Optional[WorkerSettings] = None,
        config_path: Optional[Path] = None,
        cwd: Optional[Path] = None,
        fallback_on_error: bool = True,
    ):
        self.settings = settings or WorkerSettings()
        self.config_path = config_path
        self.cwd = cwd
        self.fallback_on_error = fallback_on_error
        self.codec = get_codec(self.settings.framing)
        self._lock = threading.RLock()
        self._worker: Optional[WorkerInfo] = None
        self._closed = False
        self._restarts = 0
        self._metrics: Dict[str, Any] = {
            "highlight_count": 0,
            "error_responses": 0,
            "total_latency_ms": 0.0,
            "last_latency_ms": 0.0,
            "avg_latency_ms": 0.0,
            "spawn_count": 0,
        }

    # ------------------------------------------------------------------
    # lifecycle
    def build_command(self) -> List[str]:
        if self.settings.command:
            return list(self.settings.command)
        cmd = [self.settings.python or sys.executable, "-m", "fencelight.core.worker_entry",
               "--framing", self.settings.framing]
        if self.config_path:
            cmd += ["--config", str(self.config_path)]
        return cmd

    def _spawn(self) -> WorkerInfo:
        cmd = self.build_command()
        core_logger.debug(f"spawn worker cmd={' '.join(cmd)}")
        try:
            proc = subprocess.Popen(
                cmd,
                cwd=str(self.cwd) if self.cwd else None,
                stdin=subprocess.PIPE,
                stdout=subprocess.PIPE,
            )
        except OSError as e:
            raise WorkerInitError(f"Failed spawning highlight worker {cmd[0]}: {e}") from e
        # frames end at "\n" only; no newline translation in either direction
        stdin = io.TextIOWrapper(proc.stdin, encoding="utf-8", newline="\n", write_through=True)
        stdout = io.TextIOWrapper(proc.stdout, encoding="utf-8", newline="\n")
        lines: "queue.Queue[Optional[str]]" = queue.Queue()
        reader = threading.Thread(target=_pump, args=(stdout, lines), name="fencelight-reader", daemon=True)
        reader.start()
        now = time.time()
        self._metrics["spawn_count"] += 1
        return WorkerInfo(process=proc, stdin=stdin, lines=lines, started=now, last_used=now,
                          status="running", reader=reader)

    def ensure_started(self) -> WorkerInfo:
        """Spawn the worker if none is alive. Idempotent and thread-safe."""
        with self._lock:
            if self._closed:
                raise WorkerInitError("worker handle has been shut down")
            if self._restarts > self.settings.max_restarts:
                raise WorkerInitError(
                    f"restart budget ({self.settings.max_restarts}) exhausted; highlight worker not respawned"
                )
            wi = self._worker
            if wi is not None and wi.alive():
                return wi
            if wi is not None:
                self._discard(wi, "worker exited")
                self._restarts += 1
                if self._restarts > self.settings.max_restarts:
                    self._worker = None
                    raise WorkerInitError(
                        f"highlight worker died {self._restarts} times; restart budget "
                        f"({self.settings.max_restarts}) exhausted"
                    )
                core_logger.warning(f"restarting highlight worker attempt={self._restarts}")
            self._worker = self._spawn()
            return self._worker

    @property
    def started(self) -> bool:
        return self._worker is not None

    def _discard(self, wi: WorkerInfo, reason: str):
        if wi.status != "dead":
            core_logger.error(f"highlight worker channel closed: {reason}")
        wi.status = "dead"
        if wi.process.poll() is None:
            wi.process.kill()
            try:
                wi.process.wait(timeout=5)
            except subprocess.TimeoutExpired:
                core_logger.warning(f"worker pid={wi.process.pid} did not exit after kill")
        try:
            wi.stdin.close()
        except (OSError, ValueError):
            pass

    # ------------------------------------------------------------------
    # exchange
    def _send(self, wi: WorkerInfo, frame: str):
        try:
            wi.stdin.write(frame)
            wi.stdin.flush()
        except (OSError, ValueError) as e:
            self._discard(wi, f"write failed: {e}")
            raise WorkerCrashedError(f"highlight worker stdin write failed: {e}") from e
        wi.last_used = time.time()

    def _recv(self, wi: WorkerInfo, timeout: Optional[float] = None) -> str:
        timeout = self.settings.timeout_s if timeout is None else timeout
        try:
            line = wi.lines.get(timeout=timeout)
        except queue.Empty:
            self._discard(wi, f"no reply within {timeout}s")
            raise WorkerTimeoutError(f"Timeout waiting for worker response ({timeout}s)") from None
        if line is _EOF:
            code = wi.process.poll()
            self._discard(wi, f"EOF (exit code {code})")
            raise WorkerCrashedError(f"highlight worker exited unexpectedly (exit code {code})")
        return line

    def highlight(self, language: str, code: str) -> str:
        """Return highlighted HTML for ``code``. Blocks until the reply arrives."""
        validate_language(language)
        with self._lock:
            wi = self.ensure_started()
            start = time.time()
            self._send(wi, self.codec.encode_request(HighlightRequest(language=language, code=code)))
            line = self._recv(wi)
            try:
                resp = self.codec.decode_response(line)
            except FramingError as e:
                self._discard(wi, f"undecodable reply: {e}")
                raise
            latency = (time.time() - start) * 1000.0
            m = self._metrics
            m["highlight_count"] += 1
            m["total_latency_ms"] += latency
            m["last_latency_ms"] = latency
            m["avg_latency_ms"] = m["total_latency_ms"] / m["highlight_count"]
            core_logger.debug(
                f"highlight language={language} code={summarize_for_log(code)} latency_ms={latency:.2f}"
            )
            if not resp.ok:
                m["error_responses"] += 1
                if not self.fallback_on_error:
                    raise HighlightError(resp.error or "highlight failed")
                core_logger.warning(f"highlight error language={language}: {resp.error}")
        return resp.html

    def request(self, cmd: str, timeout: Optional[float] = None) -> Dict[str, Any]:
        """Send a control command (json framing only) and return the reply dict."""
        if not self.codec.supports_commands:
            raise ValueError(f"{cmd} needs json framing (current: {self.codec.name})")
        with self._lock:
            wi = self.ensure_started()
            self._send(wi, self.codec.encode_command(cmd))
            line = self._recv(wi, timeout)
            try:
                return self.codec.decode_reply(line)
            except FramingError as e:
                self._discard(wi, f"undecodable reply: {e}")
                raise

    def ping(self) -> bool:
        return bool(self.request(wp.PING).get("ok"))

    def stats(self) -> Dict[str, Any]:
        return self.request(wp.STATS).get("data") or {}

    def metrics(self) -> Dict[str, Any]:
        with self._lock:
            out = dict(self._metrics)
            out["restarts"] = self._restarts
            out["running"] = self._worker is not None and self._worker.alive()
            return out

    # ------------------------------------------------------------------
    # teardown
    def shutdown(self, timeout: float = 5.0) -> Optional[int]:
        """Stop the worker (SHUTDOWN or stdin close) and wait for it. Idempotent."""
        with self._lock:
            self._closed = True
            wi, self._worker = self._worker, None
            if wi is None:
                return None
            if wi.alive():
                if self.codec.supports_commands:
                    try:
                        self._send(wi, self.codec.encode_command(wp.SHUTDOWN))
                        self._recv(wi, timeout)
                    except WorkerCrashedError as e:
                        core_logger.debug(f"shutdown handshake failed: {e}")
                try:
                    wi.stdin.close()
                except (OSError, ValueError):
                    pass
                try:
                    wi.process.wait(timeout=timeout)
                except subprocess.TimeoutExpired:
                    core_logger.warning(f"worker pid={wi.process.pid} ignored shutdown; terminating")
                    wi.process.terminate()
                    try:
                        wi.process.wait(timeout=timeout)
                    except subprocess.TimeoutExpired:
                        wi.process.kill()
                        wi.process.wait()
            wi.status = "dead"
            core_logger.debug(f"worker stopped code={wi.process.returncode}")
            return wi.process.returncode

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb):
        self.shutdown()
        return False

__all__ = ["WorkerHandle", "WorkerInfo"]
