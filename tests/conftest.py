import os
import subprocess
import sys
import threading
from pathlib import Path

import pytest

# Ensure the repo root (containing the fencelight package) is importable
ROOT = Path(__file__).resolve().parent.parent
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from fencelight.core.config_loader import EngineSettings  # noqa: E402
from fencelight.core.engine import HighlightEngine  # noqa: E402
from fencelight.core.protocol import get_codec  # noqa: E402
from fencelight.core.worker_entry import WorkerLoop  # noqa: E402


class _PipeProc:
    """Popen stand-in exposing binary stdin/stdout pipes like the real thing."""

    def __init__(self):
        in_r, in_w = os.pipe()
        out_r, out_w = os.pipe()
        self.stdin = os.fdopen(in_w, "wb")
        self.stdout = os.fdopen(out_r, "rb")
        self.worker_in = open(in_r, "r", encoding="utf-8", newline="\n")
        self.worker_out = open(out_w, "w", encoding="utf-8", newline="\n")
        self.returncode = None
        self.pid = 4242

    def poll(self):
        return self.returncode

    def wait(self, timeout=None):
        return self.returncode

    def kill(self):
        self.returncode = -9
        for f in (self.worker_out, self.stdin):
            try:
                f.close()
            except (OSError, ValueError):
                pass

    terminate = kill


class ThreadWorkerProc(_PipeProc):
    """Runs the real worker loop on a thread over OS pipes."""

    def __init__(self, framing="json", engine_settings=None):
        super().__init__()
        engine = HighlightEngine(engine_settings or EngineSettings(aliases={"ts": "typescript"}))
        self.loop = WorkerLoop(engine, get_codec(framing))
        self._thread = threading.Thread(target=self._run, daemon=True)
        self._thread.start()

    def _run(self):
        try:
            self.loop.serve(self.worker_in, self.worker_out)
        except (OSError, ValueError):
            pass
        finally:
            for f in (self.worker_out, self.worker_in):
                try:
                    f.close()
                except (OSError, ValueError):
                    pass
            if self.returncode is None:
                self.returncode = 0

    def wait(self, timeout=None):
        self._thread.join(timeout)
        if self._thread.is_alive():
            raise subprocess.TimeoutExpired("fake-worker", timeout)
        return self.returncode


class ExitingProc(_PipeProc):
    """A worker that dies right away: stdout hits EOF, exit code 1."""

    def __init__(self):
        super().__init__()
        self.worker_out.close()
        self.returncode = 1


class HangingProc(_PipeProc):
    """A worker that accepts requests but never answers."""


class GarbageProc(_PipeProc):
    """A worker that answers every request with an undecodable line."""

    def __init__(self):
        super().__init__()
        threading.Thread(target=self._run, daemon=True).start()

    def _run(self):
        try:
            for _line in self.worker_in:
                self.worker_out.write("this is not a frame\n")
                self.worker_out.flush()
        except (OSError, ValueError):
            pass


@pytest.fixture
def fake_popen(monkeypatch):
    """Patch subprocess.Popen with a factory; returns the list of spawned fakes."""
    spawned = []

    def install(factory):
        def _popen(cmd, **kwargs):  # noqa: ARG001
            proc = factory()
            spawned.append(proc)
            return proc

        monkeypatch.setattr("subprocess.Popen", _popen)
        return spawned

    return install
