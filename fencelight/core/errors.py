"""Centralized exception hierarchy for the highlighting pipeline."""
from __future__ import annotations

class FencelightError(Exception):
    """Base class for all fencelight errors."""

class ConfigError(FencelightError):
    pass

class FramingError(FencelightError):
    """A wire frame could not be decoded; the channel is out of step."""

class EngineError(FencelightError):
    pass

class HighlightError(FencelightError):
    """The worker answered a request with an error response."""

class WorkerInitError(FencelightError):
    pass

class WorkerCrashedError(FencelightError):  # worker exited / pipe closed
    pass

class WorkerTimeoutError(WorkerCrashedError):
    pass
