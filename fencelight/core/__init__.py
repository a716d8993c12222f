"""Core components for fencelight.

Modules:
  protocol: line codecs (legacy backslash-n framing, JSON lines) for the worker channel.
  worker_protocol: command names of the JSON line protocol.
  config_loader: Parse the YAML config into validated settings dataclasses.
  engine: Pygments-backed highlighting with an analysis overlay.
  analysis: per-language type hints and error markers.
  worker_entry: the persistent Highlight Worker loop.
  process_manager: the caller-side Worker Handle (lazy spawn, lock, supervision).
"""

from .process_manager import WorkerHandle  # noqa: F401
