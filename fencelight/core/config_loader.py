"""Settings loading and normalization.

A single YAML file configures the three parts of a run:

    engine:  theme / strict mode / line numbers / language aliases
    worker:  framing, read deadline, restart budget, worker command
    render:  fence marker, fallback policy, file pattern, parallelism

Missing sections and keys fall back to DEFAULTS; values are validated once
here so the worker and the handle never see a half-valid config.
"""
from __future__ import annotations

import copy
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional

import yaml
from pygments.styles import get_all_styles

from .errors import ConfigError

CONFIG_ENV = "FENCELIGHT_CONFIG"
VALID_FRAMINGS = {"json", "legacy"}

DEFAULTS: Dict[str, Dict[str, Any]] = {
    "engine": {
        "style": "monokai",
        "strict": True,
        "line_numbers": False,
        "wrap_fragments": True,
        "aliases": {"ts": "typescript", "js": "javascript", "py": "python", "sh": "bash"},
        "preload": ["python", "typescript", "javascript"],
    },
    "worker": {
        "framing": "json",
        "timeout_s": 30.0,
        "max_restarts": 3,
        "command": None,
        "python": None,
    },
    "render": {
        "marker": "twoslash",
        "fallback_on_error": True,
        "pattern": "*.md",
        "jobs": 4,
    },
}


@dataclass
class EngineSettings:
    style: str = "monokai"
    strict: bool = True
    line_numbers: bool = False
    wrap_fragments: bool = True
    aliases: Dict[str, str] = field(default_factory=dict)
    preload: List[str] = field(default_factory=list)


@dataclass
class WorkerSettings:
    framing: str = "json"
    timeout_s: float = 30.0
    max_restarts: int = 3
    command: Optional[List[str]] = None
    python: Optional[str] = None


@dataclass
class RenderSettings:
    marker: str = "twoslash"
    fallback_on_error: bool = True
    pattern: str = "*.md"
    jobs: int = 4


@dataclass
class Settings:
    engine: EngineSettings = field(default_factory=EngineSettings)
    worker: WorkerSettings = field(default_factory=WorkerSettings)
    render: RenderSettings = field(default_factory=RenderSettings)
    source: Optional[str] = None


def _read_yaml(path: Path) -> Dict[str, Any]:
    with path.open("r", encoding="utf-8") as f:
        data = yaml.safe_load(f) or {}
    if not isinstance(data, dict):
        raise ConfigError(f"{path}: top level must be a mapping")
    return data


def _merge_defaults(data: Dict[str, Any]) -> Dict[str, Dict[str, Any]]:
    merged = copy.deepcopy(DEFAULTS)
    for section, values in data.items():
        if section not in merged:
            raise ConfigError(f"Unknown config section: {section}")
        if values is None:
            continue
        if not isinstance(values, dict):
            raise ConfigError(f"Section {section} must be a mapping")
        for k, v in values.items():
            if k not in merged[section]:
                raise ConfigError(f"Unknown key {section}.{k}")
            if k == "aliases" and isinstance(v, dict):
                merged[section][k].update(v)
            else:
                merged[section][k] = v
    return merged


def _validate(cfg: Dict[str, Dict[str, Any]]):
    engine, worker, render = cfg["engine"], cfg["worker"], cfg["render"]
    if engine["style"] not in set(get_all_styles()):
        raise ConfigError(f"Unknown style: {engine['style']}")
    if not isinstance(engine["aliases"], dict):
        raise ConfigError("engine.aliases must be a mapping")
    if not isinstance(engine["preload"], list):
        raise ConfigError("engine.preload must be a list")
    if worker["framing"] not in VALID_FRAMINGS:
        raise ConfigError(f"Invalid framing: {worker['framing']}")
    try:
        worker["timeout_s"] = float(worker["timeout_s"])
    except (TypeError, ValueError):
        raise ConfigError(f"timeout_s must be a number: {worker['timeout_s']!r}") from None
    if worker["timeout_s"] <= 0:
        raise ConfigError("timeout_s must be positive")
    if not isinstance(worker["max_restarts"], int) or worker["max_restarts"] < 0:
        raise ConfigError("max_restarts must be a non-negative integer")
    cmd = worker["command"]
    if cmd is not None:
        if isinstance(cmd, str):
            worker["command"] = cmd.split()
        elif not (isinstance(cmd, list) and cmd and all(isinstance(c, str) for c in cmd)):
            raise ConfigError("worker.command must be a string or list of strings")
    if not render["marker"] or any(c.isspace() for c in render["marker"]):
        raise ConfigError(f"Invalid marker: {render['marker']!r}")
    if not isinstance(render["jobs"], int) or render["jobs"] < 1:
        raise ConfigError("render.jobs must be >= 1")


def settings_from_dict(data: Dict[str, Any], source: Optional[str] = None) -> Settings:
    cfg = _merge_defaults(data)
    _validate(cfg)
    return Settings(
        engine=EngineSettings(**cfg["engine"]),
        worker=WorkerSettings(**cfg["worker"]),
        render=RenderSettings(**cfg["render"]),
        source=source,
    )


def load_settings(path: Optional[Path] = None) -> Settings:
    """Load settings from ``path``, the FENCELIGHT_CONFIG file, or defaults."""
    if path is None and os.getenv(CONFIG_ENV):
        path = Path(os.environ[CONFIG_ENV])
    if path is None:
        return settings_from_dict({})
    path = Path(path)
    if not path.exists():
        raise ConfigError(f"Config file not found: {path}")
    return settings_from_dict(_read_yaml(path), source=str(path.resolve()))

__all__ = [
    "Settings",
    "EngineSettings",
    "WorkerSettings",
    "RenderSettings",
    "load_settings",
    "settings_from_dict",
    "ConfigError",
]
