from pathlib import Path

import pytest

from fencelight.core.config_loader import ConfigError, load_settings, settings_from_dict


def test_defaults():
    s = settings_from_dict({})
    assert s.worker.framing == "json"
    assert s.worker.timeout_s == 30.0
    assert s.engine.strict is True
    assert s.engine.aliases["ts"] == "typescript"
    assert s.render.marker == "twoslash"


def test_load_yaml_merges_with_defaults(tmp_path: Path):
    cfg = tmp_path / "fencelight.yaml"
    cfg.write_text("""
engine:
  style: friendly
  aliases: {tsx: tsx}
worker:
  framing: legacy
  timeout_s: 5
  command: node _scripts/shiki.js
render:
  jobs: 2
""")
    s = load_settings(cfg)
    assert s.engine.style == "friendly"
    assert s.engine.aliases["tsx"] == "tsx"
    assert s.engine.aliases["ts"] == "typescript"
    assert s.worker.framing == "legacy"
    assert s.worker.timeout_s == 5.0
    assert s.worker.command == ["node", "_scripts/shiki.js"]
    assert s.render.jobs == 2
    assert s.render.marker == "twoslash"
    assert s.source == str(cfg.resolve())


def test_env_var_names_default_file(tmp_path: Path, monkeypatch):
    cfg = tmp_path / "site.yaml"
    cfg.write_text("render: {marker: shiki}\n")
    monkeypatch.setenv("FENCELIGHT_CONFIG", str(cfg))
    assert load_settings().render.marker == "shiki"


@pytest.mark.parametrize(
    "data",
    [
        {"worker": {"framing": "xml"}},
        {"worker": {"timeout_s": 0}},
        {"worker": {"timeout_s": "soon"}},
        {"worker": {"max_restarts": -1}},
        {"worker": {"command": [1, 2]}},
        {"engine": {"style": "no-such-style"}},
        {"engine": {"colour": "red"}},
        {"render": {"marker": "two slash"}},
        {"render": {"jobs": 0}},
        {"plugins": {}},
    ],
)
def test_invalid_values(data):
    with pytest.raises(ConfigError):
        settings_from_dict(data)


def test_missing_file(tmp_path: Path):
    with pytest.raises(ConfigError):
        load_settings(tmp_path / "nope.yaml")


def test_non_mapping_yaml(tmp_path: Path):
    cfg = tmp_path / "bad.yaml"
    cfg.write_text("- just\n- a list\n")
    with pytest.raises(ConfigError):
        load_settings(cfg)
