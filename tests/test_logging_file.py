from fencelight.core.logging import summarize_for_log


def test_file_logging_creation(monkeypatch, tmp_path):
    log_dir = tmp_path / "logs"
    monkeypatch.setenv("FENCELIGHT_LOG_DIR", str(log_dir))
    monkeypatch.setenv("FENCELIGHT_LOG_LEVEL", "DEBUG")
    from fencelight.core.logging import get_logger
    logger = get_logger("fencelight.core.test")
    logger.debug("test debug line")
    logger.info("info line")
    file_path = log_dir / "fencelight.log"
    assert file_path.exists()
    content = file_path.read_text(encoding="utf-8")
    assert "test debug line" in content
    assert "info line" in content


def test_summarize_long_code():
    code = "line\n" * 100
    s = summarize_for_log(code)
    assert s["len"] == 500
    assert s["lines"] == 101
    assert len(s["preview"]) == 80
    assert s["preview"].endswith("...")
    assert summarize_for_log(3) == 3
    assert summarize_for_log({"a": 1})["keys"] == ["a"]
