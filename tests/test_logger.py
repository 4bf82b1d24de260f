import logging
import os

import pytest

from expense_categorizer.logger import LOG_FILENAME, ColourizedFormatter, get_logging_config


def test_console_only_without_log_dir(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.delenv("LOG_DIR", raising=False)
    config = get_logging_config("debug")
    assert list(config["handlers"]) == ["console"]
    assert config["loggers"][""]["level"] == "DEBUG"
    assert config["loggers"]["httpx"]["level"] == "WARNING"


def test_file_handler_with_log_dir(tmp_path, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("LOG_DIR", str(tmp_path / "logs"))
    config = get_logging_config()
    file_handler = config["handlers"]["file"]
    assert file_handler["filename"] == os.path.join(str(tmp_path / "logs"), LOG_FILENAME)
    assert file_handler["formatter"] == "plain"
    assert config["loggers"]["uvicorn.access"]["handlers"] == ["console", "file"]


def test_colourized_formatter_restores_levelname() -> None:
    record = logging.LogRecord("test", logging.WARNING, __file__, 1, "careful", None, None)
    output = ColourizedFormatter("%(levelname)s %(message)s").format(record)
    assert "\x1b[33mWARNING\x1b[0m careful" == output
    assert record.levelname == "WARNING"
