import io

import pytest

from packwrap.logger import logger, resolve_level, setup_logger


@pytest.fixture(autouse=True)
def reset_logger():
    yield
    logger.remove()


def test_resolve_level(monkeypatch):
    monkeypatch.delenv("PACKWRAP_DEBUG", raising=False)
    assert resolve_level() == "INFO"
    assert resolve_level(debug=True) == "DEBUG"

    monkeypatch.setenv("PACKWRAP_DEBUG", "1")
    assert resolve_level() == "DEBUG"


def test_console_sink_filters_by_level():
    sink = io.StringIO()
    setup_logger(level="INFO", sink=sink, enqueue=False)

    logger.debug("hidden")
    logger.info("导出完成")

    output = sink.getvalue()
    assert "hidden" not in output
    assert "INFO" in output and "导出完成" in output
    assert "\x1b[" not in output


def test_log_file_receives_debug(tmp_path):
    log_file = tmp_path / "logs" / "packwrap.log"
    setup_logger(level="INFO", sink=io.StringIO(), enqueue=False, log_file=str(log_file))

    logger.debug("暂存目录已创建")
    logger.remove()

    assert "暂存目录已创建" in log_file.read_text(encoding="utf-8")
