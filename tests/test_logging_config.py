import logging

import pytest

from ensemble_postprocessing.utils.logging_config import (
    configure_logging_from_config, get_logger, setup_logging
)


@pytest.fixture(autouse=True)
def reset_logging():
    yield
    for name in ("", "ensemble_postprocessing"):
        logger = logging.getLogger(name)
        for handler in list(logger.handlers):
            handler.close()
            logger.removeHandler(handler)


def test_setup_logging_writes_file(tmp_path):
    logger = setup_logging(log_dir=str(tmp_path), log_file="run.log", log_level="DEBUG")
    logger.info("写入测试")
    for handler in logging.getLogger().handlers:
        handler.flush()

    assert logger is get_logger()
    assert "写入测试" in (tmp_path / "run.log").read_text(encoding="utf-8")


def test_dedicated_logger_handlers(tmp_path):
    logger = setup_logging(log_dir=str(tmp_path), log_level="WARNING", use_basic_config=False)
    assert logger.level == logging.WARNING
    assert len(logger.handlers) == 2
    assert (tmp_path / "ensemble_postprocessing.log").exists()


def test_configure_from_config_dict(tmp_path):
    config = {"logging": {"log_dir": str(tmp_path), "log_file": "cfg.log", "level": "ERROR",
                          "use_basic_config": False}}
    logger = configure_logging_from_config(config)
    assert logger.level == logging.ERROR
    assert (tmp_path / "cfg.log").exists()
