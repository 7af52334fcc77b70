import logging
from pathlib import Path

import pytest

from drive_migrator.utils.logger import (
    DEFAULT_LOG_DIR,
    DEFAULT_LOG_FORMAT,
    get_logger,
    setup_logging,
)


@pytest.fixture(autouse=True)
def _clean_logger():
    logger = logging.getLogger("drive_migrator")
    logger.handlers.clear()
    yield
    logger.handlers.clear()


class TestSetupLogging:
    def test_returns_package_logger(self):
        logger = setup_logging()
        assert logger.name == "drive_migrator"

    def test_sets_log_level(self):
        logger = setup_logging(level="DEBUG")
        assert logger.level == logging.DEBUG

    def test_level_from_environment(self, monkeypatch):
        monkeypatch.setenv("LOG_LEVEL", "warning")
        logger = setup_logging()
        assert logger.level == logging.WARNING

    def test_unknown_level_falls_back_to_info(self):
        logger = setup_logging(level="chatty")
        assert logger.level == logging.INFO

    def test_clears_existing_handlers(self):
        logger = setup_logging()
        logger.addHandler(logging.StreamHandler())
        assert len(logger.handlers) == 2

        logger = setup_logging()
        assert len(logger.handlers) == 1

    def test_adds_file_handler(self, tmp_path: Path):
        log_file = tmp_path / "logs" / "migration.log"
        logger = setup_logging(log_file=log_file)

        assert len(logger.handlers) == 2
        assert isinstance(logger.handlers[1], logging.FileHandler)
        assert log_file.parent.exists()
        logger.handlers[1].close()

    def test_quiets_discovery_cache(self):
        setup_logging(level="DEBUG")
        noisy = logging.getLogger("googleapiclient.discovery_cache")
        assert noisy.level == logging.WARNING


class TestGetLogger:
    def test_namespaced(self):
        assert get_logger("engine").name == "drive_migrator.engine"


def test_defaults():
    assert "%(levelname)s" in DEFAULT_LOG_FORMAT
    assert DEFAULT_LOG_DIR.name == "logs"
