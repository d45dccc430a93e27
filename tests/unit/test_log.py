"""Tests for cal-extract structured logging."""

from __future__ import annotations

import logging
import re

import pytest

from cal_extract.log import get_logger, setup_logging


class TestSetupLogging:
    """Tests for the setup_logging function."""

    def test_setup_logging_does_not_raise(self) -> None:
        setup_logging()

    def test_setup_logging_sets_level(self) -> None:
        """setup_logging('debug') sets the root logger to DEBUG."""
        setup_logging("debug")

        assert logging.getLogger().level == logging.DEBUG

    def test_setup_logging_default_level_is_info(self) -> None:
        setup_logging()

        assert logging.getLogger().level == logging.INFO

    def test_setup_logging_invalid_level_raises(self) -> None:
        """An unrecognised level string must raise ValueError."""
        with pytest.raises(ValueError, match="Invalid log level"):
            setup_logging("LOUD")

    def test_setup_logging_idempotent(self) -> None:
        """Calling setup_logging() twice must not add duplicate handlers."""
        setup_logging()
        count_after_first = len(logging.getLogger().handlers)

        setup_logging("DEBUG")
        count_after_second = len(logging.getLogger().handlers)

        assert count_after_second == count_after_first

    def test_noisy_transport_loggers_are_quietened(self) -> None:
        setup_logging("DEBUG")

        assert logging.getLogger("httpx").level == logging.WARNING
        assert logging.getLogger("google_genai").level == logging.WARNING

    def test_output_format(self, capsys: pytest.CaptureFixture[str]) -> None:
        """Records are written to stderr as pipe-separated fields."""
        setup_logging("INFO")

        get_logger("cal_extract.test").info("hello world")

        err = capsys.readouterr().err
        pattern = r"\d{4}-\d{2}-\d{2}T\d{2}:\d{2}:\d{2} \| INFO     \| cal_extract\.test \| hello world"
        assert re.search(pattern, err)


class TestGetLogger:
    def test_get_logger_name(self) -> None:
        logger = get_logger("cal_extract.pipeline")

        assert isinstance(logger, logging.Logger)
        assert logger.name == "cal_extract.pipeline"
