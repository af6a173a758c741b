"""Logging configuration tests."""

from __future__ import annotations

import logging
from pathlib import Path

from transhub.logging import configure_logging, get_logger


def test_get_logger_nests_under_package_logger() -> None:
    assert get_logger().name == "transhub"
    assert get_logger("workflow").name == "transhub.workflow"


def test_reconfiguring_does_not_duplicate_handlers() -> None:
    configure_logging()
    logger = configure_logging(verbose=True)

    assert logger.level == logging.DEBUG
    assert logger.propagate is False
    assert len(logger.handlers) == 1
    assert "%(name)s" in logger.handlers[0].formatter._fmt  # type: ignore[union-attr]


def test_log_file_records_module_logger_name(tmp_path: Path) -> None:
    log_file = tmp_path / "transhub.log"
    logger = configure_logging(log_file=log_file)

    get_logger("forks").info("Fork of acme/docs synced")
    for handler in logger.handlers:
        handler.flush()
        handler.close()

    assert "INFO transhub.forks: Fork of acme/docs synced" in log_file.read_text(encoding="utf-8")
