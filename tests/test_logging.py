import logging
import os
import sys
from logging.handlers import RotatingFileHandler

import pytest
from flask import g

sys.path.append(os.path.join(os.path.dirname(__file__), ".."))

from stockledger import create_app
from stockledger.utils.logging import RequestIdFilter, configure_logging


@pytest.fixture
def restore_root_logger():
    root_logger = logging.getLogger()
    handlers = list(root_logger.handlers)
    level = root_logger.level
    yield root_logger
    for handler in list(root_logger.handlers):
        if handler not in handlers:
            root_logger.removeHandler(handler)
            handler.close()
    root_logger.setLevel(level)


def test_configure_logging_is_idempotent(tmp_path, restore_root_logger):
    app = create_app(
        {
            "TESTING": True,
            "SQLALCHEMY_DATABASE_URI": "sqlite:///:memory:",
            "LOG_DIR": str(tmp_path / "logs"),
            "LOG_LEVEL": "debug",
        }
    )

    log_path = configure_logging(app)
    handler_count = len(restore_root_logger.handlers)
    assert configure_logging(app) == log_path
    assert len(restore_root_logger.handlers) == handler_count

    assert log_path == tmp_path / "logs" / "stockledger.log"
    assert log_path.parent.is_dir()
    assert restore_root_logger.level == logging.DEBUG

    file_handlers = [
        handler
        for handler in restore_root_logger.handlers
        if isinstance(handler, RotatingFileHandler)
        and handler.baseFilename == str(log_path.resolve())
    ]
    assert len(file_handlers) == 1

    logging.getLogger("stockledger.test").info("written to file")
    file_handlers[0].flush()
    contents = log_path.read_text()
    assert "[req=-] stockledger.test: written to file" in contents


def test_unknown_level_falls_back_to_info(tmp_path, restore_root_logger):
    app = create_app(
        {
            "TESTING": True,
            "SQLALCHEMY_DATABASE_URI": "sqlite:///:memory:",
            "LOG_DIR": str(tmp_path),
            "LOG_LEVEL": "chatty",
        }
    )

    configure_logging(app)
    assert restore_root_logger.level == logging.INFO


def test_request_id_filter_reads_request_context():
    app = create_app({"TESTING": True, "SQLALCHEMY_DATABASE_URI": "sqlite:///:memory:"})
    request_filter = RequestIdFilter()

    record = logging.LogRecord("x", logging.INFO, __file__, 1, "msg", None, None)
    assert request_filter.filter(record) is True
    assert record.request_id == "-"

    with app.test_request_context("/health"):
        g.request_id = "req-9"
        record = logging.LogRecord("x", logging.INFO, __file__, 1, "msg", None, None)
        request_filter.filter(record)
        assert record.request_id == "req-9"
