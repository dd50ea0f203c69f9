"""Tests for request-tagged logging."""

import asyncio
import logging

import pytest

from reviewcard.utils import RequestContextFilter, bind_request, current_request, reset_request, setup_logging
from reviewcard.utils.logging_config import LOG_FORMAT, NO_REQUEST


def _record() -> logging.LogRecord:
    return logging.LogRecord("reviewcard.service", logging.INFO, __file__, 1, "Rendered card", None, None)


@pytest.fixture
def restore_root_logger():
    root = logging.getLogger()
    handlers, level = root.handlers[:], root.level
    yield root
    root.handlers[:] = handlers
    root.setLevel(level)


class TestRequestContextFilter:
    def test_untagged_outside_a_request(self) -> None:
        record = _record()
        assert RequestContextFilter().filter(record) is True
        assert record.request == NO_REQUEST

    def test_stamps_bound_tag(self) -> None:
        record = _record()
        token = bind_request("1.2.3.4-beef")
        try:
            RequestContextFilter().filter(record)
        finally:
            reset_request(token)
        assert record.request == "1.2.3.4-beef"
        assert current_request() == NO_REQUEST

    def test_tag_follows_work_into_threads(self) -> None:
        async def scenario():
            token = bind_request("5.6.7.8-cafe")
            try:
                return await asyncio.to_thread(current_request)
            finally:
                reset_request(token)

        assert asyncio.run(scenario()) == "5.6.7.8-cafe"


class TestSetupLogging:
    def test_console_handler_formats_request_field(self, restore_root_logger: logging.Logger) -> None:
        setup_logging(level="DEBUG")

        (handler,) = restore_root_logger.handlers
        assert restore_root_logger.level == logging.DEBUG
        assert any(isinstance(f, RequestContextFilter) for f in handler.filters)
        assert handler.formatter._fmt == LOG_FORMAT

        record = _record()
        handler.filter(record)
        assert f"| {NO_REQUEST} | Rendered card" in handler.format(record)

    def test_quiets_third_party_loggers(self, restore_root_logger: logging.Logger) -> None:
        setup_logging(level="INFO")
        assert logging.getLogger("urllib3").level == logging.WARNING
