import logging

import pytest

from archflow.logging import LOG_FORMAT, configure_logging


@pytest.fixture()
def root_logger():
    root = logging.getLogger()
    level, handlers = root.level, list(root.handlers)
    yield root
    root.handlers[:] = handlers
    root.setLevel(level)


class TestConfigureLogging:
    def test_plain_text_handler(self, root_logger) -> None:
        configure_logging("debug")
        assert root_logger.level == logging.DEBUG
        formatters = [h.formatter._fmt for h in root_logger.handlers if h.formatter]
        assert formatters == [LOG_FORMAT]

    def test_noisy_libraries_stay_quiet(self, root_logger) -> None:
        configure_logging("DEBUG")
        assert logging.getLogger("sqlalchemy.engine").level == logging.WARNING
        assert logging.getLogger("httpx").level == logging.WARNING
        assert logging.getLogger("celery").level == logging.DEBUG

    def test_message_is_rendered_verbatim(self, root_logger) -> None:
        configure_logging("INFO")
        record = logging.LogRecord(
            "archflow.services.submission",
            logging.INFO,
            __file__,
            1,
            'Synced submission %s: "under_review"',
            ("abc",),
            None,
        )
        rendered = root_logger.handlers[0].format(record)
        assert rendered.endswith(
            'INFO [archflow.services.submission] Synced submission abc: "under_review"'
        )
