"""Tests for logging setup."""

import logging

import structlog

from dateplanner.logging_config import setup_logging


class TestSetupLogging:
    def teardown_method(self):
        structlog.reset_defaults()
        logging.getLogger().handlers.clear()
        logging.getLogger().setLevel(logging.WARNING)

    def test_sets_root_level(self):
        setup_logging(level="debug", fmt="console")
        assert logging.getLogger().level == logging.DEBUG

    def test_unknown_level_defaults_to_info(self):
        setup_logging(level="chatty")
        assert logging.getLogger().level == logging.INFO

    def test_httpx_is_quiet(self):
        setup_logging(level="debug")
        assert logging.getLogger("httpx").level == logging.WARNING

    def test_json_renderer(self):
        setup_logging(fmt="json")
        processors = structlog.get_config()["processors"]
        assert isinstance(processors[-1], structlog.processors.JSONRenderer)

    def test_single_handler_after_repeated_setup(self):
        setup_logging()
        setup_logging()
        assert len(logging.getLogger().handlers) == 1
