"""Tests for loguru startup configuration."""

import logging
import sys

import pytest
from loguru import logger

from authflow.runtime.config.config_data import AppConfig, ConfigData
from authflow.utils.app_startup import configure_logging


@pytest.fixture
def restore_logging():
    root_handlers = logging.root.handlers[:]
    root_level = logging.root.level
    yield
    logger.remove()
    logger.configure(extra={})
    logger.add(sys.stderr)
    logging.root.handlers = root_handlers
    logging.root.setLevel(root_level)


class TestConfigureLogging:
    def test_records_carry_app_name(self, restore_logging):
        records = []
        configure_logging(ConfigData(app=AppConfig(environment="test", name="billing-auth")))
        logger.add(lambda message: records.append(message.record), level="DEBUG")

        logger.info("hello")

        assert records[-1]["extra"]["app"] == "billing-auth"
        assert records[-1]["extra"]["component"] == "-"

    def test_stdlib_records_are_intercepted(self, restore_logging):
        records = []
        configure_logging(ConfigData(app=AppConfig(environment="test")))
        logger.add(lambda message: records.append(message.record), level="DEBUG")

        logging.getLogger("authflow.tests").warning("from stdlib")

        assert records[-1]["message"] == "from stdlib"
        assert records[-1]["extra"]["component"] == "authflow.tests"
        assert records[-1]["extra"]["app"] == "authflow"
