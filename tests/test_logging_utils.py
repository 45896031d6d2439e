#!/usr/bin/env python3
"""
Tests for the logging_utils module.
"""
import unittest
import logging
import os
import sys
import tempfile
from unittest.mock import MagicMock

# Add the parent directory to sys.path so we can import from utils
sys.path.insert(0, os.path.abspath(os.path.dirname(os.path.dirname(__file__))))

from utils.logging_utils import LOGGER_NAME, LoggerProvider, LoggingManager, get_logger


class TestLoggingUtils(unittest.TestCase):
    """Tests for the logging_utils module."""

    def setUp(self):
        self._saved_logger = LoggerProvider._logger

    def tearDown(self):
        LoggerProvider._logger = self._saved_logger

    def test_get_logger_is_shared(self):
        LoggerProvider._logger = None
        self.assertIs(get_logger(), get_logger())
        self.assertEqual(LoggerProvider.get_logger().name, LOGGER_NAME)

    def test_setup_logging(self):
        test_logger = LoggingManager.setup_logging(
            logger_name="test_logger",
            log_level=logging.DEBUG,
            log_format="%(message)s",
            log_file=None
        )

        self.assertEqual(test_logger.name, "test_logger")
        self.assertEqual(test_logger.level, logging.DEBUG)
        self.assertEqual(len(test_logger.handlers), 1)
        self.assertIs(get_logger(), test_logger)

    def test_setup_logging_accepts_level_name_and_file(self):
        with tempfile.TemporaryDirectory() as tmp:
            log_file = os.path.join(tmp, "logs", "run.log")
            test_logger = LoggingManager.setup_logging(
                logger_name="test_file_logger",
                log_level="warning",
                log_file=log_file
            )
            test_logger.warning("written")
            for handler in test_logger.handlers:
                handler.flush()

            self.assertEqual(test_logger.level, logging.WARNING)
            self.assertEqual(len(test_logger.handlers), 2)
            with open(log_file) as f:
                self.assertIn("written", f.read())

            for handler in list(test_logger.handlers):
                handler.close()
                test_logger.removeHandler(handler)

    def test_log_dict(self):
        mock_logger = MagicMock()
        LoggingManager.log_dict(mock_logger, "Run outcome", {"gaussian": "scored", "student": "fit_failed"})

        mock_logger.info.assert_called_once()
        message = mock_logger.info.call_args[0][0]
        self.assertIn("Run outcome", message)
        self.assertIn("  gaussian: scored", message)
        self.assertIn("  student: fit_failed", message)

    def test_log_warning_with_data(self):
        mock_logger = MagicMock()
        LoggingManager.log_warning(mock_logger, "High Pareto k", data={"observations": [3]})
        self.assertIn("observations", mock_logger.warning.call_args[0][0])

    def test_log_error_with_exception(self):
        mock_logger = MagicMock()
        try:
            raise ValueError("bad draw")
        except ValueError as e:
            LoggingManager.log_error(mock_logger, "Fit failed", exception=e, data={"spec": "a"})

        messages = [c[0][0] for c in mock_logger.error.call_args_list]
        self.assertIn("Fit failed: bad draw", messages[0])
        self.assertIn("spec", messages[1])
        mock_logger.debug.assert_called_once()


if __name__ == "__main__":
    unittest.main()
