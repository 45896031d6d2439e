#!/usr/bin/env python3
"""
Tests for the decorators module.
"""
import unittest
import time
from unittest.mock import patch, MagicMock
import os
import sys

# Add the parent directory to sys.path so we can import from utils
sys.path.insert(0, os.path.abspath(os.path.dirname(os.path.dirname(__file__))))

from utils.decorators import log_errors, log_step, timed
from model.exceptions import SamplerError, ScoringError


class TestDecorators(unittest.TestCase):
    """Tests for the decorators module."""

    @patch('utils.decorators.logger')
    def test_log_errors_reraises_by_default(self, mock_logger):
        @log_errors()
        def failing():
            raise SamplerError("chains diverged")

        with self.assertRaises(SamplerError):
            failing()

        mock_logger.error.assert_called_once()
        self.assertIn("failing", mock_logger.error.call_args[0][0])

    @patch('utils.decorators.logger')
    def test_log_errors_returns_default(self, mock_logger):
        @log_errors(SamplerError, reraise=False, default_return="fallback")
        def failing():
            raise SamplerError("chains diverged")

        self.assertEqual(failing(), "fallback")

    @patch('utils.decorators.logger')
    def test_log_errors_ignores_unexpected_types(self, mock_logger):
        @log_errors([SamplerError], reraise=False)
        def failing():
            raise ScoringError("no log-likelihood")

        with self.assertRaises(ScoringError):
            failing()
        mock_logger.error.assert_not_called()

    @patch('utils.decorators.logger')
    def test_log_errors_logs_arguments(self, mock_logger):
        @log_errors(log_args=True, reraise=False)
        def failing(spec_name, draws=None):
            raise ValueError("bad")

        failing("gaussian", draws=10)
        debug_messages = " ".join(c[0][0] for c in mock_logger.debug.call_args_list)
        self.assertIn("'gaussian'", debug_messages)

    def test_log_step_decorator(self):
        mock_logger = MagicMock()
        with patch('utils.logging_utils.get_logger', return_value=mock_logger):
            @log_step("Fitting model")
            def step():
                return "step_result"

            result = step()

        self.assertEqual(mock_logger.info.call_count, 2)
        self.assertIn("Fitting model", mock_logger.info.call_args_list[0][0][0])
        self.assertEqual(result, "step_result")

    def test_log_step_bare(self):
        mock_logger = MagicMock()
        with patch('utils.logging_utils.get_logger', return_value=mock_logger):
            @log_step
            def score_models():
                return 3

            self.assertEqual(score_models(), 3)

        self.assertIn("score_models", mock_logger.info.call_args_list[0][0][0])

    def test_log_step_logs_failure(self):
        mock_logger = MagicMock()
        with patch('utils.logging_utils.get_logger', return_value=mock_logger):
            @log_step("Scoring")
            def step():
                raise ScoringError("no matrix")

            with self.assertRaises(ScoringError):
                step()

        mock_logger.error.assert_called_once()
        self.assertIn("failed", mock_logger.info.call_args_list[-1][0][0])

    @patch('utils.decorators.logger')
    def test_timed_decorator(self, mock_logger):
        @timed
        def run_timed():
            time.sleep(0.01)
            return "timed_result"

        result = run_timed()

        mock_logger.info.assert_called_once()
        self.assertIn("run_timed", mock_logger.info.call_args[0][0])
        self.assertEqual(result, "timed_result")

    @patch('utils.decorators.logger')
    def test_timed_decorator_with_params(self, mock_logger):
        @timed("Comparison run", log_level="debug")
        def run_timed(arg1, arg2=None):
            return f"{arg1}_{arg2}"

        result = run_timed("test", arg2="value")

        mock_logger.debug.assert_called_once()
        self.assertIn("Comparison run", mock_logger.debug.call_args[0][0])
        self.assertEqual(result, "test_value")

    @patch('utils.decorators.logger')
    def test_timed_logs_on_exception(self, mock_logger):
        @timed()
        def failing():
            raise RuntimeError("boom")

        with self.assertRaises(RuntimeError):
            failing()
        mock_logger.info.assert_called_once()


if __name__ == "__main__":
    unittest.main()
