#!/usr/bin/env python3
"""
Tests for the configuration manager.
"""
import json
import os
import sys
import tempfile
import unittest
from unittest.mock import patch

# Add the parent directory to sys.path so we can import from config
sys.path.insert(0, os.path.abspath(os.path.dirname(os.path.dirname(__file__))))

from config.config_manager import AppConfig, ConfigManager
from model.exceptions import ConfigurationError


def clean_environ():
    return {k: v for k, v in os.environ.items() if not k.startswith(ConfigManager.ENV_PREFIX)}


class TestConfigManager(unittest.TestCase):

    def setUp(self):
        self.tmp = tempfile.TemporaryDirectory()

    def tearDown(self):
        self.tmp.cleanup()

    def write_config(self, content):
        path = os.path.join(self.tmp.name, "config.json")
        with open(path, "w") as f:
            json.dump(content, f)
        return path

    @patch.dict(os.environ, clean_environ(), clear=True)
    def test_defaults(self):
        manager = ConfigManager()
        self.assertEqual(manager.app_config, AppConfig())
        config = manager.to_sampling_config()
        self.assertEqual(config.chains, 4)
        self.assertEqual(config.draws, 1000)
        self.assertIsNone(config.random_seed)
        self.assertEqual(config.backend, "thread")

    @patch.dict(os.environ, clean_environ(), clear=True)
    def test_load_config_file(self):
        path = self.write_config({"sampling_draws": 500, "sampling_seed": 11,
                                  "runner_backend": "process", "colour": "blue"})
        manager = ConfigManager(path)
        config = manager.to_sampling_config()
        self.assertEqual(config.draws, 500)
        self.assertEqual(config.random_seed, 11)
        self.assertEqual(config.backend, "process")
        self.assertFalse(hasattr(manager.app_config, "colour"))

    @patch.dict(os.environ, clean_environ(), clear=True)
    def test_missing_file_keeps_defaults(self):
        manager = ConfigManager(os.path.join(self.tmp.name, "absent.json"))
        self.assertEqual(manager.app_config.sampling_chains, 4)

    @patch.dict(os.environ, clean_environ(), clear=True)
    def test_env_overrides(self):
        os.environ["BAYESCOMPARE_SAMPLING_CHAINS"] = "2"
        os.environ["BAYESCOMPARE_RUNNER_FIT_TIMEOUT"] = "30.5"
        os.environ["BAYESCOMPARE_SAVE_RESULTS"] = "false"
        os.environ["BAYESCOMPARE_SAMPLING_SEED"] = "none"
        path = self.write_config({"sampling_chains": 3, "sampling_seed": 5})

        manager = ConfigManager(path)
        self.assertEqual(manager.app_config.sampling_chains, 2)
        self.assertEqual(manager.app_config.runner_fit_timeout, 30.5)
        self.assertFalse(manager.app_config.save_results)
        self.assertIsNone(manager.app_config.sampling_seed)

    @patch.dict(os.environ, clean_environ(), clear=True)
    def test_invalid_values(self):
        for content in ({"sampling_chains": 0}, {"runner_backend": "cluster"},
                        {"sampling_target_accept": 1.5}, {"log_level": "LOUD"},
                        {"runner_max_workers": -1}):
            with self.subTest(content=content):
                with self.assertRaises(ConfigurationError):
                    ConfigManager(self.write_config(content))

        os.environ["BAYESCOMPARE_SAMPLING_DRAWS"] = "many"
        with self.assertRaises(ConfigurationError):
            ConfigManager()

    @patch.dict(os.environ, clean_environ(), clear=True)
    def test_non_object_file(self):
        with self.assertRaises(ConfigurationError):
            ConfigManager(self.write_config([1, 2]))

    @patch.dict(os.environ, clean_environ(), clear=True)
    def test_sampling_overrides(self):
        manager = ConfigManager(self.write_config({"sampling_draws": 500}))
        config = manager.to_sampling_config(draws=200, chains=None, fit_timeout=10.0)
        self.assertEqual(config.draws, 200)
        self.assertEqual(config.chains, 4)
        self.assertEqual(config.fit_timeout, 10.0)

    @patch.dict(os.environ, clean_environ(), clear=True)
    def test_save_and_reload(self):
        manager = ConfigManager(self.write_config({"sampling_tune": 250, "results_dir": "out"}))
        saved = os.path.join(self.tmp.name, "nested", "saved.json")
        manager.save_config(saved)

        reloaded = ConfigManager(saved)
        self.assertEqual(reloaded.app_config, manager.app_config)
        self.assertEqual(reloaded.app_config.get("sampling_tune"), 250)
        self.assertEqual(reloaded.app_config.get("unknown", "fallback"), "fallback")


if __name__ == "__main__":
    unittest.main()
