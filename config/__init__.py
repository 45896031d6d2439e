"""
Configuration package for the Bayesian model comparison runner.

This package provides configuration management functionality: defaults,
JSON configuration files and environment variable overrides.
"""

from config.config_manager import AppConfig, ConfigManager

__all__ = ['AppConfig', 'ConfigManager']
