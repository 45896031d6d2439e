"""
Configuration manager for the Bayesian model comparison runner.

This module provides a centralized configuration management system with
a structured configuration class using dataclasses. Values come from the
defaults below, then an optional JSON file, then ``BAYESCOMPARE_*``
environment variables.
"""
import json
import os
from dataclasses import asdict, dataclass, fields
from pathlib import Path
from typing import Any, Dict, Optional, Union

from model.constants import (
    DEFAULT_CHAINS,
    DEFAULT_DRAWS,
    DEFAULT_MAX_TREEDEPTH,
    DEFAULT_TARGET_ACCEPT,
    DEFAULT_TUNE,
    RUNNER_BACKENDS,
)
from model.exceptions import ConfigurationError
from model.specs import SamplingConfig
from utils.logging_utils import get_logger

# Get logger for this module
logger = get_logger()


@dataclass
class AppConfig:
    """Unified application configuration parameters with prefixed attributes"""
    # App settings
    results_dir: str = "results"
    save_results: bool = True
    log_level: str = "INFO"
    log_file: Optional[str] = None

    # Sampling settings (with sampling_ prefix)
    sampling_chains: int = DEFAULT_CHAINS
    sampling_draws: int = DEFAULT_DRAWS
    sampling_tune: int = DEFAULT_TUNE
    sampling_seed: Optional[int] = None
    sampling_cores: Optional[int] = None
    sampling_target_accept: float = DEFAULT_TARGET_ACCEPT
    sampling_max_treedepth: int = DEFAULT_MAX_TREEDEPTH
    sampling_max_rhat: Optional[float] = None
    sampling_posterior_predictive: bool = False

    # Runner settings (with runner_ prefix)
    runner_max_workers: Optional[int] = None
    runner_fit_timeout: Optional[float] = None
    runner_backend: str = "thread"

    def get(self, key: str, default: Any = None) -> Any:
        """
        Get a configuration value with fallback to default.

        Args:
            key: Configuration key to look up
            default: Default value if key not found

        Returns:
            Configuration value or default
        """
        return getattr(self, key, default)


# Parsers for environment variable values, by field
_INT_FIELDS = {"sampling_chains", "sampling_draws", "sampling_tune", "sampling_seed",
               "sampling_cores", "sampling_max_treedepth", "runner_max_workers"}
_FLOAT_FIELDS = {"sampling_target_accept", "sampling_max_rhat", "runner_fit_timeout"}
_BOOL_FIELDS = {"save_results", "sampling_posterior_predictive"}
_OPTIONAL_FIELDS = {"log_file", "sampling_seed", "sampling_cores", "sampling_max_rhat",
                    "runner_max_workers", "runner_fit_timeout"}


def _parse_env_value(field_name: str, raw: str) -> Any:
    if field_name in _OPTIONAL_FIELDS and raw.strip().lower() in ("", "none", "null"):
        return None
    if field_name in _BOOL_FIELDS:
        return raw.lower() in ('true', 'yes', '1')
    if field_name in _INT_FIELDS:
        return int(raw)
    if field_name in _FLOAT_FIELDS:
        return float(raw)
    return raw


class ConfigManager:
    """
    Unified configuration manager with a typed configuration object.
    """

    # Environment variable prefix for overrides
    ENV_PREFIX = "BAYESCOMPARE_"

    def __init__(self, config_path: Optional[Union[str, Path]] = None):
        """
        Initialize the configuration manager.

        Args:
            config_path: Path to a JSON configuration file.

        Raises:
            ConfigurationError: If the file or an override holds invalid values
        """
        self.app_config = AppConfig()

        if config_path:
            self.load_config(config_path)

        self._apply_env_overrides()
        self.validate()

    def load_config(self, config_path: Union[str, Path]) -> None:
        """
        Load configuration from a JSON file.

        Unknown keys are ignored with a warning.

        Args:
            config_path: Path to a JSON configuration file.

        Raises:
            ConfigurationError: If the file exists but is not a JSON object
        """
        config_path = Path(config_path)
        if not config_path.exists():
            logger.warning(f"Configuration file not found: {config_path}")
            return

        try:
            with open(config_path, 'r') as f:
                config_dict = json.load(f)
        except (OSError, json.JSONDecodeError) as e:
            raise ConfigurationError(f"Error loading configuration from {config_path}: {str(e)}") from e

        if not isinstance(config_dict, dict):
            raise ConfigurationError(f"Configuration file {config_path} must hold a JSON object")

        app_fields = {f.name for f in fields(AppConfig)}
        unknown = sorted(set(config_dict) - app_fields)
        if unknown:
            logger.warning(f"Ignoring unknown configuration keys: {unknown}")

        for key, value in config_dict.items():
            if key in app_fields:
                setattr(self.app_config, key, value)

        logger.info(f"Loaded configuration from {config_path}")

    def _apply_env_overrides(self) -> None:
        """Apply configuration overrides from environment variables."""
        for field_info in fields(AppConfig):
            env_name = f"{self.ENV_PREFIX}{field_info.name.upper()}"
            if env_name not in os.environ:
                continue
            try:
                value = _parse_env_value(field_info.name, os.environ[env_name])
            except ValueError as e:
                raise ConfigurationError(f"Invalid value in {env_name}: {str(e)}") from e
            setattr(self.app_config, field_info.name, value)
            logger.debug(f"Applied env override for {field_info.name}: {value}")

    def save_config(self, filepath: Union[str, Path]) -> None:
        """
        Save the current configuration to a JSON file.

        Args:
            filepath: Path to save the configuration to.
        """
        filepath = Path(filepath)
        filepath.parent.mkdir(parents=True, exist_ok=True)

        with open(filepath, 'w') as f:
            json.dump(asdict(self.app_config), f, indent=4)

        logger.info(f"Saved configuration to {filepath}")

    def validate(self) -> bool:
        """
        Validate the current configuration.

        Returns:
            True if configuration is valid

        Raises:
            ConfigurationError: On non-positive counts, an unknown backend or
                an unknown log level
        """
        config = self.app_config
        for name in ("sampling_chains", "sampling_draws", "sampling_tune", "sampling_max_treedepth"):
            value = getattr(config, name)
            if isinstance(value, bool) or not isinstance(value, int) or value < 1:
                raise ConfigurationError(f"{name} must be a positive integer, got {value!r}")

        for name in ("sampling_cores", "runner_max_workers"):
            value = getattr(config, name)
            if value is not None and (isinstance(value, bool) or not isinstance(value, int) or value < 1):
                raise ConfigurationError(f"{name} must be a positive integer or null, got {value!r}")

        if config.runner_backend not in RUNNER_BACKENDS:
            raise ConfigurationError(f"Unknown runner backend '{config.runner_backend}'",
                                     details=list(RUNNER_BACKENDS))

        if str(config.log_level).upper() not in ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"):
            raise ConfigurationError(f"Unknown log level '{config.log_level}'")

        if not config.results_dir:
            logger.warning("No results directory specified. Using default 'results'.")
            config.results_dir = "results"

        # remaining ranges are checked by SamplingConfig itself
        self.to_sampling_config()
        return True

    def to_sampling_config(self, **overrides: Any) -> SamplingConfig:
        """
        Build the SamplingConfig for a run.

        Args:
            **overrides: SamplingConfig fields taking precedence over the configuration

        Returns:
            SamplingConfig built from the sampling_ and runner_ settings
        """
        config = self.app_config
        values: Dict[str, Any] = {
            "chains": config.sampling_chains,
            "draws": config.sampling_draws,
            "tune": config.sampling_tune,
            "random_seed": config.sampling_seed,
            "cores": config.sampling_cores,
            "target_accept": config.sampling_target_accept,
            "max_treedepth": config.sampling_max_treedepth,
            "max_rhat": config.sampling_max_rhat,
            "posterior_predictive": config.sampling_posterior_predictive,
            "max_workers": config.runner_max_workers,
            "fit_timeout": config.runner_fit_timeout,
            "backend": config.runner_backend,
        }
        values.update({k: v for k, v in overrides.items() if v is not None})
        return SamplingConfig(**values)
