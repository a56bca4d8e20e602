"""
Configuration management for imgliex.

Settings come from a JSON file when one exists, otherwise from ``IMGLIEX_*``
environment variables. Environment variables also override file values, and
command-line flags override both.
"""

import os
import threading
from typing import Dict, Any, Optional
from dataclasses import dataclass, field, asdict
from pathlib import Path
import json
import logging
from jsonschema import validate, ValidationError as SchemaValidationError

from imgliex.utils.errors import ConfigurationError


@dataclass
class FetchConfig:
    """Page fetching settings."""
    timeout: float = 30.0
    user_agent: str = "imgliex/1.0"


@dataclass
class ExtractionConfig:
    """Which elements carry resource links."""
    tag: str = "img"
    marker_attribute: str = "class"
    marker_value: str = "imgholder"
    source_attribute: str = "src"


@dataclass
class OutputConfig:
    """Output layout settings."""
    # The per-listing folder is created under this directory
    output_root: str = "."
    chapter_dir_prefix: str = "chapter-"
    base_filename: str = "base.txt"


@dataclass
class ConcurrencyConfig:
    """Worker pool settings."""
    # None means detect from the CPU count
    max_workers: Optional[int] = None
    worker_cap: int = 8
    fallback_workers: int = 4
    admission: str = "pool"  # "pool" or "batched"


@dataclass
class SystemConfig:
    """Main system configuration."""
    fetch: FetchConfig = field(default_factory=FetchConfig)
    extraction: ExtractionConfig = field(default_factory=ExtractionConfig)
    output: OutputConfig = field(default_factory=OutputConfig)
    concurrency: ConcurrencyConfig = field(default_factory=ConcurrencyConfig)
    log_level: str = "WARNING"
    log_file: Optional[str] = None
    log_retention_days: int = 7


# Configuration schema for validation
CONFIG_SCHEMA = {
    "type": "object",
    "properties": {
        "fetch": {
            "type": "object",
            "properties": {
                "timeout": {"type": "number", "exclusiveMinimum": 0, "maximum": 600},
                "user_agent": {"type": "string", "minLength": 1}
            },
            "additionalProperties": False
        },
        "extraction": {
            "type": "object",
            "properties": {
                "tag": {"type": "string", "minLength": 1},
                "marker_attribute": {"type": "string", "minLength": 1},
                "marker_value": {"type": "string", "minLength": 1},
                "source_attribute": {"type": "string", "minLength": 1}
            },
            "additionalProperties": False
        },
        "output": {
            "type": "object",
            "properties": {
                "output_root": {"type": "string", "minLength": 1},
                "chapter_dir_prefix": {"type": "string"},
                "base_filename": {"type": "string", "minLength": 1}
            },
            "additionalProperties": False
        },
        "concurrency": {
            "type": "object",
            "properties": {
                "max_workers": {"type": ["integer", "null"], "minimum": 1, "maximum": 64},
                "worker_cap": {"type": "integer", "minimum": 1, "maximum": 64},
                "fallback_workers": {"type": "integer", "minimum": 1, "maximum": 64},
                "admission": {"type": "string", "enum": ["pool", "batched"]}
            },
            "additionalProperties": False
        },
        "log_level": {
            "type": "string",
            "enum": ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
        },
        "log_file": {"type": ["string", "null"]},
        "log_retention_days": {"type": "integer", "minimum": 1, "maximum": 3650}
    },
    "additionalProperties": False
}

ENV_PREFIX = "IMGLIEX_"


class ConfigManager:
    """Loads, validates and exports the system configuration."""

    def __init__(self, config_path: str = "imgliex.json"):
        self.config_path = Path(config_path)
        self._config: Optional[SystemConfig] = None
        self._lock = threading.RLock()

    def validate_config(self, config_data: Dict[str, Any]) -> None:
        """Validate configuration data against schema."""
        try:
            validate(instance=config_data, schema=CONFIG_SCHEMA)
        except SchemaValidationError as e:
            raise ConfigurationError(
                f"Configuration validation failed: {e.message}",
                {"path": list(e.absolute_path)}
            )

    def load_config(self) -> SystemConfig:
        """Load configuration from file or environment variables."""
        with self._lock:
            if self.config_path.exists():
                self._config = self._load_from_file()
            else:
                self._config = SystemConfig()
            self._override_with_env_vars(self._config)
            return self._config

    def _load_from_file(self) -> SystemConfig:
        """Load configuration from JSON file with validation."""
        try:
            with open(self.config_path, 'r', encoding='utf-8') as f:
                config_data = json.load(f)
        except (OSError, json.JSONDecodeError) as e:
            raise ConfigurationError(f"Cannot read configuration file {self.config_path}: {e}")

        self.validate_config(config_data)
        config = self._dict_to_config(config_data)
        logging.getLogger(__name__).info(f"Configuration loaded and validated from {self.config_path}")
        return config

    def _override_with_env_vars(self, config: SystemConfig) -> None:
        """Override configuration with environment variables."""
        try:
            if os.getenv(f"{ENV_PREFIX}TIMEOUT"):
                config.fetch.timeout = float(os.environ[f"{ENV_PREFIX}TIMEOUT"])

            if os.getenv(f"{ENV_PREFIX}USER_AGENT"):
                config.fetch.user_agent = os.environ[f"{ENV_PREFIX}USER_AGENT"]

            if os.getenv(f"{ENV_PREFIX}MAX_WORKERS"):
                config.concurrency.max_workers = int(os.environ[f"{ENV_PREFIX}MAX_WORKERS"])

            if os.getenv(f"{ENV_PREFIX}ADMISSION"):
                config.concurrency.admission = os.environ[f"{ENV_PREFIX}ADMISSION"]

            if os.getenv(f"{ENV_PREFIX}OUTPUT_ROOT"):
                config.output.output_root = os.environ[f"{ENV_PREFIX}OUTPUT_ROOT"]

            if os.getenv(f"{ENV_PREFIX}LOG_LEVEL"):
                config.log_level = os.environ[f"{ENV_PREFIX}LOG_LEVEL"].upper()

            if os.getenv(f"{ENV_PREFIX}LOG_FILE"):
                config.log_file = os.environ[f"{ENV_PREFIX}LOG_FILE"]
        except ValueError as e:
            raise ConfigurationError(f"Invalid environment override: {e}")

        # Overrides must satisfy the same schema as the file
        self.validate_config(self._config_to_dict(config))

    def _dict_to_config(self, data: Dict[str, Any]) -> SystemConfig:
        """Convert dictionary to SystemConfig object."""
        config = SystemConfig()

        if "fetch" in data:
            config.fetch = FetchConfig(**data["fetch"])

        if "extraction" in data:
            config.extraction = ExtractionConfig(**data["extraction"])

        if "output" in data:
            config.output = OutputConfig(**data["output"])

        if "concurrency" in data:
            config.concurrency = ConcurrencyConfig(**data["concurrency"])

        config.log_level = data.get("log_level", config.log_level)
        config.log_file = data.get("log_file", config.log_file)
        config.log_retention_days = data.get("log_retention_days", config.log_retention_days)

        return config

    @staticmethod
    def _config_to_dict(config: SystemConfig) -> Dict[str, Any]:
        return {
            "fetch": asdict(config.fetch),
            "extraction": asdict(config.extraction),
            "output": asdict(config.output),
            "concurrency": asdict(config.concurrency),
            "log_level": config.log_level,
            "log_file": config.log_file,
            "log_retention_days": config.log_retention_days
        }

    def export_config(self) -> Dict[str, Any]:
        """Export current configuration as dictionary."""
        with self._lock:
            if not self._config:
                return {}
            return self._config_to_dict(self._config)

    def save_config(self, config_path: Optional[str] = None) -> None:
        """Save current configuration to file."""
        with self._lock:
            if not self._config:
                raise ConfigurationError("No configuration loaded to save")

            save_path = Path(config_path) if config_path else self.config_path
            config_dict = self.export_config()

            # Validate before saving
            self.validate_config(config_dict)

            with open(save_path, 'w', encoding='utf-8') as f:
                json.dump(config_dict, f, indent=2, ensure_ascii=False)

            logging.getLogger(__name__).info(f"Configuration saved to {save_path}")


def get_config(config_path: Optional[str] = None) -> SystemConfig:
    """Load the configuration from the given path (default: imgliex.json)."""
    manager = ConfigManager(config_path) if config_path else ConfigManager()
    return manager.load_config()
