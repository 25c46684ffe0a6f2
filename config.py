"""
Configuration management for the textbook catalog crawler.
"""

import os
import threading
from typing import Dict, Any, Optional
from dataclasses import dataclass, field, asdict
from pathlib import Path
import json
import logging
from jsonschema import validate, ValidationError

from textbook_catalog.utils.errors import ConfigurationError


@dataclass
class CrawlerConfig:
    """Crawler configuration settings."""
    base_url: str = "http://www.dzkbw.com"
    city_list_url: str = "http://www.dzkbw.com/city/"
    user_agent: str = "Mozilla/5.0 (Windows NT 10.0; Win64; x64)"
    request_timeout: float = 30.0
    max_workers: int = 10
    district_delay: float = 0.1
    shutdown_timeout: float = 60.0
    shutdown_grace: float = 10.0


@dataclass
class OutputConfig:
    """Output file settings."""
    output_dir: str = "."
    raw_csv_path: str = "全国中小学教材版本.csv"
    processed_csv_path: str = "全国中小学教材版本_processed.csv"
    error_log_path: str = "error_logs.txt"
    log_file: Optional[str] = "logs/textbook_catalog.log"

    def resolve(self, filename: str) -> str:
        """Place a relative output file under output_dir."""
        path = Path(filename)
        if path.is_absolute():
            return str(path)
        return str(Path(self.output_dir) / path)


@dataclass
class SystemConfig:
    """Main system configuration."""
    crawler: CrawlerConfig = field(default_factory=CrawlerConfig)
    output: OutputConfig = field(default_factory=OutputConfig)
    log_level: str = "INFO"


# Configuration schema for validation
CONFIG_SCHEMA = {
    "type": "object",
    "properties": {
        "crawler": {
            "type": "object",
            "properties": {
                "base_url": {"type": "string", "minLength": 1},
                "city_list_url": {"type": "string", "minLength": 1},
                "user_agent": {"type": "string", "minLength": 1},
                "request_timeout": {"type": "number", "minimum": 1, "maximum": 300},
                "max_workers": {"type": "integer", "minimum": 1, "maximum": 50},
                "district_delay": {"type": "number", "minimum": 0.0, "maximum": 60.0},
                "shutdown_timeout": {"type": "number", "exclusiveMinimum": 0},
                "shutdown_grace": {"type": "number", "exclusiveMinimum": 0}
            },
            "additionalProperties": False
        },
        "output": {
            "type": "object",
            "properties": {
                "output_dir": {"type": "string", "minLength": 1},
                "raw_csv_path": {"type": "string", "minLength": 1},
                "processed_csv_path": {"type": "string", "minLength": 1},
                "error_log_path": {"type": "string", "minLength": 1},
                "log_file": {"type": ["string", "null"]}
            },
            "additionalProperties": False
        },
        "log_level": {
            "type": "string",
            "enum": ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
        }
    },
    "additionalProperties": False
}


class ConfigManager:
    """Configuration manager with schema validation and environment overrides."""

    def __init__(self, config_path: str = "config.json"):
        self.config_path = Path(config_path)
        self._config: Optional[SystemConfig] = None
        self._lock = threading.RLock()

    def validate_config(self, config_data: Dict[str, Any]) -> None:
        """Validate configuration data against schema."""
        try:
            validate(instance=config_data, schema=CONFIG_SCHEMA)
        except ValidationError as e:
            raise ConfigurationError(f"Configuration validation failed: {e.message}")

    def load_config(self) -> SystemConfig:
        """Load configuration from file or environment variables."""
        with self._lock:
            if self.config_path.exists():
                self._load_from_file()
            else:
                self._config = SystemConfig()

            self._override_with_env_vars()
            return self._config

    def _load_from_file(self) -> None:
        """Load configuration from JSON file with validation."""
        try:
            with open(self.config_path, 'r', encoding='utf-8') as f:
                config_data = json.load(f)
        except (OSError, json.JSONDecodeError) as e:
            raise ConfigurationError(f"Failed to load config from {self.config_path}: {e}")

        self.validate_config(config_data)
        self._config = self._dict_to_config(config_data)

        logging.info(f"Configuration loaded and validated from {self.config_path}")

    def _load_env_file(self) -> None:
        # 尝试从 .env 文件加载环境变量
        env_file = Path('.env')
        if not env_file.exists():
            return
        try:
            with open(env_file, 'r', encoding='utf-8') as f:
                for line in f:
                    line = line.strip()
                    if line and not line.startswith('#') and '=' in line:
                        key, value = line.split('=', 1)
                        os.environ.setdefault(key.strip(), value.strip())
            logging.info("Loaded environment variables from .env file")
        except OSError as e:
            logging.warning(f"Failed to load .env file: {e}")

    def _override_with_env_vars(self) -> None:
        """Override configuration with environment variables."""
        self._load_env_file()

        crawler = self._config.crawler
        output = self._config.output

        try:
            if os.getenv("TEXTBOOK_BASE_URL"):
                crawler.base_url = os.getenv("TEXTBOOK_BASE_URL")

            if os.getenv("TEXTBOOK_CITY_LIST_URL"):
                crawler.city_list_url = os.getenv("TEXTBOOK_CITY_LIST_URL")

            if os.getenv("TEXTBOOK_MAX_WORKERS"):
                crawler.max_workers = int(os.getenv("TEXTBOOK_MAX_WORKERS"))

            if os.getenv("TEXTBOOK_DISTRICT_DELAY"):
                crawler.district_delay = float(os.getenv("TEXTBOOK_DISTRICT_DELAY"))
        except ValueError as e:
            raise ConfigurationError(f"Invalid numeric environment variable: {e}")

        if os.getenv("TEXTBOOK_OUTPUT_DIR"):
            output.output_dir = os.getenv("TEXTBOOK_OUTPUT_DIR")

        if os.getenv("TEXTBOOK_LOG_LEVEL"):
            log_level = os.getenv("TEXTBOOK_LOG_LEVEL").upper()
            if log_level not in CONFIG_SCHEMA["properties"]["log_level"]["enum"]:
                raise ConfigurationError(f"Invalid TEXTBOOK_LOG_LEVEL: {log_level}")
            self._config.log_level = log_level

    def _dict_to_config(self, data: Dict[str, Any]) -> SystemConfig:
        """Convert dictionary to SystemConfig object."""
        config = SystemConfig()

        if "crawler" in data:
            config.crawler = CrawlerConfig(**data["crawler"])

        if "output" in data:
            config.output = OutputConfig(**data["output"])

        config.log_level = data.get("log_level", config.log_level)

        return config

    def export_config(self) -> Dict[str, Any]:
        """Export current configuration as dictionary."""
        with self._lock:
            if not self._config:
                return {}

            return {
                "crawler": asdict(self._config.crawler),
                "output": asdict(self._config.output),
                "log_level": self._config.log_level
            }

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

            logging.info(f"Configuration saved to {save_path}")


def get_config(config_path: str = "config.json") -> SystemConfig:
    """Load the system configuration."""
    return ConfigManager(config_path).load_config()
