"""Configuration management for the AITrader service."""

import os
import yaml
from pathlib import Path
from typing import Any, List, Optional
from dotenv import load_dotenv

# Load environment variables
load_dotenv()

DEFAULT_CONFIG_PATH = "config/config.yaml"


class Config:
    """Centralized configuration manager."""

    def __init__(self, config_path: Optional[str] = None):
        """
        Initialize configuration from YAML file.

        Args:
            config_path: Path relative to the project root, or an absolute path.
                Defaults to $AITRADER_CONFIG, then config/config.yaml.
        """
        config_path = config_path or os.getenv("AITRADER_CONFIG") or DEFAULT_CONFIG_PATH
        config_file = Path(__file__).parent.parent / config_path

        if not config_file.exists():
            raise FileNotFoundError(f"Config file not found: {config_file}")

        with open(config_file, 'r') as f:
            self.config = yaml.safe_load(f) or {}

        self.path = config_file

        # Replace environment variable placeholders
        self._substitute_env_vars(self.config)

    def _substitute_env_vars(self, obj: Any) -> None:
        """Recursively substitute environment variables in config."""
        if isinstance(obj, dict):
            for key, value in obj.items():
                if isinstance(value, str) and value.startswith("${") and value.endswith("}"):
                    env_var = value[2:-1]
                    obj[key] = os.getenv(env_var, value)
                else:
                    self._substitute_env_vars(value)
        elif isinstance(obj, list):
            for index, item in enumerate(obj):
                if isinstance(item, str) and item.startswith("${") and item.endswith("}"):
                    obj[index] = os.getenv(item[2:-1], item)
                else:
                    self._substitute_env_vars(item)

    def get(self, path: str, default: Any = None) -> Any:
        """
        Get configuration value using dot notation.

        Example: config.get('cron.ai_concurrency')
        """
        keys = path.split('.')
        value = self.config

        for key in keys:
            if isinstance(value, dict):
                value = value.get(key)
                if value is None:
                    return default
            else:
                return default

        return value

    def get_secret(self, path: str) -> Optional[str]:
        """
        Get a credential-like value; unresolved ${VAR} placeholders count as unset.
        """
        value = self.get(path)
        if value is None:
            return None
        value = str(value).strip()
        if not value or value.startswith("${"):
            return None
        return value

    @property
    def database_provider(self) -> str:
        """Get storage backend name."""
        return self.get('database.provider', 'sqlite')

    @property
    def db_path(self) -> str:
        """Get SQLite database path."""
        return self.get('database.path', 'data/aitrader.db')

    @property
    def cron_secret(self) -> Optional[str]:
        return self.get_secret('cron.secret')

    @property
    def cron_error_email(self) -> Optional[str]:
        return self.get_secret('cron.error_email')

    @property
    def ai_concurrency(self) -> int:
        """Get number of parallel rating workers (at least 1)."""
        try:
            return max(1, int(self.get('cron.ai_concurrency', 4)))
        except (TypeError, ValueError):
            return 4

    @property
    def openai_api_key(self) -> Optional[str]:
        return self.get_secret('openai.api_key')

    @property
    def openai_model(self) -> str:
        return self.get_secret('openai.model') or 'gpt-5'

    @property
    def cors_origins(self) -> List[str]:
        return list(self.get('api.cors_origins', ['*']))

    @property
    def payload_ttl_seconds(self) -> float:
        return float(self.get('api.payload_ttl_seconds', 300))


# Global config instance
_config: Optional[Config] = None


def get_config() -> Config:
    """Get or create global config instance."""
    global _config
    if _config is None:
        _config = Config()
    return _config


def set_config(config: Optional[Config]) -> None:
    """Replace the global config instance (None resets it)."""
    global _config
    _config = config
