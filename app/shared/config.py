"""
Centralized environment configuration.

Sources, later overriding earlier:
1) `env.example` (committed, safe placeholders)
2) `env.local` (optional, MUST NOT be committed)
3) System environment variables (highest priority)
"""

import os
from pathlib import Path

from dotenv import dotenv_values
from loguru import logger


class EnvironConfig:
    """
    Singleton configuration class that loads environment variables from env files
    and the system environment, providing dictionary-like access with default values.
    """

    _instance = None
    _initialized = False

    def __new__(cls):
        if cls._instance is None:
            cls._instance = super(EnvironConfig, cls).__new__(cls)
        return cls._instance

    def __init__(self):
        if not self._initialized:
            self._config = {}
            self._load_config()
            EnvironConfig._initialized = True

    def _load_config(self):
        root = Path(__file__).parent.parent.parent

        example_path = root / "env.example"
        if example_path.exists():
            self._config.update(dotenv_values(example_path))
            logger.debug("Loaded environment variables from {}", example_path)

        local_path = root / "env.local"
        if local_path.exists():
            self._config.update(dotenv_values(local_path))
            logger.info("Loaded and overrode environment variables from {}", local_path)

        self._config.update(os.environ)

    def get(self, key, default=None):
        value = self._config.get(key)
        return default if value is None else value

    def get_str(self, key: str, default: str = "") -> str:
        return (self.get(key) or "").strip() or default

    def get_int(self, key: str, default: int) -> int:
        raw = (self.get(key) or "").strip()
        if not raw:
            return default
        try:
            return int(raw)
        except ValueError:
            logger.warning("Invalid integer for {}='{}', defaulting to {}", key, raw, default)
            return default

    def get_float(self, key: str, default: float) -> float:
        raw = (self.get(key) or "").strip()
        if not raw:
            return default
        try:
            return float(raw)
        except ValueError:
            logger.warning("Invalid number for {}='{}', defaulting to {}", key, raw, default)
            return default

    def get_bool(self, key: str, default: bool = False) -> bool:
        raw = (self.get(key) or "").strip().lower()
        if not raw:
            return default
        return raw in {"true", "1", "yes", "on"}

    def get_redis_url(self, label: str = "default") -> str:
        """
        Get Redis connection URL for a specific label.

        "default" resolves REDIS_URL; other labels resolve REDIS_<LABEL>_URL and fall
        back to the default URL.
        """
        default_url = self.get_str("REDIS_URL", "redis://localhost:6379/0")
        if label == "default":
            return default_url
        return self.get_str(f"REDIS_{label.upper()}_URL", default_url)

    def get_mongo_url(self) -> str:
        return self.get_str("MONGO_URL", "mongodb://localhost:27017")


config = EnvironConfig()
