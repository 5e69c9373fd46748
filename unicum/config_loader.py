#!/usr/bin/env python3
"""
Config Loader Module

Builds the monitor configuration from two sources:
- CREDENTIALS and the API endpoint come from the environment (a `.env` file in
  the working directory is loaded first through python-dotenv)
- SETTINGS (poll interval, thresholds, logging) may also come from a JSON file,
  by default config/config.json; environment variables win over the file

Resulting structure:

    {
        "unicum": {
            "base_url", "login", "password", "login_retry_ms",
            "token_ttl_seconds", "cache_dir"
        },
        "poller": {"interval_minutes", "vends_threshold"},
        "logging": {"log_file", "log_level", "console_output"}
    }

Missing credentials are a startup error (ConfigurationError).
"""

import os
import json
import logging
from pathlib import Path
from typing import Dict, Any, Optional

from dotenv import load_dotenv

from unicum.errors import ConfigurationError

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_PATH = "config/config.json"

# 38 minutes; the server drops idle sessions shortly after
DEFAULT_TOKEN_TTL_SECONDS = 38 * 60
DEFAULT_POLL_INTERVAL_MINUTES = 30
DEFAULT_VENDS_THRESHOLD = 3
DEFAULT_CACHE_DIR = "cache"

REQUIRED_ENV = {
    "BASE_HOST": "base_url",
    "LOGIN_USERNAME": "login",
    "LOGIN_PASSWORD": "password",
    "LOGIN_RETRYMS": "login_retry_ms",
}

# Global reference to the last loader used
_config_loader_instance: Optional['ConfigLoader'] = None


def resolve_cache_dir(cache_root: Optional[str], relative_to_cwd: bool) -> Path:
    """
    Resolve the cache directory.

    CACHE_ROOT_DIR is taken without leading slashes and anchored either at the
    working directory (CACHE_ROOT_CWD=true) or at the filesystem root.
    An unset CACHE_ROOT_DIR means ./cache.
    """
    if not cache_root:
        return Path(DEFAULT_CACHE_DIR).resolve()

    stripped = cache_root.lstrip("/")
    if relative_to_cwd:
        return Path(stripped).resolve()
    return Path("/" + stripped).resolve()


class ConfigLoader:
    """
    Configuration loader for the fleet monitor.

    Usage:
        loader = ConfigLoader("config/config.json")
        config = loader.load_config()

    The JSON file is optional. Environment variables (and .env) always take
    precedence over it.
    """

    def __init__(
        self,
        local_config_path: str = DEFAULT_CONFIG_PATH,
        environ: Optional[Dict[str, str]] = None,
        use_dotenv: bool = True
    ):
        """
        Initialize config loader.

        Args:
            local_config_path: Path to the optional JSON settings file
            environ: Mapping to read variables from (defaults to os.environ)
            use_dotenv: Load a .env file into os.environ before reading
        """
        self.local_config_path = local_config_path
        self._environ = environ
        self._use_dotenv = use_dotenv
        self._config = None

    @property
    def environ(self) -> Dict[str, str]:
        return os.environ if self._environ is None else self._environ

    def load_config(self) -> Dict[str, Any]:
        """
        Load configuration.

        Returns:
            dict: Full configuration dictionary

        Raises:
            ConfigurationError: If a required setting is missing or malformed
        """
        if self._config is not None:
            return self._config

        if self._use_dotenv and self._environ is None:
            load_dotenv()

        file_config = self._load_local_config()
        env = self.environ

        unicum_section = dict(file_config.get("unicum", {}))
        poller_section = dict(file_config.get("poller", {}))
        logging_section = dict(file_config.get("logging", {}))

        for env_name, key in REQUIRED_ENV.items():
            value = env.get(env_name) or unicum_section.get(key)
            if value in (None, ""):
                raise ConfigurationError(env_name)
            unicum_section[key] = value

        unicum_section["login_retry_ms"] = self._as_int("LOGIN_RETRYMS", unicum_section["login_retry_ms"])
        unicum_section["token_ttl_seconds"] = self._as_int(
            "TOKEN_TTL_SECONDS",
            env.get("TOKEN_TTL_SECONDS") or unicum_section.get("token_ttl_seconds", DEFAULT_TOKEN_TTL_SECONDS)
        )

        if env.get("CACHE_ROOT_DIR") or "cache_dir" not in unicum_section:
            unicum_section["cache_dir"] = str(resolve_cache_dir(
                env.get("CACHE_ROOT_DIR"),
                env.get("CACHE_ROOT_CWD", "").lower() == "true"
            ))

        poller_section["interval_minutes"] = self._as_int(
            "POLL_INTERVAL_MINUTES",
            env.get("POLL_INTERVAL_MINUTES") or poller_section.get("interval_minutes", DEFAULT_POLL_INTERVAL_MINUTES)
        )
        poller_section["vends_threshold"] = self._as_int(
            "VENDS_THRESHOLD",
            env.get("VENDS_THRESHOLD") or poller_section.get("vends_threshold", DEFAULT_VENDS_THRESHOLD)
        )

        logging_section.setdefault("log_file", "logs/unicum_monitor.log")
        logging_section.setdefault("log_level", "INFO")
        logging_section.setdefault("console_output", True)
        if env.get("LOG_FILE"):
            logging_section["log_file"] = env["LOG_FILE"]
        if env.get("LOG_LEVEL"):
            logging_section["log_level"] = env["LOG_LEVEL"].upper()

        self._config = {
            "unicum": unicum_section,
            "poller": poller_section,
            "logging": logging_section,
        }

        logger.info(f"Configuration loaded (base URL: {unicum_section['base_url']})")
        logger.info(f"  Cache directory: {unicum_section['cache_dir']}")
        logger.info(f"  Poll interval: {poller_section['interval_minutes']} min")

        global _config_loader_instance
        _config_loader_instance = self

        return self._config

    def _load_local_config(self) -> Dict[str, Any]:
        """Read the optional JSON settings file; an absent file yields {}."""
        if not self.local_config_path or not os.path.exists(self.local_config_path):
            logger.debug(f"No local config at {self.local_config_path} - using environment only")
            return {}

        with open(self.local_config_path, "r") as f:
            try:
                config = json.load(f)
            except json.JSONDecodeError as e:
                raise ConfigurationError(
                    self.local_config_path,
                    f"Config file {self.local_config_path} is not valid JSON: {e}"
                ) from e

        logger.info(f"Loaded local config from: {self.local_config_path}")
        return config

    @staticmethod
    def _as_int(setting: str, value: Any) -> int:
        try:
            return int(value)
        except (TypeError, ValueError) as e:
            raise ConfigurationError(setting, f"Setting {setting} must be an integer, got {value!r}") from e


def get_config_loader() -> Optional[ConfigLoader]:
    """
    Get the global ConfigLoader instance.

    Returns:
        ConfigLoader: The loader instance, or None if not initialized
    """
    return _config_loader_instance


def load_config(config_path: str = DEFAULT_CONFIG_PATH) -> Dict[str, Any]:
    """Convenience wrapper: ConfigLoader(config_path).load_config()."""
    loader = ConfigLoader(config_path)
    return loader.load_config()
