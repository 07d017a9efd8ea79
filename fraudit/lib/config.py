"""Configuration management for the notification gateway.

Configuration is assembled once at startup and cached in memory:
1. Built-in defaults
2. ``config/notifications.yaml`` when present
3. Environment variables (``.env`` is loaded first)
"""

import asyncio
import copy
import logging
import os
from typing import Any, Dict, Optional

import aiofiles
import yaml
from dotenv import load_dotenv

logger = logging.getLogger(__name__)

DEFAULT_CONFIG: Dict[str, Any] = {
    "log_level": "INFO",
    "notifications": {
        "poll_interval": 30,
        "poll_limit": 5,
        "initial_limit": 10,
        "seen_set_capacity": 100,
        "toast_max_visible": 3,
        "toast_duration": 5,
        "alert_cache_ttl": 300,
    },
    "risk_api": {
        "base_url": "http://localhost:5000/api",
        "timeout": 30,
    },
    "redis": {
        "host": "localhost",
        "port": 6379,
        "password": None,
        "db": 0,
        "ssl": False,
    },
    "ingress": {
        "allowed_origins": ["http://localhost:3000"],
        "excluded_paths": ["/healthz", "/ws", "/docs", "/openapi.json"],
    },
}

# environment variable -> dotted config path
ENV_OVERRIDES = {
    "LOG_LEVEL": "log_level",
    "RISK_API_URL": "risk_api.base_url",
    "RISK_API_TIMEOUT": "risk_api.timeout",
    "REDIS_HOST": "redis.host",
    "REDIS_PORT": "redis.port",
    "REDIS_PASSWORD": "redis.password",
    "REDIS_DB": "redis.db",
    "REDIS_SSL": "redis.ssl",
    "NOTIFICATION_POLL_INTERVAL": "notifications.poll_interval",
    "NOTIFICATION_POLL_LIMIT": "notifications.poll_limit",
    "NOTIFICATION_INITIAL_LIMIT": "notifications.initial_limit",
    "NOTIFICATION_SEEN_SET_CAPACITY": "notifications.seen_set_capacity",
    "TOAST_MAX_VISIBLE": "notifications.toast_max_visible",
    "TOAST_DURATION": "notifications.toast_duration",
    "ALERT_CACHE_TTL": "notifications.alert_cache_ttl",
    "ALLOWED_ORIGINS": "ingress.allowed_origins",
}


def _deep_merge(base: Dict[str, Any], override: Dict[str, Any]) -> Dict[str, Any]:
    for key, value in override.items():
        if isinstance(value, dict) and isinstance(base.get(key), dict):
            _deep_merge(base[key], value)
        else:
            base[key] = value
    return base


def _set_path(config: Dict[str, Any], path: str, value: Any):
    parts = path.split(".")
    target = config
    for part in parts[:-1]:
        target = target.setdefault(part, {})
    current = target.get(parts[-1])
    if isinstance(current, bool):
        value = value.lower() in ("1", "true", "yes", "on")
    elif isinstance(current, int):
        value = int(value)
    elif isinstance(current, float):
        value = float(value)
    elif isinstance(current, list):
        value = [item.strip() for item in value.split(",") if item.strip()]
    target[parts[-1]] = value


class ConfigSingleton:
    """Configuration singleton shared by the whole application."""

    _instance = None
    _config: Dict[str, Any] = {}
    _lock = asyncio.Lock()
    _initialized = False

    def __new__(cls):
        if cls._instance is None:
            cls._instance = super(ConfigSingleton, cls).__new__(cls)
        return cls._instance

    @classmethod
    async def initialize(cls, config_file: str = "config/notifications.yaml") -> Dict[str, Any]:
        """Initialize configuration.

        Args:
            config_file: Optional YAML file merged over the defaults

        Returns:
            Complete configuration dictionary
        """
        if cls._initialized:
            return cls._config

        async with cls._lock:
            if cls._initialized:
                return cls._config

            logger.info("Initializing configuration...")
            load_dotenv()

            config = copy.deepcopy(DEFAULT_CONFIG)
            _deep_merge(config, await cls._load_file_config(config_file))
            cls._apply_env_overrides(config)

            cls._config = config
            cls._initialized = True
            logger.info(f"Configuration initialized with {len(cls._config)} sections")

        return cls._config

    @classmethod
    async def _load_file_config(cls, config_file: str) -> Dict[str, Any]:
        if not os.path.exists(config_file):
            return {}
        try:
            async with aiofiles.open(config_file, "r") as f:
                content = await f.read()
            data = yaml.safe_load(content) or {}
        except Exception as e:
            logger.warning(f"Failed to load {config_file}: {e}")
            return {}
        if not isinstance(data, dict):
            logger.warning(f"Ignoring {config_file}: expected a mapping")
            return {}
        return data

    @classmethod
    def _apply_env_overrides(cls, config: Dict[str, Any]):
        for env_name, path in ENV_OVERRIDES.items():
            value = os.getenv(env_name)
            if value is None or value == "":
                continue
            try:
                _set_path(config, path, value)
            except ValueError as e:
                logger.warning(f"Ignoring invalid {env_name}={value!r}: {e}")

    @classmethod
    async def reload(cls, config_file: str = "config/notifications.yaml") -> Dict[str, Any]:
        async with cls._lock:
            cls._initialized = False
        return await cls.initialize(config_file)

    @classmethod
    def reset(cls):
        cls._config = {}
        cls._initialized = False

    @classmethod
    def get_config(cls, config_name: Optional[str] = None) -> Any:
        """Get configuration value.

        Args:
            config_name: Optional key, dotted paths such as
                ``notifications.poll_interval`` are supported

        Returns:
            Config value or entire config if no key specified
        """
        if not cls._initialized:
            raise RuntimeError(
                "Config not initialized. Call 'await ConfigSingleton.initialize()' first."
            )

        if config_name:
            if "." in config_name:
                value = cls._config
                for part in config_name.split("."):
                    if isinstance(value, dict):
                        value = value.get(part)
                    else:
                        return None
                return value
            return cls._config.get(config_name)

        return cls._config


config_singleton = ConfigSingleton()
get_config = config_singleton.get_config
