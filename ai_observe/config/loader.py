"""
Configuration management and loading.

Handles application settings from a YAML file and environment variables.
"""

import os
from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import Dict, List, Optional, Tuple

import yaml

from ai_observe.errors import ConfigError

DB_PATH_ENV_VAR = "AI_OBSERVE_DB"

DEFAULT_MODELS = ("gpt-4o", "gpt-4o-mini", "gpt-3.5-turbo")

VALID_LOG_LEVELS = {"TRACE", "DEBUG", "INFO", "SUCCESS", "WARNING", "ERROR", "CRITICAL"}


@dataclass(frozen=True)
class DashboardConfig:
    """Polling and listing settings for the dashboard."""
    poll_interval: float = 3.0
    recent_limit: int = 50

    def __post_init__(self):
        """Validate dashboard values are positive."""
        if self.poll_interval <= 0:
            raise ConfigError("poll_interval must be > 0")
        if self.recent_limit <= 0:
            raise ConfigError("recent_limit must be > 0")


@dataclass(frozen=True)
class BreakdownConfig:
    """Token breakdown persistence and tokenizer settings."""
    persist: bool = True
    use_tokenizer: bool = True


@dataclass(frozen=True)
class ObserveConfig:
    """Complete application configuration."""
    db_path: str = "ai_observe.db"
    dashboard: DashboardConfig = field(default_factory=DashboardConfig)
    breakdown: BreakdownConfig = field(default_factory=BreakdownConfig)
    models: Tuple[str, ...] = DEFAULT_MODELS
    log_level: str = "INFO"

    def __post_init__(self):
        """Validate top-level values."""
        if not self.db_path:
            raise ConfigError("database path cannot be empty")
        if not self.models:
            raise ConfigError("at least one model must be configured")
        if self.log_level.upper() not in VALID_LOG_LEVELS:
            raise ConfigError(f"log level must be one of: {sorted(VALID_LOG_LEVELS)}")


def load_config(path: Optional[str] = None) -> ObserveConfig:
    """Load and validate configuration from a YAML file.

    Every section is optional; omitted values fall back to defaults.
    The AI_OBSERVE_DB environment variable overrides the database path.

    Args:
        path: Path to YAML configuration file, or None for defaults

    Returns:
        Validated ObserveConfig object

    Raises:
        FileNotFoundError: If config file doesn't exist
        yaml.YAMLError: If YAML is invalid
        ConfigError: If configuration is invalid
    """
    config = ObserveConfig()
    if path is not None:
        config = _load_file(path)

    env_db_path = os.environ.get(DB_PATH_ENV_VAR)
    if env_db_path:
        config = replace(config, db_path=env_db_path)
    return config


def _load_file(path: str) -> ObserveConfig:
    config_path = Path(path)
    if not config_path.exists():
        raise FileNotFoundError(f"Config file not found: {path}")

    with open(config_path, 'r', encoding='utf-8') as f:
        try:
            raw_config = yaml.safe_load(f)
        except yaml.YAMLError as e:
            raise yaml.YAMLError(f"Invalid YAML in config file {path}: {e}")

    if raw_config is None:
        return ObserveConfig()
    if not isinstance(raw_config, dict):
        raise ConfigError("Configuration root must be a dictionary")

    allowed_top_keys = {'database', 'dashboard', 'models', 'breakdown', 'logging'}
    unknown_keys = set(raw_config.keys()) - allowed_top_keys
    if unknown_keys:
        raise ConfigError(f"Unknown configuration keys: {unknown_keys}")

    kwargs = {}

    database = _section(raw_config, 'database', {'path'})
    if 'path' in database:
        if not isinstance(database['path'], str):
            raise ConfigError("'database.path' must be a string")
        kwargs['db_path'] = database['path']

    dashboard = _section(raw_config, 'dashboard', {'poll_interval', 'recent_limit'})
    kwargs['dashboard'] = _parse_dashboard(dashboard)

    breakdown = _section(raw_config, 'breakdown', {'persist', 'use_tokenizer'})
    kwargs['breakdown'] = _parse_breakdown(breakdown)

    if 'models' in raw_config:
        kwargs['models'] = _parse_models(raw_config['models'])

    logging_data = _section(raw_config, 'logging', {'level'})
    if 'level' in logging_data:
        if not isinstance(logging_data['level'], str):
            raise ConfigError("'logging.level' must be a string")
        kwargs['log_level'] = logging_data['level'].upper()

    return ObserveConfig(**kwargs)


def _section(raw_config: Dict, name: str, allowed_keys: set) -> Dict:
    """Return a validated sub-dictionary, or {} when the section is absent."""
    data = raw_config.get(name)
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ConfigError(f"'{name}' must be a dictionary")
    unknown_keys = set(data.keys()) - allowed_keys
    if unknown_keys:
        raise ConfigError(f"Unknown keys in {name}: {unknown_keys}")
    return data


def _parse_dashboard(data: Dict) -> DashboardConfig:
    defaults = DashboardConfig()

    poll_interval = data.get('poll_interval', defaults.poll_interval)
    if isinstance(poll_interval, bool) or not isinstance(poll_interval, (int, float)):
        raise ConfigError("'dashboard.poll_interval' must be a number")

    recent_limit = data.get('recent_limit', defaults.recent_limit)
    if isinstance(recent_limit, bool) or not isinstance(recent_limit, int):
        raise ConfigError("'dashboard.recent_limit' must be an integer")

    return DashboardConfig(
        poll_interval=float(poll_interval),
        recent_limit=recent_limit
    )


def _parse_breakdown(data: Dict) -> BreakdownConfig:
    for key in ('persist', 'use_tokenizer'):
        if key in data and not isinstance(data[key], bool):
            raise ConfigError(f"'breakdown.{key}' must be true or false")

    defaults = BreakdownConfig()
    return BreakdownConfig(
        persist=data.get('persist', defaults.persist),
        use_tokenizer=data.get('use_tokenizer', defaults.use_tokenizer)
    )


def _parse_models(models: List) -> Tuple[str, ...]:
    if not isinstance(models, list):
        raise ConfigError("'models' must be a list")
    for model in models:
        if not isinstance(model, str) or not model.strip():
            raise ConfigError("'models' entries must be non-empty strings")
    return tuple(models)


# Global configuration instance
_active_config: Optional[ObserveConfig] = None


def get_config() -> ObserveConfig:
    """Get the process-wide configuration, loading defaults on first use."""
    global _active_config
    if _active_config is None:
        _active_config = load_config()
    return _active_config


def set_config(config: Optional[ObserveConfig]) -> None:
    """Replace the process-wide configuration (None resets to lazy defaults)."""
    global _active_config
    _active_config = config
