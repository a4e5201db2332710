"""Provides functions for loading and accessing configuration settings.

Supports loading from .env files, environment variables, and a dedicated
YAML configuration file (~/.ltrfantasy/config.yaml). The core never reads
configuration directly: ``load_settings()`` builds typed settings objects
that the composition root injects into each component.
"""

import logging
import os
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, Optional

import yaml
from dotenv import load_dotenv

logger = logging.getLogger(__name__)

# --- Configuration Constants ---
DEFAULT_CONFIG_DIR = Path.home() / ".ltrfantasy"
DEFAULT_CONFIG_FILE = DEFAULT_CONFIG_DIR / "config.yaml"
DEFAULT_CACHE_DIR = DEFAULT_CONFIG_DIR / "store"
ENV_FILE_NAME = ".env"
ENV_PREFIX = "LTRFANTASY_"

CORE_API_URL = "https://sports.core.api.espn.com/v2/sports/football/leagues/nfl"
SITE_API_URL = "https://site.api.espn.com/apis/site/v2/sports/football/nfl"

# --- Global Configuration Store ---
_config: Dict[str, Any] = {}
_test_config: Dict[str, Any] = {}
_loaded = False


def _flatten(data: Dict[str, Any], prefix: str = "") -> Dict[str, Any]:
    """Turns nested YAML mappings into dotted keys ({'a': {'b': 1}} -> {'a.b': 1})."""
    flat: Dict[str, Any] = {}
    for key, value in data.items():
        dotted = f"{prefix}{key}"
        if isinstance(value, dict):
            flat.update(_flatten(value, prefix=f"{dotted}."))
        else:
            flat[dotted] = value
    return flat


def load_configuration(config_file: Path = DEFAULT_CONFIG_FILE, env_file: Optional[Path] = None) -> None:
    """Loads configuration from environment, .env file, and YAML file.

    Priority order (highest to lowest):
    1. Environment Variables
    2. .env file
    3. YAML configuration file
    4. Default values defined on the settings dataclasses

    Args:
        config_file: Path to the YAML configuration file.
        env_file: Path to the .env file (searches upwards from cwd if None).
    """
    global _config, _loaded
    if _loaded:
        logger.debug("Configuration already loaded.")
        return

    _config = {}

    # 1. Load from YAML file (Lowest priority)
    if config_file.exists():
        try:
            with open(config_file, "r", encoding="utf-8") as f:
                yaml_config = yaml.safe_load(f)
            if isinstance(yaml_config, dict):
                _config.update(_flatten(yaml_config))
                logger.info(f"Loaded configuration from YAML: {config_file}")
            elif yaml_config is not None:
                logger.warning(f"YAML config file {config_file} did not contain a dictionary.")
        except (OSError, yaml.YAMLError) as e:
            logger.error(f"Failed to load or parse YAML config {config_file}: {e}")
    else:
        logger.debug(f"YAML config file not found: {config_file}")

    # 2. Load from .env file (Medium priority)
    dotenv_path = env_file or find_dotenv_path()
    if dotenv_path:
        # override=False: real environment variables take precedence
        if load_dotenv(dotenv_path=dotenv_path, override=False):
            logger.info(f"Loaded environment variables from: {dotenv_path}")
    else:
        logger.debug("Skipping .env file loading (no file found).")

    # 3. Environment Variables (Highest priority) are handled in get_config

    _loaded = True
    logger.info("Configuration loading process completed.")


def env_var_name(key: str) -> str:
    """Maps a dotted config key to its environment variable name."""
    return ENV_PREFIX + key.upper().replace(".", "_")


def _coerce(value: str) -> Any:
    if value.lower() == "true":
        return True
    if value.lower() == "false":
        return False
    try:
        if "." in value:
            return float(value)
        return int(value)
    except (ValueError, TypeError):
        return value


def get_config(key: str, default: Any = None) -> Any:
    """
    Get a configuration value by key.

    Priority:
    1. Test configuration (if in testing mode)
    2. Environment variable (LTRFANTASY_<KEY>)
    3. YAML config
    4. Default value

    Args:
        key: The dotted configuration key, e.g. 'rate_limit.max_requests'
        default: Default value if the key is not found

    Returns:
        The configuration value
    """
    if key in _test_config:
        return _test_config[key]

    env_key = env_var_name(key)
    if env_key in os.environ:
        return _coerce(os.environ[env_key])

    if key in _config:
        return _config[key]

    return default


def find_dotenv_path() -> Optional[Path]:
    """Searches for the .env file upwards from the current directory."""
    try:
        cwd = Path.cwd()
        for path in [cwd] + list(cwd.parents):
            env_path = path / ENV_FILE_NAME
            if env_path.is_file():
                return env_path
    except OSError as e:
        logger.warning(f"Error searching for .env file: {e}")
    return None


def set_config_for_testing(config_dict: Dict[str, Any]) -> None:
    """
    Set configuration values for testing purposes.
    These values will override any existing configuration.

    Args:
        config_dict: Dictionary of configuration values to set
    """
    _test_config.update(config_dict)
    logger.debug(f"Set testing configuration: {config_dict}")


def clear_test_config() -> None:
    """Clear all testing configuration values."""
    _test_config.clear()
    logger.debug("Cleared testing configuration")


def resolve_season(today: Optional[datetime] = None) -> int:
    """Season year: the current year from July onward, otherwise the previous one."""
    configured = get_config("api.season")
    if configured:
        try:
            return int(configured)
        except (TypeError, ValueError):
            logger.warning(f"Ignoring invalid api.season value: {configured!r}")

    today = today or datetime.now()
    if today.month >= 7:
        return today.year
    return today.year - 1


# --- Typed Settings ---

@dataclass(frozen=True)
class ApiSettings:
    core_url: str = CORE_API_URL
    site_url: str = SITE_API_URL
    season: int = field(default_factory=resolve_season)
    timeout_seconds: float = 10.0
    user_agent: str = "ltrfantasy/0.3"


@dataclass(frozen=True)
class ThrottleSettings:
    max_requests: int = 60
    window_seconds: float = 30.0
    spacing_seconds: float = 0.25          # Flat delay after every permitted request
    backoff_base_delay: float = 0.25       # Multiplied by the backoff factor when throttled
    backoff_factor: float = 1.5            # Starting factor, restored on window rollover
    backoff_growth: float = 1.5
    max_backoff_seconds: float = 10.0


@dataclass(frozen=True)
class CacheSettings:
    directory: Path = DEFAULT_CACHE_DIR
    roster_ttl: int = 86400
    statistics_ttl: int = 3600
    live_ttl: int = 300
    default_ttl: int = 3600
    lineup_ttl: int = 30 * 86400


@dataclass(frozen=True)
class FetchSettings:
    max_retries: int = 3
    retry_base_delay: float = 1.0
    single_flight: bool = False


@dataclass(frozen=True)
class BatchSettings:
    batch_size: int = 5
    batch_delay: float = 0.25
    roster_batch_size: int = 8
    roster_batch_delay: float = 1.0


@dataclass(frozen=True)
class LiveSettings:
    update_interval: float = 30.0


@dataclass(frozen=True)
class LoggingSettings:
    level: str = "INFO"
    format: str = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
    file: Optional[str] = None


@dataclass(frozen=True)
class Settings:
    api: ApiSettings
    throttle: ThrottleSettings
    cache: CacheSettings
    fetch: FetchSettings
    batch: BatchSettings
    live: LiveSettings
    logging: LoggingSettings


def load_settings() -> Settings:
    """Builds the typed settings tree from the layered configuration sources."""
    load_configuration()

    api_defaults = ApiSettings()
    api = ApiSettings(
        core_url=str(get_config("api.core_url", api_defaults.core_url)).rstrip("/"),
        site_url=str(get_config("api.site_url", api_defaults.site_url)).rstrip("/"),
        season=resolve_season(),
        timeout_seconds=float(get_config("api.timeout_seconds", api_defaults.timeout_seconds)),
        user_agent=str(get_config("api.user_agent", api_defaults.user_agent)),
    )

    t = ThrottleSettings()
    throttle = ThrottleSettings(
        max_requests=int(get_config("rate_limit.max_requests", t.max_requests)),
        window_seconds=float(get_config("rate_limit.window_seconds", t.window_seconds)),
        spacing_seconds=float(get_config("rate_limit.spacing_seconds", t.spacing_seconds)),
        backoff_base_delay=float(get_config("rate_limit.backoff_base_delay", t.backoff_base_delay)),
        backoff_factor=float(get_config("rate_limit.backoff_factor", t.backoff_factor)),
        backoff_growth=float(get_config("rate_limit.backoff_growth", t.backoff_growth)),
        max_backoff_seconds=float(get_config("rate_limit.max_backoff_seconds", t.max_backoff_seconds)),
    )

    c = CacheSettings()
    cache = CacheSettings(
        directory=Path(str(get_config("cache.dir", c.directory))).expanduser(),
        roster_ttl=int(get_config("cache.ttl.roster", c.roster_ttl)),
        statistics_ttl=int(get_config("cache.ttl.statistics", c.statistics_ttl)),
        live_ttl=int(get_config("cache.ttl.live", c.live_ttl)),
        default_ttl=int(get_config("cache.ttl.default", c.default_ttl)),
        lineup_ttl=int(get_config("cache.ttl.lineup", c.lineup_ttl)),
    )

    f = FetchSettings()
    fetch = FetchSettings(
        max_retries=int(get_config("fetch.max_retries", f.max_retries)),
        retry_base_delay=float(get_config("fetch.retry_base_delay", f.retry_base_delay)),
        single_flight=bool(get_config("fetch.single_flight", f.single_flight)),
    )

    b = BatchSettings()
    batch = BatchSettings(
        batch_size=int(get_config("batch.size", b.batch_size)),
        batch_delay=float(get_config("batch.delay", b.batch_delay)),
        roster_batch_size=int(get_config("batch.roster_size", b.roster_batch_size)),
        roster_batch_delay=float(get_config("batch.roster_delay", b.roster_batch_delay)),
    )

    live = LiveSettings(
        update_interval=float(get_config("live.update_interval", LiveSettings.update_interval)),
    )

    lg = LoggingSettings()
    log_settings = LoggingSettings(
        level=str(get_config("logging.level", lg.level)).upper(),
        format=str(get_config("logging.format", lg.format)),
        file=get_config("logging.file", lg.file),
    )

    return Settings(
        api=api,
        throttle=throttle,
        cache=cache,
        fetch=fetch,
        batch=batch,
        live=live,
        logging=log_settings,
    )
