"""Configuration management for the CLI."""

from __future__ import annotations

import os
import tomllib
from collections.abc import Mapping
from dataclasses import dataclass
from pathlib import Path

import structlog
import tomli_w
from dotenv import load_dotenv
from pydantic import BaseModel, ConfigDict, ValidationError

from .exceptions import ConfigError

DEFAULT_MODEL = "llama3"
DEFAULT_BASE_URL = "http://localhost:11434/v1"
DEFAULT_TIMEOUT_SECS = 300
MIN_TEMPERATURE = 0.0
MAX_TEMPERATURE = 2.0
API_KEY_ENV = "AI_CLI_API_KEY"
CONFIG_FILE_NAME = "config.toml"

logger = structlog.get_logger(__name__)


class FileConfig(BaseModel):
    """Shape of the on-disk TOML configuration."""

    model_config = ConfigDict(extra="ignore")

    model: str = DEFAULT_MODEL
    base_url: str = DEFAULT_BASE_URL
    api_key: str | None = None
    default_prompt: str | None = None
    temperature: float | None = None
    timeout_secs: float = DEFAULT_TIMEOUT_SECS


@dataclass(frozen=True)
class ConfigOverrides:
    """Values supplied on the command line; None means not given."""
    model: str | None = None
    base_url: str | None = None
    api_key: str | None = None
    temperature: float | None = None
    timeout_secs: float | None = None
    prompt: str | None = None


@dataclass(frozen=True)
class EffectiveConfig:
    """Merged configuration for one invocation."""
    model: str
    base_url: str
    api_key: str | None = None
    temperature: float | None = None
    first_chunk_timeout: float = float(DEFAULT_TIMEOUT_SECS)
    prompt: str | None = None


def default_config_path() -> Path:
    """Return ~/.config/ai-cli/config.toml."""
    try:
        home = Path.home()
    except RuntimeError as e:
        raise ConfigError(f"Could not find home directory: {e}") from e
    return home / ".config" / "ai-cli" / CONFIG_FILE_NAME


def validate_temperature(temperature: float, source: str = "cli") -> float:
    """Reject temperatures outside [0.0, 2.0]; both bounds are valid."""
    if not MIN_TEMPERATURE <= temperature <= MAX_TEMPERATURE:
        raise ConfigError(
            f"Temperature must be between {MIN_TEMPERATURE} and "
            f"{MAX_TEMPERATURE}, got: {temperature} (from {source})",
            source=source,
        )
    return temperature


def _validate_timeout(timeout: float, source: str) -> float:
    if timeout <= 0:
        raise ConfigError(
            f"Timeout must be a positive number of seconds, got: {timeout} "
            f"(from {source})",
            source=source,
        )
    return float(timeout)


def create_default_config(path: Path) -> bool:
    """Write the default config file unless one already exists.

    Returns:
        True if the file was created, False if it was already present.

    Raises:
        ConfigError: If the directory or file cannot be written.
    """
    defaults = FileConfig().model_dump(exclude_none=True)
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        # "x" refuses to clobber a file created since the existence check
        with open(path, "xb") as f:
            tomli_w.dump(defaults, f)
    except FileExistsError:
        return False
    except OSError as e:
        raise ConfigError(
            f"Failed to write default config file {path}: {e}", source=str(path)
        ) from e

    logger.info("Default configuration created", path=str(path))
    return True


def load_config_file(path: Path) -> FileConfig:
    """Load the TOML config, creating it with defaults on first run.

    Raises:
        ConfigError: If the file cannot be read, is not valid TOML, or has
            values of the wrong type.
    """
    if not path.exists():
        logger.info("Config file not found, creating default", path=str(path))
        create_default_config(path)
        return FileConfig()

    try:
        raw = path.read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as e:
        raise ConfigError(
            f"Failed to read config file {path}: {e}", source=str(path)
        ) from e

    try:
        data = tomllib.loads(raw)
    except tomllib.TOMLDecodeError as e:
        raise ConfigError(
            f"Failed to parse config file {path} as TOML: {e}", source=str(path)
        ) from e

    try:
        config = FileConfig.model_validate(data)
    except ValidationError as e:
        raise ConfigError(
            f"Invalid values in config file {path}: {e}", source=str(path)
        ) from e

    logger.debug("Configuration loaded", path=str(path))
    return config


def resolve_config(
    overrides: ConfigOverrides,
    file_config: FileConfig,
    *,
    file_source: str = "config file",
    environ: Mapping[str, str] | None = None,
) -> EffectiveConfig:
    """
    Merge CLI overrides over file values over built-in defaults.

    Args:
        overrides: Values given on the command line
        file_config: Values loaded from (or defaulted for) the config file
        file_source: Label used in error messages for file-supplied values
        environ: Environment consulted for the API key fallback

    Returns:
        The immutable effective configuration

    Raises:
        ConfigError: If the effective temperature or timeout is out of range
    """
    environ = os.environ if environ is None else environ

    if overrides.temperature is not None:
        temperature = validate_temperature(overrides.temperature, "cli")
    elif file_config.temperature is not None:
        temperature = validate_temperature(file_config.temperature, file_source)
    else:
        # Leave unset so the server applies its own default
        temperature = None

    if overrides.timeout_secs is not None:
        timeout = _validate_timeout(overrides.timeout_secs, "cli")
    else:
        timeout = _validate_timeout(file_config.timeout_secs, file_source)

    api_key = overrides.api_key or file_config.api_key or environ.get(API_KEY_ENV)

    config = EffectiveConfig(
        model=overrides.model or file_config.model,
        base_url=(overrides.base_url or file_config.base_url).rstrip("/"),
        api_key=api_key or None,
        temperature=temperature,
        first_chunk_timeout=timeout,
        prompt=(
            overrides.prompt
            if overrides.prompt is not None
            else file_config.default_prompt
        ),
    )

    logger.info(
        "Final configuration",
        model=config.model,
        base_url=config.base_url,
        temperature=config.temperature,
        timeout=config.first_chunk_timeout,
        api_key_configured=config.api_key is not None,
    )
    return config


def load_effective_config(
    overrides: ConfigOverrides, path: Path | None = None
) -> EffectiveConfig:
    """Load .env and the config file, then resolve against CLI overrides."""
    load_dotenv()
    path = path or default_config_path()
    logger.debug("Config path", path=str(path))
    file_config = load_config_file(path)
    return resolve_config(overrides, file_config, file_source=str(path))
