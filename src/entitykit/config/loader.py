"""Configuration loading and management for entitykit.

Functions:
    load_config: Load configuration from ~/.entitykit/config.yaml
    create_default_config: Write the default configuration file
    ensure_config_dir: Ensure the configuration directory exists
    config_exists: Check whether a configuration file exists
"""

from pathlib import Path
from typing import Any

from dotenv import load_dotenv
from pydantic import ValidationError as PydanticValidationError
import yaml

from entitykit.config.models import EntitykitConfig, get_config_dir, get_default_config
from entitykit.core.errors import ConfigError


def load_environment() -> None:
    """Load .env files from the current directory and the config directory.

    Variables already present in the environment are not overridden.
    """
    load_dotenv()
    load_dotenv(get_config_dir() / ".env")


def ensure_config_dir() -> Path:
    """Create the configuration directory (and its logs/ subdirectory)."""
    config_dir = get_config_dir()
    config_dir.mkdir(parents=True, exist_ok=True)
    (config_dir / "logs").mkdir(exist_ok=True)
    return config_dir


def _format_validation_errors(error: PydanticValidationError) -> str:
    messages = []
    for item in error.errors():
        loc = ".".join(str(x) for x in item["loc"])
        messages.append(f"  - {loc}: {item['msg']}")
    return "\n".join(messages)


def create_default_config(
    config_dir: Path | None = None,
    *,
    overwrite: bool = False,
) -> Path:
    """Write config.yaml with default values.

    Args:
        config_dir: Directory to create the file in. Defaults to ~/.entitykit/
        overwrite: If True, overwrite an existing file.

    Returns:
        Path of the written configuration file.

    Raises:
        ConfigError: If the file exists and overwrite is False.
    """
    if config_dir is None:
        config_dir = ensure_config_dir()
    else:
        config_dir.mkdir(parents=True, exist_ok=True)

    config_path = config_dir / "config.yaml"
    if config_path.exists() and not overwrite:
        raise ConfigError(
            f"Configuration file already exists: {config_path}",
            config_file=str(config_path),
        )

    config_dict: dict[str, Any] = get_default_config().model_dump(mode="json")
    with config_path.open("w") as f:
        yaml.dump(
            config_dict,
            f,
            default_flow_style=False,
            sort_keys=False,
            allow_unicode=True,
        )

    return config_path


def load_config(config_path: Path | None = None, *, missing_ok: bool = False) -> EntitykitConfig:
    """Load and validate configuration from YAML.

    Args:
        config_path: Path to config file. Defaults to ~/.entitykit/config.yaml.
        missing_ok: Return the default configuration when the file is absent
            instead of raising.

    Returns:
        Validated EntitykitConfig instance.

    Raises:
        ConfigError: If the file doesn't exist, is malformed, or fails validation.
    """
    load_environment()

    if config_path is None:
        config_path = get_config_dir() / "config.yaml"

    if not config_path.exists():
        if missing_ok:
            return get_default_config()
        raise ConfigError(
            f"Configuration file not found: {config_path}. "
            "Run `entitykit config init` to create default configuration.",
            config_file=str(config_path),
        )

    try:
        with config_path.open() as f:
            config_dict = yaml.safe_load(f)
    except yaml.YAMLError as e:
        raise ConfigError(
            f"Failed to parse configuration file: {e}",
            config_file=str(config_path),
            details={"yaml_error": str(e)},
        ) from e

    if config_dict is None:
        config_dict = {}

    if not isinstance(config_dict, dict):
        raise ConfigError(
            "Configuration file must contain a mapping at the top level",
            config_file=str(config_path),
        )

    try:
        return EntitykitConfig.model_validate(config_dict)
    except PydanticValidationError as e:
        raise ConfigError(
            "Configuration validation failed:\n" + _format_validation_errors(e),
            config_file=str(config_path),
            details={"validation_errors": e.errors()},
        ) from e


def config_exists() -> bool:
    """Check if the configuration file exists."""
    return (get_config_dir() / "config.yaml").exists()
