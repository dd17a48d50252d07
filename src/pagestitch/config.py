"""Configuration management for pagestitch.

Handles loading pagestitch.yaml files with directory traversal,
environment variable overrides, and default values.
"""

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import yaml

from .errors import ConfigError

CONFIG_FILENAME = "pagestitch.yaml"
ENV_OUTPUT_DIR = "PAGESTITCH_OUTPUT_DIR"


@dataclass
class OutputConfig:
    """Where and how output is written."""

    directory: str = "www"
    preview_directory: str = "preview"  # relative to directory
    cleanup_whitespace: bool = True


@dataclass
class WatchConfig:
    """Watch-mode timing, in seconds."""

    interval: float = 0.5  # polling period
    debounce: float = 0.5  # quiet time before a rebuild


@dataclass
class PagestitchConfig:
    """Complete pagestitch configuration."""

    output: OutputConfig = field(default_factory=OutputConfig)
    watch: WatchConfig = field(default_factory=WatchConfig)
    decrypt_template: str = "decrypt.html"
    strict_data: bool = False  # undefined template variables are errors
    config_path: Path | None = None  # Path where config was loaded from

    def validate(self) -> None:
        """Validate configuration.

        Raises:
            ConfigError: If configuration is invalid.
        """
        if not self.output.directory:
            raise ConfigError("output.directory cannot be empty")

        preview = Path(self.output.preview_directory)
        if not self.output.preview_directory or preview.is_absolute() or ".." in preview.parts:
            raise ConfigError(
                "output.preview_directory must be a relative path inside the output directory"
            )
        if len(preview.parts) != 1:
            raise ConfigError("output.preview_directory must be a single directory name")

        if self.watch.interval <= 0:
            raise ConfigError("watch.interval must be positive")
        if self.watch.debounce < 0:
            raise ConfigError("watch.debounce must be non-negative")

        if not self.decrypt_template:
            raise ConfigError("decrypt_template cannot be empty")


def find_config_file(start_path: Path | None = None) -> Path | None:
    """Find pagestitch.yaml by traversing up from start_path.

    Args:
        start_path: Directory to start searching from. Defaults to cwd.

    Returns:
        Path to config file if found, None otherwise.
    """
    if start_path is None:
        start_path = Path.cwd()
    else:
        start_path = Path(start_path).resolve()

    # If start_path is a file, use its parent directory
    if start_path.is_file():
        start_path = start_path.parent

    current = start_path
    while True:
        config_path = current / CONFIG_FILENAME
        if config_path.is_file():
            return config_path

        parent = current.parent
        if parent == current:
            # Reached root, no config found
            return None
        current = parent


def load_config(
    config_path: Path | None = None,
    start_path: Path | None = None,
    output_override: str | None = None,
) -> PagestitchConfig:
    """Load configuration from file, environment, and overrides.

    Priority (highest to lowest):
    1. Function arguments (output_override)
    2. Environment variables (PAGESTITCH_OUTPUT_DIR)
    3. Config file (pagestitch.yaml)
    4. Defaults

    Args:
        config_path: Explicit path to config file. If None, searches.
        start_path: Directory to start config file search from.
        output_override: Override output directory from CLI argument.

    Returns:
        Loaded and validated configuration.
    """
    config = PagestitchConfig()

    # Find or use explicit config file
    if config_path is not None:
        config_path = Path(config_path)
        if not config_path.is_file():
            raise ConfigError(f"Config file not found: {config_path}")
    else:
        config_path = find_config_file(start_path)

    if config_path is not None:
        config = _load_config_file(config_path)

    env_output = os.environ.get(ENV_OUTPUT_DIR)
    if env_output:
        config.output.directory = env_output

    if output_override is not None:
        config.output.directory = output_override

    config.validate()
    return config


def _load_config_file(config_path: Path) -> PagestitchConfig:
    """Load configuration from a YAML file.

    Raises:
        ConfigError: If file cannot be read or parsed.
    """
    try:
        with open(config_path, encoding="utf-8") as f:
            data = yaml.safe_load(f) or {}
    except yaml.YAMLError as e:
        raise ConfigError(f"Invalid YAML in {config_path}: {e}") from e
    except OSError as e:
        raise ConfigError(f"Cannot read config file {config_path}: {e}") from e

    if not isinstance(data, dict):
        raise ConfigError(f"Config file {config_path} must contain a mapping")

    config = PagestitchConfig(config_path=config_path)

    if "output" in data and isinstance(data["output"], dict):
        output_data = data["output"]
        config.output = OutputConfig(
            directory=str(output_data.get("directory", config.output.directory)),
            preview_directory=str(
                output_data.get("preview_directory", config.output.preview_directory)
            ),
            cleanup_whitespace=bool(
                output_data.get("cleanup_whitespace", config.output.cleanup_whitespace)
            ),
        )

    if "watch" in data and isinstance(data["watch"], dict):
        watch_data = data["watch"]
        try:
            config.watch = WatchConfig(
                interval=float(watch_data.get("interval", config.watch.interval)),
                debounce=float(watch_data.get("debounce", config.watch.debounce)),
            )
        except (TypeError, ValueError) as e:
            raise ConfigError(f"Invalid watch settings in {config_path}: {e}") from e

    if "decrypt_template" in data:
        config.decrypt_template = str(data["decrypt_template"])

    if "strict_data" in data:
        config.strict_data = bool(data["strict_data"])

    return config


def create_default_config(path: Path | None = None) -> Path:
    """Create a default pagestitch.yaml config file.

    Args:
        path: Directory to create config in. Defaults to cwd.

    Returns:
        Path to created config file.

    Raises:
        ConfigError: If file already exists or cannot be written.
    """
    if path is None:
        path = Path.cwd()
    else:
        path = Path(path)

    config_path = path / CONFIG_FILENAME

    if config_path.exists():
        raise ConfigError(f"Config file already exists: {config_path}")

    config_content = """# pagestitch configuration

output:
  directory: "www"            # or set PAGESTITCH_OUTPUT_DIR
  preview_directory: "preview"
  cleanup_whitespace: true    # drop blank lines from rendered pages

# Decrypt form shown on encrypted pages (only its <body> is used)
decrypt_template: "decrypt.html"

# Fail on template variables that are not defined
strict_data: false

# Watch mode timing, in seconds
watch:
  interval: 0.5
  debounce: 0.5
"""

    try:
        config_path.write_text(config_content, encoding="utf-8")
    except OSError as e:
        raise ConfigError(f"Cannot write config file: {e}") from e

    return config_path


def config_to_dict(config: PagestitchConfig) -> dict[str, Any]:
    """Convert config to dictionary for display."""
    return {
        "output": {
            "directory": config.output.directory,
            "preview_directory": config.output.preview_directory,
            "cleanup_whitespace": config.output.cleanup_whitespace,
        },
        "watch": {
            "interval": config.watch.interval,
            "debounce": config.watch.debounce,
        },
        "decrypt_template": config.decrypt_template,
        "strict_data": config.strict_data,
        "config_path": str(config.config_path) if config.config_path else None,
    }
