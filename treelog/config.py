"""Configuration management using TOML format.

Stored globally at ~/.treelog/config.toml, created with commented
defaults on first load.
"""

import os
from pathlib import Path
from typing import Any

import tomlkit
from tomlkit import document, comment, nl


# Default configuration values
DEFAULT_CONFIG = {
    "interval": 0.1,  # seconds between spinner frames
    "colour": True,
    "log_level": "WARNING",
}

LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")


def get_treelog_dir() -> Path:
    """Get the global ~/.treelog directory for config and logs.

    Returns:
        Path to ~/.treelog directory
    """
    treelog_dir = Path.home() / ".treelog"
    treelog_dir.mkdir(exist_ok=True)
    return treelog_dir


def get_config_path() -> Path:
    """Get the path to config.toml.

    Returns:
        Path to ~/.treelog/config.toml
    """
    return get_treelog_dir() / "config.toml"


def is_first_run() -> bool:
    """Check if this is the first run (no config file exists).

    Returns:
        True if config.toml doesn't exist
    """
    return not get_config_path().exists()


def create_default_config() -> None:
    """Create default config.toml with comments explaining each option."""
    config_path = get_config_path()

    doc = document()

    doc.add(comment("treelog configuration"))
    doc.add(comment("This file is created automatically on first run"))
    doc.add(nl())

    doc.add(comment("Seconds between spinner frames"))
    doc["interval"] = DEFAULT_CONFIG["interval"]
    doc.add(nl())

    doc.add(comment("Enable colored glyphs (NO_COLOR disables regardless)"))
    doc["colour"] = DEFAULT_CONFIG["colour"]
    doc.add(nl())

    doc.add(comment("Level for ~/.treelog/treelog.log: DEBUG | INFO | WARNING | ERROR"))
    doc["log_level"] = DEFAULT_CONFIG["log_level"]

    config_path.write_text(tomlkit.dumps(doc))


def _validate(config: dict[str, Any]) -> dict[str, Any]:
    """Coerce and check configuration values.

    Raises:
        ValueError: If a value is invalid
    """
    try:
        interval = float(config["interval"])
    except (TypeError, ValueError):
        raise ValueError(f"Invalid interval: {config['interval']!r} (expected seconds as a number)")
    if interval < 0:
        raise ValueError(f"Invalid interval: {interval} (must be >= 0)")
    config["interval"] = interval

    level = str(config["log_level"]).upper()
    if level not in LOG_LEVELS:
        raise ValueError(f"Invalid log_level: {config['log_level']!r}\n" f"Available levels: {', '.join(LOG_LEVELS)}")
    config["log_level"] = level

    config["colour"] = bool(config["colour"])
    return config


def load_config() -> dict[str, Any]:
    """Load configuration from ~/.treelog/config.toml.

    Creates default config if it doesn't exist.

    Returns:
        Configuration dictionary

    Raises:
        ValueError: If a configured value is invalid
    """
    config_path = get_config_path()

    if not config_path.exists():
        create_default_config()

    config = tomlkit.parse(config_path.read_text())

    # Plain values merged over defaults (for any missing keys)
    result = DEFAULT_CONFIG.copy()
    result.update(config.unwrap())

    # Environment variable overrides
    if "NO_COLOR" in os.environ:
        result["colour"] = False
    interval = os.getenv("TREELOG_INTERVAL")
    if interval:
        result["interval"] = interval

    return _validate(result)


def save_config(config: dict[str, Any]) -> None:
    """Save configuration to ~/.treelog/config.toml.

    Args:
        config: Configuration dictionary to save
    """
    config_path = get_config_path()

    # Existing comments are preserved
    doc = tomlkit.parse(config_path.read_text()) if config_path.exists() else tomlkit.document()
    doc.update(config)

    config_path.write_text(tomlkit.dumps(doc))
