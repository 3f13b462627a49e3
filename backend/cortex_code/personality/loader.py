"""Persona configuration loader."""

from pathlib import Path
from typing import Any

import yaml


_DEFAULT_PATH = Path(__file__).parent / "default.yaml"

_FALLBACK_PROMPT = "You are Cortex Code, an elite AI programming assistant."


def load_personality(path: Path | None = None) -> dict[str, Any]:
    """Load persona configuration from YAML file.

    Args:
        path: Optional path to persona YAML file.
              Defaults to default.yaml in this directory.

    Returns:
        Dictionary with persona configuration.

    Raises:
        FileNotFoundError: If the persona file does not exist.
        yaml.YAMLError: If the file contains invalid YAML.
    """
    config_path = path or _DEFAULT_PATH

    if not config_path.exists():
        raise FileNotFoundError(f"Personality file not found: {config_path}")

    with open(config_path, encoding="utf-8") as f:
        config: dict[str, Any] = yaml.safe_load(f) or {}

    return config


def get_system_prompt(personality: dict[str, Any] | None = None) -> str:
    """Extract the fixed persona prompt from persona config.

    Args:
        personality: Pre-loaded persona dict. Loads default if None.

    Returns:
        The persona prompt string.
    """
    if personality is None:
        personality = load_personality()

    return personality.get("system_prompt", _FALLBACK_PROMPT).strip()


def build_system_instruction(instructions: str = "", personality: dict[str, Any] | None = None) -> str:
    """Join the persona prompt with the caller's custom instructions."""
    return f"{get_system_prompt(personality)} {instructions or ''}"
