"""YAML config loader — reads pageaudit.yml into ServiceConfig."""

from __future__ import annotations

from pathlib import Path

import yaml

from pageaudit.schemas.config import ServiceConfig


def load_config(path: str | Path | None = None) -> ServiceConfig:
    """Load and validate a service config file.

    With no path, returns the defaults. Raises ``FileNotFoundError`` if the
    path doesn't exist and ``pydantic.ValidationError`` if the YAML content
    is invalid.
    """
    if path is None or str(path) == "":
        return ServiceConfig()

    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"Config file not found: {path}")

    raw = yaml.safe_load(path.read_text())
    # An empty file (or one with only comments) loads as None.
    if raw is None:
        return ServiceConfig()
    if not isinstance(raw, dict):
        raise ValueError(f"Config file must be a YAML mapping, got {type(raw).__name__}")

    # Allow a bare string for the lighthouse command, e.g. "npx lighthouse".
    command = raw.get("lighthouse_command")
    if isinstance(command, str):
        raw["lighthouse_command"] = command.split()
    if raw.get("chromium_args") is None and "chromium_args" in raw:
        raw["chromium_args"] = []

    return ServiceConfig(**raw)
