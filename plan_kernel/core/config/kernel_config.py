from __future__ import annotations

from dataclasses import dataclass, fields, replace
from pathlib import Path
from typing import Any

import yaml


@dataclass(frozen=True)
class KernelConfig:
    content_dir: str = "content"
    content_extension: str = ".mdx"
    # Speed-of-light schedules must finish within this many months.
    speed_of_light_months: int = 12


DEFAULT_CONFIG = KernelConfig()


class ConfigError(ValueError):
    pass


def load_config_file(path: str | Path) -> dict[str, Any]:
    """Load config overrides from a YAML file.

    Format:
      content_dir: content
      content_extension: .mdx
      speed_of_light_months: 12

    Returns a mapping of field name -> value; unknown keys are rejected.
    """
    p = Path(path)
    raw = yaml.safe_load(p.read_text(encoding="utf-8"))
    if raw is None:
        return {}
    if not isinstance(raw, dict):
        raise ConfigError("config file must be a mapping of setting -> value")

    known = {f.name: f for f in fields(KernelConfig)}
    out: dict[str, Any] = {}
    for k, v in raw.items():
        if k not in known:
            raise ConfigError(f"unknown setting '{k}' (choose one of: {', '.join(sorted(known))})")
        if k == "speed_of_light_months":
            if not isinstance(v, int) or isinstance(v, bool) or v < 0:
                raise ConfigError("speed_of_light_months must be a non-negative integer")
        elif not isinstance(v, str) or not v.strip():
            raise ConfigError(f"setting '{k}' must be a non-empty string")
        out[k] = v
    return out


def merged_config(overrides: dict[str, Any] | None = None) -> KernelConfig:
    """Return DEFAULT_CONFIG with optional overrides applied."""
    if not overrides:
        return DEFAULT_CONFIG
    return replace(DEFAULT_CONFIG, **overrides)


def load_and_merge(config_file: str | None) -> KernelConfig:
    if not config_file:
        return merged_config()
    return merged_config(load_config_file(config_file))
