"""Three-layer config loading and merging."""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional

import yaml

from .dispatcher import DEFAULT_MAX_PENDING, DEFAULT_MAX_WORKERS
from .models import DEFAULT_TIMEOUT_SEC, Macro, Webhook


class ConfigError(ValueError):
    """Raised when a config file cannot be interpreted."""


# ---------------------------------------------------------------------------
# Config dataclasses
# ---------------------------------------------------------------------------

@dataclass
class DispatchConfig:
    max_workers: int = DEFAULT_MAX_WORKERS
    max_pending: int = DEFAULT_MAX_PENDING
    default_timeout: float = DEFAULT_TIMEOUT_SEC


@dataclass
class LoggingConfig:
    level: str = "INFO"
    format: str = "%(asctime)s %(levelname)s %(name)s: %(message)s"


@dataclass
class Config:
    dispatch: DispatchConfig = field(default_factory=DispatchConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)
    webhooks: Optional[list[Webhook]] = None  # None → job has no webhook configuration
    project_root: str = ""


_NOTIFY_FLAGS = (
    "start_notification",
    "notify_success",
    "notify_aborted",
    "notify_not_built",
    "notify_unstable",
    "notify_failure",
    "notify_back_to_normal",
    "notify_repeated_failure",
)


# ---------------------------------------------------------------------------
# Deep merge
# ---------------------------------------------------------------------------

def deep_merge(base: dict, override: dict) -> dict:
    """Field-level deep merge. Lists are replaced, None values ignored."""
    result = dict(base)
    for key, value in override.items():
        if value is None:
            continue
        if (
            key in result
            and isinstance(result[key], dict)
            and isinstance(value, dict)
        ):
            result[key] = deep_merge(result[key], value)
        else:
            result[key] = value
    return result


# ---------------------------------------------------------------------------
# Dict → Config mapping
# ---------------------------------------------------------------------------

def build_webhook(data: dict, default_timeout: float = DEFAULT_TIMEOUT_SEC) -> Webhook:
    if not isinstance(data, dict) or not data.get("url"):
        raise ConfigError(f"Invalid webhook entry: {data!r} (url is required)")

    macros = []
    for m in data.get("macros") or []:
        if not isinstance(m, dict) or "template" not in m:
            raise ConfigError(f"Invalid macro in webhook '{data['url']}': {m!r}")
        macros.append(Macro(template=str(m["template"]), value=str(m.get("value", ""))))

    flags = {name: bool(data.get(name, False)) for name in _NOTIFY_FLAGS}
    return Webhook(
        url=str(data["url"]),
        name=str(data.get("name", "")),
        timeout=float(data.get("timeout", default_timeout)),
        macros=macros,
        **flags,
    )


def _dict_to_config(data: dict, project_root: str) -> Config:
    cfg = Config(project_root=project_root)

    if "dispatch" in data and isinstance(data["dispatch"], dict):
        d = data["dispatch"]
        cfg.dispatch = DispatchConfig(
            max_workers=int(d.get("max_workers", cfg.dispatch.max_workers)),
            max_pending=int(d.get("max_pending", cfg.dispatch.max_pending)),
            default_timeout=float(d.get("default_timeout", cfg.dispatch.default_timeout)),
        )

    if "logging" in data and isinstance(data["logging"], dict):
        lg = data["logging"]
        cfg.logging = LoggingConfig(
            level=str(lg.get("level", cfg.logging.level)).upper(),
            format=lg.get("format", cfg.logging.format),
        )

    if "webhooks" in data:
        raw = data["webhooks"]
        if not isinstance(raw, list):
            raise ConfigError(f"Invalid webhooks: expected list, got {type(raw).__name__}")
        cfg.webhooks = [build_webhook(w, cfg.dispatch.default_timeout) for w in raw]

    return cfg


def _read_yaml(path: Path, strict: bool) -> dict:
    if not path.exists():
        return {}
    parsed = yaml.safe_load(path.read_text())
    if parsed is None:
        return {}
    if not isinstance(parsed, dict):
        if strict:
            raise ConfigError(f"Invalid {path.name}: expected mapping, got {type(parsed).__name__}")
        return {}
    return parsed


# ---------------------------------------------------------------------------
# Load config (3-layer)
# ---------------------------------------------------------------------------

def load_config(project_root: str | Path) -> Config:
    """Load and merge config from up to 3 layers.

    Priority (highest first):
      1. Environment variables
      2. .buildhook/local.config.yaml
      3. .buildhook/config.yaml
    """
    project_root = Path(project_root)
    config_dir = project_root / ".buildhook"

    base_data = _read_yaml(config_dir / "config.yaml", strict=True)
    local_data = _read_yaml(config_dir / "local.config.yaml", strict=False)

    merged = deep_merge(base_data, local_data)
    cfg = _dict_to_config(merged, str(project_root))

    env_level = os.environ.get("BUILDHOOK_LOG_LEVEL")
    if env_level:
        cfg.logging.level = env_level.upper()

    env_workers = os.environ.get("BUILDHOOK_MAX_WORKERS")
    if env_workers:
        cfg.dispatch.max_workers = int(env_workers)

    env_pending = os.environ.get("BUILDHOOK_MAX_PENDING")
    if env_pending:
        cfg.dispatch.max_pending = int(env_pending)

    for name in ("max_workers", "max_pending"):
        if getattr(cfg.dispatch, name) < 1:
            raise ConfigError(f"Invalid dispatch.{name}: must be at least 1, got {getattr(cfg.dispatch, name)}")

    env_url = os.environ.get("BUILDHOOK_WEBHOOK_URL")
    if env_url:
        everything = {name: True for name in _NOTIFY_FLAGS}
        cfg.webhooks = (cfg.webhooks or []) + [
            build_webhook({"url": env_url, "name": "env", **everything}, cfg.dispatch.default_timeout)
        ]

    return cfg
