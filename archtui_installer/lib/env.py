from __future__ import annotations

import os
from dataclasses import dataclass, fields, replace
from typing import Mapping, Optional

from ..errors import ConfigError

ENV_PREFIX = "ARCHTUI_"


@dataclass(frozen=True)
class InstallerConfig:
    target_root: str = "/mnt"
    log_path: str = "/var/log/arch-tui-installer.log"
    outcome_path: str = "/var/log/arch-tui-installer.outcome.json"
    zoneinfo_dir: str = "/usr/share/zoneinfo"
    esp_size_mib: int = 550
    device_wait_attempts: int = 10
    device_wait_delay: float = 1.0
    dry_run: bool = False


def _coerce(raw: str, current: object) -> object:
    if isinstance(current, bool):
        return raw.strip().lower() in {"1", "true", "yes", "on"}
    if isinstance(current, int):
        return int(raw)
    if isinstance(current, float):
        return float(raw)
    return raw


def load_config(environ: Optional[Mapping[str, str]] = None) -> InstallerConfig:
    """Defaults overridden by ARCHTUI_<FIELD> environment variables.

    e.g. ARCHTUI_TARGET_ROOT=/target ARCHTUI_DRY_RUN=1
    """

    environ = os.environ if environ is None else environ
    cfg = InstallerConfig()
    overrides = {}
    for f in fields(cfg):
        raw = environ.get(ENV_PREFIX + f.name.upper())
        if raw is None or raw == "":
            continue
        try:
            overrides[f.name] = _coerce(raw, getattr(cfg, f.name))
        except ValueError as e:
            raise ConfigError(f"Invalid value for {ENV_PREFIX}{f.name.upper()}: {raw!r}") from e
    cfg = replace(cfg, **overrides)
    if cfg.device_wait_attempts < 1:
        raise ConfigError(f"{ENV_PREFIX}DEVICE_WAIT_ATTEMPTS must be at least 1")
    return cfg
