from __future__ import annotations

import os
from collections.abc import Mapping
from pathlib import Path


def default_lobbyd_dir(env: Mapping[str, str] | None = None) -> Path:
    env = os.environ if env is None else env
    override = env.get("LOBBYD_HOME")
    if override:
        return Path(override)
    return Path.home() / ".lobbyd"


def default_config_path(env: Mapping[str, str] | None = None) -> Path:
    return default_lobbyd_dir(env) / "lobbyd.toml"
