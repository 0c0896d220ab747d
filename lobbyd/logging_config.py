from __future__ import annotations

import logging
from pathlib import Path

from .config import RelayRuntimeConfig
from .util import expand_path


def _parse_level(value: str | int, default: int) -> int:
    if isinstance(value, int):
        return value
    level = logging.getLevelName(str(value).strip().upper())
    return level if isinstance(level, int) else default


def configure_logging(cfg: RelayRuntimeConfig) -> None:
    """Install root handlers for lobbyd; repeated calls replace the previous ones."""

    handlers: list[logging.Handler] = []
    if cfg.log_console:
        handlers.append(logging.StreamHandler())
    if cfg.log_file:
        p = Path(expand_path(cfg.log_file))
        p.parent.mkdir(parents=True, exist_ok=True)
        handlers.append(logging.FileHandler(p, encoding="utf-8"))

    formatter = logging.Formatter(fmt=cfg.log_format, datefmt=cfg.log_datefmt)
    root = logging.getLogger()
    for h in list(root.handlers):
        root.removeHandler(h)
    for h in handlers:
        h.setFormatter(formatter)
        root.addHandler(h)
    root.setLevel(_parse_level(cfg.log_level, logging.INFO))

    logging.getLogger("websockets").setLevel(
        _parse_level(cfg.log_websockets_level, logging.WARNING)
    )
    logging.captureWarnings(True)
