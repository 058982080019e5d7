from __future__ import annotations

import logging
import os
import sys
from pathlib import Path
from typing import Optional


STORE_ENV = "TECHTREE_STORE"
SEED_FILE_ENV = "TECHTREE_SEED_FILE"
LOG_LEVEL_ENV = "TECHTREE_LOG_LEVEL"

DEFAULT_STORE_PATH = Path.home() / ".techtree" / "store.json"
LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


def resolve_store_path(option: Optional[str]) -> Path:
    """Return the key-value store file to use.

    Resolution order:
      1) --store option
      2) TECHTREE_STORE
      3) ~/.techtree/store.json
    """

    if option:
        return Path(option).expanduser()
    env = (os.getenv(STORE_ENV, "") or "").strip()
    return Path(env).expanduser() if env else DEFAULT_STORE_PATH


def resolve_seed_file(option: Optional[str]) -> Optional[str]:
    if option:
        return option
    env = (os.getenv(SEED_FILE_ENV, "") or "").strip()
    return env or None


def resolve_log_level(verbose: bool) -> int:
    if verbose:
        return logging.DEBUG
    name = (os.getenv(LOG_LEVEL_ENV, "") or "").strip().upper()
    level = logging.getLevelName(name) if name else logging.WARNING
    return level if isinstance(level, int) else logging.WARNING


def configure_logging(level: int = logging.WARNING) -> None:
    """Install one stderr handler on the package logger."""
    pkg_logger = logging.getLogger("techtree")
    pkg_logger.setLevel(level)
    if not pkg_logger.handlers:
        handler = logging.StreamHandler(sys.stderr)
        handler.setFormatter(logging.Formatter(LOG_FORMAT))
        pkg_logger.addHandler(handler)
