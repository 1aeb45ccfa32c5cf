"""Configuration loading for the TabRail backend."""

import json
import logging
import os
from pathlib import Path

log = logging.getLogger(__name__)

CONFIG_PATH = Path(__file__).parent.parent / "config" / "config.json"

DEFAULTS = {
    "db_path": "data/tabrail.db",
    "backend_host": "127.0.0.1",
    "backend_port": 5112,
    "log_level": "INFO",
    "context_window_minutes": 30,
    "disabled_sites": ["chrome://", "chrome-extension://"],
    "signals_cache_ttl_sec": 3600,
    "extract_timeout": 15,
}


def load_config(path: str | Path | None = None) -> dict:
    """Read config JSON and merge it over DEFAULTS.

    The path comes from the argument, then $TABRAIL_CONFIG, then
    config/config.json. A missing file yields the defaults.
    """
    cfg_path = Path(path or os.environ.get("TABRAIL_CONFIG") or CONFIG_PATH)
    config = dict(DEFAULTS)
    if cfg_path.exists():
        config.update(json.loads(cfg_path.read_text()))
    else:
        log.info("No config at %s, using defaults", cfg_path)
    return config
