# config.py

import logging
import os
from pathlib import Path

import yaml

from analyzer.core.state import Config


logger = logging.getLogger(__name__)

_INT_KEYS = {"batch_size"}
_FLOAT_KEYS = {
    "cost_limit_usd",
    "cache_ttl_seconds",
    "batch_delay_s",
    "input_price_per_m",
    "output_price_per_m",
    "request_timeout_s",
}


def load_config(profile: str = "default", config_dir: Path | str = Path("configs")) -> Config:
    """Load analyzer Config with YAML and env overrides.

    Resolution order: built-in defaults, then ``<config_dir>/<profile>.yaml``
    (only keys that exist on Config are accepted), then environment variables.
    Numeric values that fail to parse are ignored and the previous value kept.
    """

    # Base defaults aligned with state.Config
    cfg_map: dict[str, object] = {
        "profile": profile,
        "provider": "openai",
        "model": "gpt-5-mini",
        "api_key": None,
        "api_base": "https://api.openai.com",
        "cost_limit_usd": 5.0,
        "cache_ttl_seconds": 3600.0,
        "transcripts_dir": Path("sample"),
        "batch_size": 5,
        "batch_delay_s": 1.0,
        "input_price_per_m": None,
        "output_price_per_m": None,
        "request_timeout_s": 60.0,
    }

    # Optional YAML overrides; only accept known keys
    yaml_path = Path(config_dir) / f"{profile}.yaml"
    if yaml_path.exists():
        try:
            with open(yaml_path, "r", encoding="utf-8") as f:
                yaml_config = yaml.safe_load(f) or {}
        except (OSError, yaml.YAMLError) as e:
            logger.warning("Ignoring unreadable config profile %s: %s", yaml_path, e)
            yaml_config = {}
        if isinstance(yaml_config, dict):
            for k in list(cfg_map.keys()):
                if k == "profile":
                    continue
                if k in yaml_config and yaml_config[k] is not None:
                    _assign(cfg_map, k, yaml_config[k])

    # Environment overrides
    env_overrides = {
        "provider": os.getenv("ANALYZER_PROVIDER"),
        "model": os.getenv("OPENAI_MODEL"),
        "api_key": os.getenv("OPENAI_API_KEY"),
        "api_base": os.getenv("OPENAI_API_BASE"),
        "cost_limit_usd": os.getenv("AI_COST_LIMIT"),
        "cache_ttl_seconds": os.getenv("CACHE_TTL"),
        "transcripts_dir": os.getenv("TRANSCRIPTS_DIR"),
        "batch_size": os.getenv("AI_BATCH_SIZE"),
        "batch_delay_s": os.getenv("AI_BATCH_DELAY"),
        "request_timeout_s": os.getenv("OPENAI_TIMEOUT"),
    }
    for k, v in env_overrides.items():
        if v is None or v == "":
            continue
        _assign(cfg_map, k, v)

    # Coerce transcripts_dir to Path if a string slipped in
    td = cfg_map.get("transcripts_dir")
    if isinstance(td, str):
        cfg_map["transcripts_dir"] = Path(td)

    return Config(**cfg_map)  # type: ignore[arg-type]


def _assign(cfg_map: dict[str, object], key: str, value: object) -> None:
    if key in _INT_KEYS:
        try:
            cfg_map[key] = int(value)  # type: ignore[arg-type]
        except (TypeError, ValueError):
            logger.warning("Ignoring non-integer value for %s: %r", key, value)
    elif key in _FLOAT_KEYS:
        try:
            cfg_map[key] = float(value)  # type: ignore[arg-type]
        except (TypeError, ValueError):
            logger.warning("Ignoring non-numeric value for %s: %r", key, value)
    else:
        cfg_map[key] = value
