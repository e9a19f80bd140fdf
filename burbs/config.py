import os
from pathlib import Path

import yaml

DEFAULT_CONFIG_PATH = Path(__file__).resolve().parent.parent / "config" / "config.yaml"


def _expand(value):
    """Recursively expand ~ and env vars in string values."""
    if isinstance(value, str):
        return os.path.expandvars(os.path.expanduser(value))
    if isinstance(value, dict):
        return {k: _expand(v) for k, v in value.items()}
    if isinstance(value, list):
        return [_expand(v) for v in value]
    return value


def load_config(path=None):
    """Load YAML config, expanding ~ and $ENV_VARS in all string values."""
    path = Path(path) if path else Path(os.environ.get("BURBS_CONFIG", DEFAULT_CONFIG_PATH))
    if not path.exists():
        raise FileNotFoundError(f"Config file not found: {path}")
    with open(path) as f:
        raw = yaml.safe_load(f) or {}
    return _expand(raw)


def strava_settings(config: dict) -> dict:
    """Strava section with defaults filled in.

    A value still reading ``$NAME`` came from an unset env var and is dropped.
    """
    section = {
        k: v for k, v in (config.get("strava") or {}).items()
        if not (isinstance(v, str) and v.startswith("$"))
    }
    section.setdefault("per_page", 200)
    section.setdefault("max_pages", 5)
    return section


def challenge_settings(config: dict) -> dict:
    section = dict(config.get("challenge") or {})
    if not section.get("month"):
        raise KeyError("challenge.month must be set (YYYY-MM)")
    section.setdefault("daily_seed", {})
    return section
