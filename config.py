"""
chartbind settings.

Values come from two JSON files, merged key by key (later wins):

    <project root>/config.json     shipped defaults for a checkout
    ~/.chartbind/config.json       per-user overrides

plus a ``.env`` file for environment variables such as ``CHARTBIND_DIR``.
Example::

    {"fetch": {"timeout": 10, "discard_stale_responses": true},
     "render": {"width": 1200}}
"""

import json
import os
from pathlib import Path
from typing import Optional
from dotenv import load_dotenv

load_dotenv()

CONFIG_PATH = Path.home() / ".chartbind" / "config.json"
_LOCAL_CONFIG_PATH = Path(__file__).resolve().parent / "config.json"
_user_config: dict = {}


def _load_config() -> dict:
    settings: dict = {}
    for path in (_LOCAL_CONFIG_PATH, CONFIG_PATH):
        if not path.exists():
            continue
        try:
            with open(path, "r", encoding="utf-8") as f:
                settings.update(json.load(f))
        except (json.JSONDecodeError, OSError):
            # An unreadable settings file leaves the built-in defaults in place
            continue
    return settings


def get(key: str, default=None):
    """Look up a nested setting, e.g. get('render.width', 960)."""
    node = _user_config
    for part in key.split("."):
        if not isinstance(node, dict):
            return default
        node = node.get(part)
    return default if node is None else node


_user_config = _load_config()


# ---- Log directory ------------------------------------------------------------

_data_dir: Optional[Path] = None


def get_data_dir() -> Path:
    """Directory holding chartbind's log files.

    ``CHARTBIND_DIR`` wins over the ``data_dir`` setting; without either the
    logs go to ``~/.chartbind``. The answer is cached after the first call.
    """
    global _data_dir
    if _data_dir is None:
        chosen = os.environ.get("CHARTBIND_DIR") or get("data_dir")
        _data_dir = Path(chosen).expanduser().resolve() if chosen else Path.home() / ".chartbind"
    return _data_dir


def _reset_data_dir() -> None:
    """Forget the cached log directory (tests)."""
    global _data_dir
    _data_dir = None


# ---- Data source fetching -----------------------------------------------------
FETCH_TIMEOUT = get("fetch.timeout", 30)          # seconds per request
FETCH_MAX_WORKERS = get("fetch.max_workers", 2)   # background fetch threads
# Drop completions of loads superseded by a newer one (off = last settle wins)
DISCARD_STALE_RESPONSES = get("fetch.discard_stale_responses", False)

# ---- Rendering ----------------------------------------------------------------
DEFAULT_WIDTH = get("render.width", 960)    # px, when the bag has no width
DEFAULT_HEIGHT = get("render.height", 400)  # px, when the bag has no height
