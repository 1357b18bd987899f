"""
Configuration for the markdown to PDF service.

Values are resolved in this order (first match wins):
    1. CLI arguments passed in as ``cli_config``
    2. ``MDPDF_*`` environment variables
    3. JSON config file (path from ``MDPDF_CONFIG`` or ``config_path``)
    4. Built-in defaults
"""

import json
import os
from pathlib import Path
from typing import Any, Dict, List, Optional


DEFAULT_BROWSER_ARGS = [
    '--no-sandbox',
    '--disable-setuid-sandbox',
    '--disable-dev-shm-usage',  # Use /tmp instead of /dev/shm (prevents OOM crashes)
    '--disable-gpu',             # No GPU in headless mode
    '--font-render-hinting=none',
]

DEFAULTS: Dict[str, Any] = {
    "host": "127.0.0.1",
    "port": 3000,
    "navigation_timeout_ms": 10000,
    "shutdown_grace_seconds": 10,
    "max_body_bytes": 10 * 1024 * 1024,
    "browser_args": DEFAULT_BROWSER_ARGS,
    "trusted_font_hosts": ["cdn.jsdelivr.net"],
    "max_workers": 4,
    "output_dir": "pdf",
    "debug": False,
}

ENV_PREFIX = "MDPDF_"

_INT_KEYS = {"port", "navigation_timeout_ms", "shutdown_grace_seconds", "max_body_bytes", "max_workers"}
_LIST_KEYS = {"browser_args", "trusted_font_hosts"}
_BOOL_KEYS = {"debug"}


def parse_bool(value: Any) -> bool:
    """Interpret common truthy strings ("1", "true", "yes", "on")."""
    if isinstance(value, bool):
        return value
    return str(value).strip().lower() in ("1", "true", "yes", "on")


def _coerce(key: str, value: Any) -> Any:
    if key in _INT_KEYS:
        try:
            return int(value)
        except (TypeError, ValueError):
            raise ValueError(f"Invalid value for '{key}': {value!r} (expected an integer)")
    if key in _LIST_KEYS and isinstance(value, str):
        # Environment variables carry lists as comma separated values
        return [item.strip() for item in value.split(",") if item.strip()]
    if key in _BOOL_KEYS:
        return parse_bool(value)
    return value


class Config:
    """Layered configuration lookup."""

    def __init__(self, cli_config: Optional[Dict[str, Any]] = None, config_path: Optional[str] = None):
        self._cli = {k: v for k, v in (cli_config or {}).items() if v is not None}
        path = config_path or os.environ.get(f"{ENV_PREFIX}CONFIG")
        self._file = self._load_file(Path(path)) if path else {}

    @staticmethod
    def _load_file(path: Path) -> Dict[str, Any]:
        """Load a JSON config file. A missing file is an error when explicitly requested."""
        if not path.exists():
            raise FileNotFoundError(f"Config file not found: {path}")
        with open(path, 'r', encoding='utf-8') as f:
            data = json.load(f)
        if not isinstance(data, dict):
            raise ValueError(f"Config file {path} must contain a JSON object")
        return data

    def get(self, key: str) -> Any:
        if key in self._cli:
            return _coerce(key, self._cli[key])
        env_value = os.environ.get(f"{ENV_PREFIX}{key.upper()}")
        if env_value is not None and env_value != "":
            return _coerce(key, env_value)
        if key in self._file:
            return _coerce(key, self._file[key])
        if key not in DEFAULTS:
            raise KeyError(f"Unknown configuration key: {key}")
        default = DEFAULTS[key]
        return list(default) if isinstance(default, list) else default

    def get_host(self) -> str:
        return self.get("host")

    def get_port(self) -> int:
        return self.get("port")

    def get_navigation_timeout_ms(self) -> int:
        """Upper bound for the document to reach network quiescence."""
        return self.get("navigation_timeout_ms")

    def get_shutdown_grace_seconds(self) -> int:
        return self.get("shutdown_grace_seconds")

    def get_max_body_bytes(self) -> int:
        return self.get("max_body_bytes")

    def get_browser_args(self) -> List[str]:
        return self.get("browser_args")

    def get_trusted_font_hosts(self) -> List[str]:
        """Hosts allowed to serve web fonts while a document loads."""
        return self.get("trusted_font_hosts")

    def get_max_workers(self) -> int:
        return self.get("max_workers")

    def get_output_dir(self) -> Path:
        return Path(self.get("output_dir"))

    def get_debug(self) -> bool:
        return self.get("debug")
