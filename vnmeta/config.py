"""Application configuration — JSON-based, with file locking and batch update support."""

from __future__ import annotations

import json
import threading
from contextlib import contextmanager
from pathlib import Path
from typing import Any, Iterator

from loguru import logger

_instance: "Config | None" = None

# Default data directory
_DEFAULT_DATA_DIR = Path.home() / "Documents" / "vnmeta"


def get_config() -> Config:
    """Module-level factory — single global Config instance."""
    global _instance
    if _instance is None:
        _instance = Config()
    return _instance


def reset_config() -> None:
    """Reset the global config instance (for testing)."""
    global _instance
    _instance = None


class Config:
    """JSON-based application configuration with file locking."""

    _DEFAULTS: dict[str, Any] = {
        "http": {
            "timeout": 15,
            "user_agent": (
                "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
                "(KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36"
            ),
            "proxy_protocol": "http",
            "proxy_host": "",
            "proxy_port": "",
        },
        # Review aggregator (SQL form)
        "erogamescape": {
            "sql_endpoint": (
                "https://erogamescape.dyndns.org/~ap2/ero/toukei_kaiseki/"
                "sql_for_erogamer_form.php"
            ),
            "rate_limit_ms": 2500,
            "search_limit": 30,
            "tag_groups": ["ジャンル", "背景", "傾向"],
            "tag_min_count": 2,
        },
        # Enrichment sources
        "sources": {
            "dlsite": True,
            "getchu": True,
            "vndb": True,
        },
        "vndb": {
            "endpoint": "https://api.vndb.org/kana/vn",
            "search_results": 5,
        },
    }

    def __init__(self, config_dir: Path | None = None) -> None:
        self._data: dict[str, Any] = {}
        self._dir = config_dir or _DEFAULT_DATA_DIR
        self._path = self._dir / "config.json"
        self._lock = threading.Lock()
        self._defer_save = False
        self._load()

    def _load(self) -> None:
        """Load config from disk, merging with defaults."""
        self._data = json.loads(json.dumps(self._DEFAULTS))  # deep copy defaults
        if self._path.exists():
            try:
                with open(self._path, encoding="utf-8") as f:
                    user_data = json.load(f)
                self._deep_merge(self._data, user_data)
            except (json.JSONDecodeError, OSError) as e:
                logger.warning(f"Failed to load config, using defaults: {e}")

    def _deep_merge(self, base: dict, override: dict) -> None:
        """Recursively merge override into base."""
        for key, value in override.items():
            if key in base and isinstance(base[key], dict) and isinstance(value, dict):
                self._deep_merge(base[key], value)
            else:
                base[key] = value

    def _save(self) -> None:
        """Persist config to disk with file locking."""
        if self._defer_save:
            return
        with self._lock:
            self._dir.mkdir(parents=True, exist_ok=True)
            tmp_path = self._path.with_suffix(".tmp")
            try:
                with open(tmp_path, "w", encoding="utf-8") as f:
                    json.dump(self._data, f, ensure_ascii=False, indent=2)
                tmp_path.replace(self._path)
            except OSError as e:
                logger.error(f"Failed to save config: {e}")
                if tmp_path.exists():
                    tmp_path.unlink(missing_ok=True)

    @contextmanager
    def batch_update(self) -> Iterator[None]:
        """Context manager for batching multiple config changes into a single write."""
        self._defer_save = True
        try:
            yield
        finally:
            self._defer_save = False
            self._save()

    # ── Generic access ──

    def get(self, key: str, default: Any = None) -> Any:
        """Get a config value by dot-separated key path."""
        parts = key.split(".")
        node = self._data
        for part in parts:
            if isinstance(node, dict) and part in node:
                node = node[part]
            else:
                return default
        return node

    def set(self, key: str, value: Any) -> None:
        """Set a config value by dot-separated key path."""
        parts = key.split(".")
        node = self._data
        for part in parts[:-1]:
            if part not in node or not isinstance(node[part], dict):
                node[part] = {}
            node = node[part]
        node[parts[-1]] = value
        logger.debug(f"Config {key} = {value!r}")
        self._save()

    def to_dict(self) -> dict[str, Any]:
        """Deep copy of the effective settings (defaults plus user overrides)."""
        with self._lock:
            return json.loads(json.dumps(self._data))

    # ── Typed properties ──

    @property
    def data_dir(self) -> Path:
        return self._dir

    @property
    def path(self) -> Path:
        return self._path

    @property
    def timeout(self) -> float:
        return float(self.get("http.timeout", 15))

    @property
    def user_agent(self) -> str:
        return self.get("http.user_agent", "")

    @property
    def proxy_url(self) -> str:
        """Assemble proxy URL from config fields (protocol/host/port)."""
        host = self.get("http.proxy_host", "")
        if not host:
            return ""
        proto = self.get("http.proxy_protocol", "http")
        port = self.get("http.proxy_port", "")
        return f"{proto}://{host}:{port}" if port else f"{proto}://{host}"

    @property
    def sql_endpoint(self) -> str:
        return self.get("erogamescape.sql_endpoint", "")

    @property
    def rate_limit_ms(self) -> int:
        return int(self.get("erogamescape.rate_limit_ms", 2500))

    @property
    def search_limit(self) -> int:
        return int(self.get("erogamescape.search_limit", 30))

    @property
    def tag_groups(self) -> list[str]:
        return list(self.get("erogamescape.tag_groups", []))

    @property
    def tag_min_count(self) -> int:
        return int(self.get("erogamescape.tag_min_count", 2))

    @property
    def vndb_endpoint(self) -> str:
        return self.get("vndb.endpoint", "")

    @property
    def vndb_search_results(self) -> int:
        return int(self.get("vndb.search_results", 5))

    def source_enabled(self, name: str) -> bool:
        return bool(self.get(f"sources.{name}", True))
