"""Simple JSON-based settings store for the service endpoint and API key."""

from __future__ import annotations

import json
import os
import threading
from pathlib import Path

from loguru import logger

from models import Settings

DEFAULT_API_URL = "http://localhost:8080"


def normalize_url(url: str) -> str:
    return url.strip().rstrip("/")


def default_config_path() -> Path:
    env = os.getenv("FORTNER_CONFIG")
    if env:
        return Path(env)
    return Path.home() / ".config" / "fortner" / "config.json"


def load_bootstrap_url(path: Path | None) -> str:
    """Read ``apiUrl`` from a static bootstrap document, if one is present."""
    if path is None or not path.exists():
        return ""
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except (json.JSONDecodeError, OSError) as exc:
        logger.warning(f"Ignoring bootstrap config {path}: {exc}")
        return ""
    if not isinstance(data, dict):
        return ""
    return normalize_url(str(data.get("apiUrl") or ""))


class JsonConfigStore:
    def __init__(self, path: Path | None = None, bootstrap_path: Path | None = None) -> None:
        self._path = path or default_config_path()
        self._path.parent.mkdir(parents=True, exist_ok=True)
        self._bootstrap_path = bootstrap_path
        self._lock = threading.Lock()

    def get(self) -> Settings:
        with self._lock:
            data = self._read_all()
        base_url = str(data.get("api_url", "")) or self.default_endpoint()
        return Settings(base_url=base_url, api_key=str(data.get("api_key", "")))

    def default_endpoint(self) -> str:
        return load_bootstrap_url(self._bootstrap_path) or DEFAULT_API_URL

    def custom_endpoint(self) -> str:
        """The endpoint in effect, or an empty string when it is the built-in default."""
        base_url = self.get().base_url
        return "" if base_url == DEFAULT_API_URL else base_url

    def set_endpoint(self, url: str) -> None:
        url = normalize_url(url)
        with self._lock:
            data = self._read_all()
            if url:
                data["api_url"] = url
            else:
                data.pop("api_url", None)
            self._write_all(data)
        logger.info(f"Service endpoint set to {url or self.default_endpoint()}")

    def set_key(self, key: str) -> None:
        with self._lock:
            data = self._read_all()
            data["api_key"] = key
            self._write_all(data)

    def clear_key(self) -> None:
        with self._lock:
            data = self._read_all()
            data.pop("api_key", None)
            self._write_all(data)
        logger.debug("API key cleared")

    def _read_all(self) -> dict:
        if not self._path.exists():
            return {}
        try:
            data = json.loads(self._path.read_text(encoding="utf-8"))
        except (json.JSONDecodeError, OSError):
            return {}
        return data if isinstance(data, dict) else {}

    def _write_all(self, data: dict) -> None:
        self._path.write_text(json.dumps(data, ensure_ascii=False, indent=2), encoding="utf-8")
