"""Persisted user preferences."""

import logging
import threading
from pathlib import Path
from typing import Any, Optional

import yaml

logger = logging.getLogger(__name__)

PREFS_NAMESPACE = "settings"
PREF_ENGINE = "asr_engine"


class PreferenceStore:
    """Small YAML-backed key/value store, one mapping per namespace."""

    def __init__(self, path: str | Path, namespace: str = PREFS_NAMESPACE):
        self.path = Path(path)
        self.namespace = namespace
        self._lock = threading.Lock()

    def _load(self) -> dict:
        if not self.path.exists():
            return {}
        try:
            with open(self.path, "r") as f:
                data = yaml.safe_load(f) or {}
        except (OSError, yaml.YAMLError) as e:
            logger.warning(f"Could not read preferences {self.path}: {e}")
            return {}
        return data if isinstance(data, dict) else {}

    def get(self, key: str, default: Any = None) -> Any:
        with self._lock:
            section = self._load().get(self.namespace) or {}
        return section.get(key, default)

    def set(self, key: str, value: Any) -> None:
        with self._lock:
            data = self._load()
            section = data.setdefault(self.namespace, {}) or {}
            section[key] = value
            data[self.namespace] = section

            self.path.parent.mkdir(parents=True, exist_ok=True)
            with open(self.path, "w") as f:
                yaml.safe_dump(data, f, default_flow_style=False, sort_keys=False)

    def get_engine(self, default: Optional[str] = None) -> Optional[str]:
        """Last-selected engine id."""
        return self.get(PREF_ENGINE, default)

    def set_engine(self, engine_id: str) -> None:
        self.set(PREF_ENGINE, engine_id)
