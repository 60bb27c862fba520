"""
Client-local storage of the assistant configuration.

A small JSON key/value file stands in for browser local storage; the
config lives under AI_CONFIG_STORAGE_KEY.
"""

from __future__ import annotations

import json
import os
from pathlib import Path
from typing import Any, Optional

from readerai.logging_config import logger
from readerai.schemas.chat import AIConfig

AI_CONFIG_STORAGE_KEY = "web-annotator-ai-config-v1"


class JsonKeyValueStore:
    def __init__(self, path: Path | str) -> None:
        self.path = Path(path)

    def _read_all(self) -> dict[str, Any]:
        try:
            data = json.loads(self.path.read_text(encoding="utf-8"))
        except FileNotFoundError:
            return {}
        except (json.JSONDecodeError, UnicodeDecodeError, OSError) as exc:
            logger.warning("config_store: unreadable store %s (%s); ignoring it", self.path, exc)
            return {}
        return data if isinstance(data, dict) else {}

    def get(self, key: str) -> Optional[str]:
        value = self._read_all().get(key)
        return value if isinstance(value, str) else None

    def set(self, key: str, value: str) -> None:
        data = self._read_all()
        data[key] = value
        self.path.parent.mkdir(parents=True, exist_ok=True)
        tmp_path = self.path.with_suffix(self.path.suffix + ".tmp")
        tmp_path.write_text(json.dumps(data, ensure_ascii=False, indent=2), encoding="utf-8")
        os.replace(tmp_path, self.path)


class ConfigStore:
    """
    Load/persist AIConfig. Absent or corrupt data yields the default
    config; a local provider is mapped to the gateway when local CLI
    access is not allowed.
    """

    def __init__(self, store: JsonKeyValueStore, *, key: str = AI_CONFIG_STORAGE_KEY) -> None:
        self._store = store
        self._key = key

    def load(self, *, allow_local_providers: bool) -> AIConfig:
        raw = self._store.get(self._key)
        if not raw:
            return AIConfig()
        try:
            parsed = json.loads(raw)
        except json.JSONDecodeError:
            return AIConfig()
        return AIConfig.from_stored(parsed, allow_local_providers=allow_local_providers)

    def save(self, config: AIConfig) -> None:
        self._store.set(self._key, json.dumps(config.to_stored()))


__all__ = ["AI_CONFIG_STORAGE_KEY", "ConfigStore", "JsonKeyValueStore"]
