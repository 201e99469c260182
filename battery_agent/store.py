from __future__ import annotations

import json
import logging
import os
from pathlib import Path
from typing import Mapping, Protocol

logger = logging.getLogger("battery_agent.store")


class PersistedStore(Protocol):
    def get(self, name: str, default: str = "") -> str: ...

    def set(self, name: str, value: str) -> bool: ...


class JsonPropertyStore:
    """Durable string properties kept in one JSON file.

    Writes go through a temp file, fsync and rename so the last committed value
    survives a power loss. An unreadable or corrupt file reads as empty.
    """

    def __init__(self, *, path: Path) -> None:
        self.path = Path(path)

    def _load(self) -> dict[str, str]:
        try:
            raw = self.path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return {}
        except OSError as exc:
            logger.warning("can't read property store %s: %r", self.path, exc)
            return {}

        try:
            parsed = json.loads(raw)
        except ValueError:
            logger.warning("property store %s is corrupt; treating as empty", self.path)
            return {}
        if not isinstance(parsed, Mapping):
            return {}
        return {str(k): v for k, v in parsed.items() if isinstance(v, str)}

    def get(self, name: str, default: str = "") -> str:
        return self._load().get(name, default)

    def set(self, name: str, value: str) -> bool:
        props = self._load()
        if value:
            props[name] = value
        else:
            props.pop(name, None)

        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            tmp = self.path.with_suffix(self.path.suffix + ".tmp")
            with open(tmp, "w", encoding="utf-8") as f:
                f.write(json.dumps(props, sort_keys=True))
                f.flush()
                os.fsync(f.fileno())
            tmp.replace(self.path)
        except OSError as exc:
            logger.error("failed to write property %s to %s: %r", name, self.path, exc)
            return False
        return True
