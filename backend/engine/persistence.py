"""
persistence.py — External state store adapters.

The engine only ever hands over whole tables: the overlay mapping and the
custom-assignment list. Stores may raise; callers treat a failed save as
non-fatal.
"""

import json
import logging
from pathlib import Path
from typing import Any, Dict, List, Optional, Union


logger = logging.getLogger(__name__)

OVERLAY_KEY = "modified_grades"
CUSTOM_KEY = "custom_assignments"


class MemoryStateStore:
    """Keeps serialized state in a dict. Used when no state directory is set."""

    def __init__(self):
        self.data: Dict[str, Dict[str, Any]] = {}

    def save(self, owner: str, key: str, value: Any) -> None:
        # Round-trip through JSON so callers can never share live objects.
        self.data.setdefault(owner, {})[key] = json.loads(json.dumps(value))

    def load(self, owner: str, key: str) -> Optional[Any]:
        return self.data.get(owner, {}).get(key)

    def delete(self, owner: str) -> None:
        self.data.pop(owner, None)


class JsonFileStateStore:
    """One JSON file per owner under a state directory."""

    def __init__(self, directory: Union[str, Path]):
        self.directory = Path(directory)
        self.directory.mkdir(parents=True, exist_ok=True)

    def _path(self, owner: str) -> Path:
        safe = "".join(ch for ch in str(owner) if ch.isalnum() or ch in "-_") or "default"
        return self.directory / f"{safe}.json"

    def _read(self, owner: str) -> Dict[str, Any]:
        path = self._path(owner)
        if not path.exists():
            return {}
        try:
            payload = json.loads(path.read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError):
            logger.warning("Unreadable state file %s; starting empty", path)
            return {}
        return payload if isinstance(payload, dict) else {}

    def save(self, owner: str, key: str, value: Any) -> None:
        payload = self._read(owner)
        payload[key] = value
        path = self._path(owner)
        tmp = path.with_suffix(".json.tmp")
        tmp.write_text(json.dumps(payload), encoding="utf-8")
        tmp.replace(path)

    def load(self, owner: str, key: str) -> Optional[Any]:
        return self._read(owner).get(key)

    def delete(self, owner: str) -> None:
        self._path(owner).unlink(missing_ok=True)


def load_state(store, owner: str) -> Dict[str, Any]:
    """Return {"overlay": dict, "custom": list}, empty on any failure."""
    overlay: Dict[str, Any] = {}
    custom: List[Any] = []
    try:
        overlay = store.load(owner, OVERLAY_KEY) or {}
        custom = store.load(owner, CUSTOM_KEY) or []
    except Exception:
        logger.warning("Could not load saved state for %s", owner, exc_info=True)
    return {"overlay": overlay, "custom": custom}
