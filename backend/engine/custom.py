"""
custom.py — User-added ("what if") assignments.

Custom rows have no server-reported figures; their score and max live
here. Ids are synthetic and monotonically increasing (custom-1, custom-2,
…) and are never reused within a registry, even after removal.
"""

import logging
import re
from typing import Any, Callable, Dict, List, Optional

from engine.models import CustomAssignment
from engine.normalizer import to_number


logger = logging.getLogger(__name__)

CUSTOM_PREFIX = "custom-"
DEFAULT_TITLE = "Custom Assignment"
DEFAULT_MAX = 100.0

PersistCallback = Callable[[List[Dict[str, Any]]], None]


class CustomAssignmentRegistry:
    def __init__(self, persist: Optional[PersistCallback] = None):
        self._items: Dict[str, CustomAssignment] = {}
        self._counter = 1
        self._persist = persist

    def add(
        self, section_id: str, category_index: int, title: Any = None,
        score: Any = None, max_points: Any = None,
    ) -> CustomAssignment:
        name = str(title).strip() if title is not None else ""
        max_value = to_number(max_points)
        item = CustomAssignment(
            id=f"{CUSTOM_PREFIX}{self._counter}",
            title=name or DEFAULT_TITLE,
            score=to_number(score),
            max=DEFAULT_MAX if max_value is None else max_value,
            section_id=str(section_id),
            category_index=int(category_index),
        )
        self._counter += 1
        self._items[item.id] = item
        self._save()
        return item

    def update(
        self, custom_id: str, *, title: Any = None, score: Any = None,
        max_points: Any = None,
    ) -> Optional[CustomAssignment]:
        item = self._items.get(custom_id)
        if item is None:
            return None
        changes: Dict[str, Any] = {}
        if title is not None and str(title).strip():
            changes["title"] = str(title).strip()
        if score is not None:
            changes["score"] = to_number(score)
        if max_points is not None:
            changes["max"] = to_number(max_points)
        if changes:
            item = item.model_copy(update=changes)
            self._items[custom_id] = item
            self._save()
        return item

    def remove(self, custom_id: str) -> Optional[CustomAssignment]:
        item = self._items.pop(custom_id, None)
        if item is not None:
            self._save()
        return item

    def get(self, custom_id: str) -> Optional[CustomAssignment]:
        return self._items.get(custom_id)

    def for_section(self, section_id: str) -> List[CustomAssignment]:
        return [c for c in self._items.values() if c.section_id == str(section_id)]

    def clear_section(self, section_id: str) -> None:
        doomed = [cid for cid, c in self._items.items() if c.section_id == str(section_id)]
        for cid in doomed:
            del self._items[cid]
        if doomed:
            self._save()

    def clear_all(self) -> None:
        self._items.clear()
        self._save()

    def __len__(self) -> int:
        return len(self._items)

    # ── Serialization ───────────────────────────────────────────────

    def to_list(self) -> List[Dict[str, Any]]:
        return [c.model_dump() for c in self._items.values()]

    @classmethod
    def from_list(
        cls, items: Any, persist: Optional[PersistCallback] = None
    ) -> "CustomAssignmentRegistry":
        registry = cls(persist=persist)
        if not isinstance(items, list):
            return registry
        for raw in items:
            if not isinstance(raw, dict) or not raw.get("id") or raw.get("section_id") is None:
                continue
            category = to_number(raw.get("category_index", raw.get("catIndex")))
            item = CustomAssignment(
                id=str(raw["id"]),
                title=str(raw.get("title") or raw.get("name") or DEFAULT_TITLE),
                score=to_number(raw.get("score")),
                max=to_number(raw.get("max")),
                section_id=str(raw["section_id"]),
                category_index=int(category) if category is not None else 0,
            )
            registry._items[item.id] = item
            registry._counter = max(registry._counter, _id_number(item.id) + 1)
        return registry

    def _save(self) -> None:
        if self._persist is None:
            return
        try:
            self._persist(self.to_list())
        except Exception:
            logger.warning("Custom assignment persistence failed; keeping in-memory rows", exc_info=True)


def _id_number(custom_id: str) -> int:
    nums = re.findall(r"\d+", custom_id)
    return int(nums[-1]) if nums else 0
