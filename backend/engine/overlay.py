"""
overlay.py — Sparse table of user edits layered over server-reported rows.

Shape: section_id → assignment_id → OverlayEntry(score?, max?, dropped?).
Entries are created lazily on the first edit and pruned as soon as they
carry nothing; empty sections are pruned with them.

Every mutation hands the whole serialized table to the ``persist``
callback. A failing callback is logged and ignored: the in-memory table
stays authoritative for the session.
"""

import logging
from typing import Any, Callable, Dict, Optional

from engine.models import OverlayEntry
from engine.normalizer import to_number


logger = logging.getLogger(__name__)

OverlayTable = Dict[str, Dict[str, Dict[str, Any]]]
PersistCallback = Callable[[OverlayTable], None]

OVERLAY_FIELDS = ("score", "max", "dropped")


class EditOverlayStore:
    def __init__(self, persist: Optional[PersistCallback] = None):
        self._entries: Dict[str, Dict[str, OverlayEntry]] = {}
        self._persist = persist

    # ── Reads ───────────────────────────────────────────────────────

    def get(self, section_id: str, assignment_id: str) -> Optional[OverlayEntry]:
        entry = self._entries.get(str(section_id), {}).get(str(assignment_id))
        return entry.model_copy() if entry is not None else None

    def section(self, section_id: str) -> Dict[str, OverlayEntry]:
        return {aid: e.model_copy() for aid, e in self._entries.get(str(section_id), {}).items()}

    def section_ids(self):
        return list(self._entries.keys())

    def __len__(self) -> int:
        return sum(len(rows) for rows in self._entries.values())

    def __eq__(self, other) -> bool:
        if not isinstance(other, EditOverlayStore):
            return NotImplemented
        return self.to_dict() == other.to_dict()

    # ── Mutations ───────────────────────────────────────────────────

    def set_score(self, section_id: str, assignment_id: str, score: Any) -> None:
        value = to_number(score)
        if value is None:
            self.clear_field(section_id, assignment_id, "score")
            return
        self._upsert(section_id, assignment_id, score=value)

    def set_max(self, section_id: str, assignment_id: str, max_points: Any) -> None:
        value = to_number(max_points)
        if value is None:
            self.clear_field(section_id, assignment_id, "max")
            return
        self._upsert(section_id, assignment_id, max=value)

    def set_dropped(self, section_id: str, assignment_id: str, dropped: bool) -> None:
        if not dropped:
            self.clear_field(section_id, assignment_id, "dropped")
            return
        self._upsert(section_id, assignment_id, dropped=True)

    def clear_field(self, section_id: str, assignment_id: str, field: str) -> None:
        if field not in OVERLAY_FIELDS:
            raise ValueError(f"Unknown overlay field: {field!r}")
        rows = self._entries.get(str(section_id))
        entry = rows.get(str(assignment_id)) if rows else None
        if entry is None:
            return
        setattr(entry, field, False if field == "dropped" else None)
        self._prune(str(section_id), str(assignment_id))
        self._save()

    def remove(self, section_id: str, assignment_id: str) -> bool:
        rows = self._entries.get(str(section_id))
        if not rows or str(assignment_id) not in rows:
            return False
        del rows[str(assignment_id)]
        if not rows:
            del self._entries[str(section_id)]
        self._save()
        return True

    def clear_section(self, section_id: str) -> None:
        if self._entries.pop(str(section_id), None) is not None:
            self._save()

    def clear_all(self) -> None:
        self._entries.clear()
        self._save()

    # ── Serialization ───────────────────────────────────────────────

    def to_dict(self) -> OverlayTable:
        return {
            sid: {aid: entry.to_wire() for aid, entry in rows.items()}
            for sid, rows in self._entries.items()
        }

    @classmethod
    def from_dict(
        cls, table: Any, persist: Optional[PersistCallback] = None
    ) -> "EditOverlayStore":
        """Rebuild a store from its serialized table; malformed parts are skipped."""
        store = cls(persist=persist)
        if not isinstance(table, dict):
            return store
        for sid, rows in table.items():
            if not isinstance(rows, dict):
                continue
            for aid, raw in rows.items():
                if not isinstance(raw, dict):
                    continue
                entry = OverlayEntry(
                    score=to_number(raw.get("score", raw.get("grade"))),
                    max=to_number(raw.get("max")),
                    dropped=raw.get("dropped") is True,
                )
                if not entry.is_empty():
                    store._entries.setdefault(str(sid), {})[str(aid)] = entry
        return store

    # ── Internals ───────────────────────────────────────────────────

    def _upsert(self, section_id: str, assignment_id: str, **fields) -> None:
        rows = self._entries.setdefault(str(section_id), {})
        entry = rows.setdefault(str(assignment_id), OverlayEntry())
        for name, value in fields.items():
            setattr(entry, name, value)
        self._save()

    def _prune(self, section_id: str, assignment_id: str) -> None:
        rows = self._entries.get(section_id)
        if rows is None:
            return
        entry = rows.get(assignment_id)
        if entry is not None and entry.is_empty():
            del rows[assignment_id]
        if not rows:
            del self._entries[section_id]

    def _save(self) -> None:
        if self._persist is None:
            return
        try:
            self._persist(self.to_dict())
        except Exception:
            logger.warning("Overlay persistence failed; keeping in-memory edits", exc_info=True)
