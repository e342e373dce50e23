"""
Session routes — create gradebook sessions, load sections, read reports.
"""

import logging
import os
from functools import lru_cache
from time import time
from typing import Dict, Optional

from fastapi import APIRouter, HTTPException

from engine.persistence import JsonFileStateStore, MemoryStateStore
from engine.session import GradebookSession

router = APIRouter()
logger = logging.getLogger(__name__)

# In-memory session registry: session_id → GradebookSession
sessions: Dict[str, GradebookSession] = {}
SESSION_TTL_SECONDS = int(os.getenv("SESSION_TTL_SECONDS", str(60 * 60)))


@lru_cache
def get_state_store():
    """JSON files under GRADELENS_STATE_DIR, or process memory when unset."""
    state_dir = os.getenv("GRADELENS_STATE_DIR", "").strip()
    if state_dir:
        return JsonFileStateStore(state_dir)
    return MemoryStateStore()


def _purge_expired_sessions():
    now = time()
    expired = [sid for sid, s in sessions.items() if (now - s.created_at) > SESSION_TTL_SECONDS]
    for sid in expired:
        sessions.pop(sid, None)
        logger.info("Expired session %s", sid)


def get_session(session_id: str) -> GradebookSession:
    _purge_expired_sessions()
    session = sessions.get(session_id)
    if session is None:
        raise HTTPException(404, "Session not found.")
    return session


def require_section(session: GradebookSession, section_id: str) -> None:
    if section_id not in session.section_ids():
        raise HTTPException(404, f"Section '{section_id}' not loaded.")


@router.post("")
async def create_session(payload: Optional[dict] = None):
    """
    Start a session. Expects: { "owner": "user-123" } (optional).
    Saved edits for the owner are restored from the state store.
    """
    _purge_expired_sessions()
    owner = (payload or {}).get("owner")
    session = GradebookSession(store=get_state_store(), owner=str(owner) if owner else None)
    sessions[session.id] = session
    logger.info("Created session %s", session.id)
    return {
        "session_id": session.id,
        "owner": session.owner,
        "restored_edits": len(session.overlay),
        "restored_custom": len(session.custom),
    }


@router.delete("/{session_id}")
async def end_session(session_id: str):
    """End a session. Saved edits stay in the state store."""
    if sessions.pop(session_id, None) is None:
        raise HTTPException(404, "Session not found.")
    return {"status": "ok", "message": f"Session {session_id} deleted."}


@router.post("/{session_id}/sections")
async def load_sections(session_id: str, payload: dict):
    """
    Load upstream sections into the session.
    Expects: { "sections": [ {section_id, title, percentage, categories: [...]}, ... ] }
    """
    session = get_session(session_id)
    raw_sections = payload.get("sections")
    if not raw_sections or not isinstance(raw_sections, list):
        raise HTTPException(400, "No sections provided.")
    reports = session.load_sections(raw_sections)
    return {"sections": [r.model_dump(mode="json") for r in reports]}


@router.get("/{session_id}/sections/{section_id}")
async def section_report(session_id: str, section_id: str):
    """Original and current roll-ups, change flags and display policy."""
    session = get_session(session_id)
    require_section(session, section_id)
    return session.report(section_id).model_dump(mode="json")


@router.get("/{session_id}/state")
async def export_state(session_id: str):
    """Serialized overlay table and custom-assignment list."""
    return get_session(session_id).export_state()


@router.post("/{session_id}/reset")
async def reset_session(session_id: str):
    """Drop every edit and custom assignment in the session."""
    session = get_session(session_id)
    reports = session.reset_all()
    return {"sections": [r.model_dump(mode="json") for r in reports]}
