"""
Edit routes — score / max / drop overlays and custom assignments.

Every response carries the recomputed section report.
"""

from fastapi import APIRouter, HTTPException

from routes.sessions import get_session, require_section

router = APIRouter()


def _assignment_or_404(session, section_id: str, assignment_id: str):
    require_section(session, section_id)
    try:
        return session.record(section_id, assignment_id)
    except KeyError:
        raise HTTPException(404, f"Assignment '{assignment_id}' not found.")


@router.put("/{session_id}/sections/{section_id}/assignments/{assignment_id}/score")
async def edit_score(session_id: str, section_id: str, assignment_id: str, payload: dict):
    """Expects: { "value": 9.5 }. A blank value clears the edit."""
    session = get_session(session_id)
    _assignment_or_404(session, section_id, assignment_id)
    report = session.edit_score(section_id, assignment_id, payload.get("value"))
    return report.model_dump(mode="json")


@router.put("/{session_id}/sections/{section_id}/assignments/{assignment_id}/max")
async def edit_max(session_id: str, section_id: str, assignment_id: str, payload: dict):
    """Expects: { "value": 10 }. A blank value clears the edit."""
    session = get_session(session_id)
    _assignment_or_404(session, section_id, assignment_id)
    report = session.edit_max(section_id, assignment_id, payload.get("value"))
    return report.model_dump(mode="json")


@router.put("/{session_id}/sections/{section_id}/assignments/{assignment_id}/dropped")
async def set_dropped(session_id: str, section_id: str, assignment_id: str, payload: dict):
    """Expects: { "dropped": true }."""
    session = get_session(session_id)
    _assignment_or_404(session, section_id, assignment_id)
    report = session.set_dropped(section_id, assignment_id, payload.get("dropped") is True)
    return report.model_dump(mode="json")


@router.delete("/{session_id}/sections/{section_id}/assignments/{assignment_id}")
async def revert_assignment(session_id: str, section_id: str, assignment_id: str):
    """Remove every edit on one row."""
    session = get_session(session_id)
    _assignment_or_404(session, section_id, assignment_id)
    return session.revert(section_id, assignment_id).model_dump(mode="json")


@router.delete("/{session_id}/sections/{section_id}/edits")
async def clear_section(session_id: str, section_id: str):
    """Remove every edit and custom assignment in one section."""
    session = get_session(session_id)
    require_section(session, section_id)
    return session.clear_section(section_id).model_dump(mode="json")


@router.post("/{session_id}/sections/{section_id}/custom")
async def add_custom(session_id: str, section_id: str, payload: dict):
    """
    Add a what-if assignment.
    Expects: { "category_index": 2, "title": "Final", "score": 45, "max": 50 }
    """
    session = get_session(session_id)
    require_section(session, section_id)
    try:
        category_index = int(payload.get("category_index", 0))
    except (TypeError, ValueError, OverflowError):
        raise HTTPException(400, "category_index must be an integer.")
    item, report = session.add_custom(
        section_id,
        category_index,
        title=payload.get("title"),
        score=payload.get("score"),
        max_points=payload.get("max"),
    )
    return {"custom": item.model_dump(), "report": report.model_dump(mode="json")}


@router.patch("/{session_id}/custom/{custom_id}")
async def update_custom(session_id: str, custom_id: str, payload: dict):
    """Expects any of: { "title": ..., "score": ..., "max": ... }."""
    session = get_session(session_id)
    try:
        item, report = session.update_custom(
            custom_id,
            title=payload.get("title"),
            score=payload.get("score"),
            max_points=payload.get("max"),
        )
    except KeyError:
        raise HTTPException(404, f"Custom assignment '{custom_id}' not found.")
    return {"custom": item.model_dump(), "report": report.model_dump(mode="json")}


@router.delete("/{session_id}/custom/{custom_id}")
async def remove_custom(session_id: str, custom_id: str):
    session = get_session(session_id)
    try:
        report = session.remove_custom(custom_id)
    except KeyError:
        raise HTTPException(404, f"Custom assignment '{custom_id}' not found.")
    return report.model_dump(mode="json")
