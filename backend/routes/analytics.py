"""
Analytics routes — timeline replay, per-section and overall statistics.
"""

from fastapi import APIRouter

from engine.grading_scale import get_gpa_points
from routes.sessions import get_session, require_section

router = APIRouter()


@router.get("/{session_id}/sections/{section_id}/timeline")
async def timeline(session_id: str, section_id: str):
    """Chronological events with the running section percentage."""
    session = get_session(session_id)
    require_section(session, section_id)
    events = session.timeline(section_id)
    return {"events": [e.model_dump(mode="json") for e in events]}


@router.get("/{session_id}/sections/{section_id}/stats")
async def section_stats(session_id: str, section_id: str):
    """Mean, median, spread, trend and momentum for one section."""
    session = get_session(session_id)
    require_section(session, section_id)
    report = session.report(section_id)
    return {
        **session.stats(section_id).model_dump(mode="json"),
        "gpa": get_gpa_points(report.current.percentage),
    }


@router.get("/{session_id}/overall")
async def overall(session_id: str):
    """Snapshot across every loaded section, with overall GPA."""
    return get_session(session_id).overall().model_dump(mode="json")

