"""
GradeLens — Grade aggregation & what-if editing engine.
FastAPI backend entry point.
"""

import os

from dotenv import load_dotenv
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from engine.grading_scale import get_all_grade_thresholds
from engine.logging_config import configure_logging
from routes.sessions import router as sessions_router
from routes.edits import router as edits_router
from routes.analytics import router as analytics_router

# Load environment
load_dotenv()
configure_logging()

# Comma-separated allowed origins, e.g. http://localhost:5173,https://app.example.com
raw_origins = os.getenv("CORS_ORIGINS", "http://localhost:5173,http://localhost:3000")
ALLOWED_ORIGINS = [o.strip() for o in raw_origins.split(",") if o.strip()]
STATE_DIR = os.getenv("GRADELENS_STATE_DIR", "")

app = FastAPI(
    title="GradeLens API",
    description=(
        "Category and section grade roll-ups with user edits, drops and "
        "custom assignments layered over the reported gradebook."
    ),
    version="1.0.0",
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=ALLOWED_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Register route modules
app.include_router(sessions_router, prefix="/api/sessions", tags=["Sessions"])
app.include_router(edits_router, prefix="/api/sessions", tags=["Edits"])
app.include_router(analytics_router, prefix="/api/sessions", tags=["Analytics"])


@app.get("/api/health")
async def health_check():
    return {
        "status": "ok",
        "persistence": "file" if STATE_DIR else "memory",
    }


@app.get("/api/config")
async def get_config():
    """Return server configuration to the frontend."""
    return {
        "persistence": "file" if STATE_DIR else "memory",
        "session_ttl_seconds": int(os.getenv("SESSION_TTL_SECONDS", "3600")),
    }


@app.get("/api/grading-scale")
async def grading_scale():
    """Letter / GPA step table for legends."""
    return {"grade_scale": get_all_grade_thresholds()}
