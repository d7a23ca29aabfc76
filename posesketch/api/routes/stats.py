"""Stats endpoint."""

from __future__ import annotations

from fastapi import APIRouter, Depends

from posesketch.api.schemas.models import StatsSchema
from posesketch.api.services.engine import VideoEngine
from posesketch.api.services.state import get_engine

router = APIRouter()


@router.get("/stats", response_model=StatsSchema)
def stats(engine: VideoEngine = Depends(get_engine)) -> StatsSchema:
    """Return high-level sketch statistics."""

    meta = engine.metadata()
    return StatsSchema(
        sketch=meta["sketch"],
        total_entities=len(meta["entities"]),
        detect_fps=meta["detect_fps"],
        render_fps=meta["render_fps"],
        show_video=meta["show_video"],
        error=engine.error(),
    )
