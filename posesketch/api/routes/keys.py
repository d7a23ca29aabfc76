"""Keyboard endpoint: the browser forwards key presses here."""

from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, HTTPException

from posesketch.api.schemas.models import KeyResultSchema
from posesketch.api.services.engine import VideoEngine
from posesketch.api.services.state import get_engine
from posesketch.core.interaction import KeyAction

router = APIRouter()

logger = logging.getLogger(__name__)


@router.post("/keys/{key}", response_model=KeyResultSchema)
def press_key(key: str, engine: VideoEngine = Depends(get_engine)) -> KeyResultSchema:
    """Apply the sketch's binding for `key` ("space" names the space bar)."""

    try:
        action = engine.handle_key(key)
    except RuntimeError as exc:
        logger.exception("Key %r failed", key)
        raise HTTPException(status_code=500, detail=str(exc)) from None
    meta = engine.metadata()
    snapshot = None
    if action is KeyAction.SNAPSHOT and engine.sketch is not None and engine.sketch.last_snapshot:
        snapshot = str(engine.sketch.last_snapshot)
    return KeyResultSchema(
        key=key,
        action=action.value,
        show_video=meta["show_video"],
        snapshot=snapshot,
    )
