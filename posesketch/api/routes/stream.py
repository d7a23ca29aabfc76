from __future__ import annotations

import asyncio
import contextlib
import logging

from fastapi import APIRouter, WebSocket, WebSocketDisconnect
from fastapi.responses import StreamingResponse

from posesketch.api.schemas.models import FrameSchema
from posesketch.api.services.engine import VideoEngine
from posesketch.api.services.state import get_engine

router = APIRouter()

logger = logging.getLogger(__name__)


@router.get("/stream/video")
async def stream_video():
    async def generator():
        engine: VideoEngine = await asyncio.to_thread(get_engine)
        async for chunk in engine.mjpeg_generator():
            yield chunk

    return StreamingResponse(
        generator(),
        media_type="multipart/x-mixed-replace; boundary=frame",
        headers={
            "Cache-Control": "no-store, no-cache, must-revalidate, max-age=0",
            "Pragma": "no-cache",
            # Helps avoid proxy buffering (e.g., nginx) in front of the stream.
            "X-Accel-Buffering": "no",
        },
    )


@router.websocket("/stream/metadata")
async def stream_metadata(ws: WebSocket):
    """Push the cached detections each time the detection worker replaces them."""

    await ws.accept()
    engine: VideoEngine = await asyncio.to_thread(get_engine)
    try:
        async for payload in engine.metadata_stream():
            await ws.send_json(FrameSchema(**payload).model_dump(mode="json"))
    except WebSocketDisconnect:
        return
    except Exception:
        logger.exception("Metadata websocket crashed")
        # The client may already be gone.
        with contextlib.suppress(RuntimeError):
            await ws.close(code=1011)
