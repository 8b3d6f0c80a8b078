import asyncio
import logging

from fastapi import APIRouter, Depends, Query, Response
from fastapi.responses import PlainTextResponse

from api.deps import get_frame_gate, get_settings
from core.config import Settings
from services.frame_service import FrameExtractionError, extract_frame
from services.video_service import resolve_video_path

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/frame", tags=["frame"])


@router.get("/{video}")
async def serve_frame(
    video: str,
    t: int = Query(..., ge=0, description="Timestamp in seconds"),
    settings: Settings = Depends(get_settings),
    gate: asyncio.Semaphore = Depends(get_frame_gate),
):
    path = resolve_video_path(settings.video_path, video)
    if path is None or not path.is_file():
        logger.warning("Frame requested for missing video %s", video)
        return PlainTextResponse("Video not found", status_code=404)

    try:
        image = await extract_frame(settings.ffmpeg_command, path, t, gate)
    except FrameExtractionError as e:
        logger.error("Failed to extract frame from %s at %ss: %s", path, t, e)
        return PlainTextResponse("Failed to extract frame", status_code=500)

    return Response(content=image, status_code=200, media_type="image/jpeg")
