import logging
import stat
from typing import Optional

from fastapi import APIRouter, Depends, Header, Response

from api.deps import get_settings
from core.config import Settings
from services.video_service import (
    VIDEO_MEDIA_TYPE,
    Delivery,
    DeliveryOutcome,
    build_response,
    deliver_video,
    resolve_video_path,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/video", tags=["video"])


@router.head("/{video}")
def head_video(video: str, settings: Settings = Depends(get_settings)):
    path = resolve_video_path(settings.video_path, video)
    if path is None:
        return build_response(DeliveryOutcome(Delivery.NOT_FOUND))

    try:
        st = path.stat()
    except OSError as e:
        logger.warning("Failed to stat video %s: %s", path, e)
        return build_response(DeliveryOutcome(Delivery.NOT_FOUND))
    if not stat.S_ISREG(st.st_mode):
        logger.warning("Not a regular file: %s", path)
        return build_response(DeliveryOutcome(Delivery.NOT_FOUND))

    return Response(
        status_code=200,
        headers={
            "Accept-Ranges": "bytes",
            "Content-Length": str(st.st_size),
            "Content-Type": VIDEO_MEDIA_TYPE,
        },
    )


@router.get("/{video}")
async def serve_video(
    video: str,
    range: Optional[str] = Header(None),
    settings: Settings = Depends(get_settings),
):
    path = resolve_video_path(settings.video_path, video)
    return await deliver_video(path, range, settings.chunk_size)
