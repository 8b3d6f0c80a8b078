import asyncio
import logging
import sys
from typing import Optional

import uvicorn
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from api.routes.frames import router as frames_router
from api.routes.videos import router as videos_router
from core.config import ConfigError, Settings, load_settings
from core.logging import configure_logging

logger = logging.getLogger(__name__)


def create_app(settings: Optional[Settings] = None) -> FastAPI:
    if settings is None:
        settings = load_settings()

    settings.video_path.mkdir(parents=True, exist_ok=True)

    app = FastAPI(title="Video range server", version="1.0.0")
    app.state.settings = settings
    app.state.frame_gate = asyncio.Semaphore(settings.max_frame_jobs)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_methods=["GET", "HEAD"],
        allow_headers=["*"],
        expose_headers=["Accept-Ranges", "Content-Range", "Content-Length"],
    )

    app.include_router(videos_router)
    app.include_router(frames_router)

    return app


def run() -> None:
    try:
        settings = load_settings()
    except ConfigError as e:
        print(f"ERROR: {e}", file=sys.stderr)
        sys.exit(1)

    configure_logging(settings.log_level)
    app = create_app(settings)

    logger.info("Server listening on %s:%s", settings.ip, settings.port)
    try:
        uvicorn.run(app, host=str(settings.ip), port=settings.port, log_level=settings.log_level.lower())
    except OSError as e:
        print(f"ERROR: Failed to start server: {e}", file=sys.stderr)
        sys.exit(1)


if __name__ == "__main__":
    run()
