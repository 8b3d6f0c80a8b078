import asyncio

from fastapi import Request

from core.config import Settings


def get_settings(request: Request) -> Settings:
    return request.app.state.settings


def get_frame_gate(request: Request) -> asyncio.Semaphore:
    return request.app.state.frame_gate
