import pytest
from fastapi.testclient import TestClient

from core.config import Settings
from main import create_app

VIDEO_NAME = "clip.mp4"
VIDEO_BYTES = bytes(i % 251 for i in range(1000))


@pytest.fixture
def video_dir(tmp_path):
    d = tmp_path / "videos"
    d.mkdir()
    (d / VIDEO_NAME).write_bytes(VIDEO_BYTES)
    return d


@pytest.fixture
def settings(video_dir):
    return Settings(
        video_path=video_dir,
        chunk_size=65536,
        ffmpeg_command="ffmpeg",
        max_frame_jobs=2,
    )


@pytest.fixture
def client(settings):
    with TestClient(create_app(settings)) as c:
        yield c


@pytest.fixture
def video_bytes():
    return VIDEO_BYTES
