import asyncio

import pytest

from services import frame_service
from services.frame_service import build_frame_command

JPEG_BYTES = b"\xff\xd8\xff\xe0fake-jpeg\xff\xd9"


class FakeProcess:
    def __init__(self, stdout=b"", stderr=b"", returncode=0):
        self._stdout = stdout
        self._stderr = stderr
        self.returncode = returncode

    async def communicate(self):
        return self._stdout, self._stderr


@pytest.fixture
def spawned(monkeypatch):
    """Replace process creation; records the argv of every spawn."""
    calls = []
    result = {"proc": FakeProcess(stdout=JPEG_BYTES)}

    async def fake_exec(*args, **kwargs):
        calls.append(list(args))
        return result["proc"]

    monkeypatch.setattr(frame_service.asyncio, "create_subprocess_exec", fake_exec)
    return calls, result


def test_build_frame_command(tmp_path):
    path = tmp_path / "clip.mp4"
    assert build_frame_command("ffmpeg", path, 12) == [
        "ffmpeg",
        "-ss", "12",
        "-i", str(path),
        "-vframes", "1",
        "-f", "image2pipe",
        "-vcodec", "mjpeg",
        "-",
    ]


def test_frame_success(client, spawned, video_dir):
    calls, _ = spawned
    resp = client.get("/frame/clip.mp4", params={"t": 3})
    assert resp.status_code == 200
    assert resp.headers["content-type"] == "image/jpeg"
    assert resp.content == JPEG_BYTES
    assert calls[0][0] == "ffmpeg"
    assert calls[0][calls[0].index("-ss") + 1] == "3"
    assert calls[0][calls[0].index("-i") + 1] == str(video_dir / "clip.mp4")


def test_frame_missing_video(client, spawned):
    calls, _ = spawned
    resp = client.get("/frame/nope.mp4", params={"t": 1})
    assert resp.status_code == 404
    assert calls == []


def test_frame_requires_timestamp(client, spawned):
    assert client.get("/frame/clip.mp4").status_code == 422
    assert client.get("/frame/clip.mp4", params={"t": -1}).status_code == 422
    assert client.get("/frame/clip.mp4", params={"t": "soon"}).status_code == 422


def test_frame_nonzero_exit_is_500(client, spawned):
    _, result = spawned
    result["proc"] = FakeProcess(stderr=b"Invalid data found", returncode=1)
    resp = client.get("/frame/clip.mp4", params={"t": 1})
    assert resp.status_code == 500
    assert resp.text == "Failed to extract frame"


def test_frame_empty_output_is_500(client, spawned):
    _, result = spawned
    result["proc"] = FakeProcess(stdout=b"", returncode=0)
    assert client.get("/frame/clip.mp4", params={"t": 1}).status_code == 500


def test_frame_spawn_failure_is_500(video_dir, tmp_path):
    from fastapi.testclient import TestClient

    from core.config import Settings
    from main import create_app

    settings = Settings(video_path=video_dir, ffmpeg_command=str(tmp_path / "no-such-ffmpeg"))
    with TestClient(create_app(settings)) as c:
        resp = c.get("/frame/clip.mp4", params={"t": 1})
    assert resp.status_code == 500


def test_gate_limits_concurrent_extractions(monkeypatch, tmp_path):
    running = 0
    peak = 0

    class SlowProcess(FakeProcess):
        async def communicate(self):
            nonlocal running, peak
            running += 1
            peak = max(peak, running)
            await asyncio.sleep(0.01)
            running -= 1
            return JPEG_BYTES, b""

    async def fake_exec(*args, **kwargs):
        return SlowProcess()

    monkeypatch.setattr(frame_service.asyncio, "create_subprocess_exec", fake_exec)

    async def main():
        gate = asyncio.Semaphore(2)
        return await asyncio.gather(
            *(frame_service.extract_frame("ffmpeg", tmp_path / "clip.mp4", t, gate) for t in range(6))
        )

    frames = asyncio.run(main())
    assert frames == [JPEG_BYTES] * 6
    assert peak == 2
