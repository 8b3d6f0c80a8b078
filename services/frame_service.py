import asyncio
import logging
from pathlib import Path
from typing import List

logger = logging.getLogger(__name__)


class FrameExtractionError(RuntimeError):
    pass


def build_frame_command(ffmpeg_command: str, video_path: Path, t: int) -> List[str]:
    """
    Single JPEG frame at `t` seconds, written to stdout.
    """
    return [
        ffmpeg_command,
        "-ss", str(t),
        "-i", str(video_path),
        "-vframes", "1",
        "-f", "image2pipe",
        "-vcodec", "mjpeg",
        "-",
    ]


async def extract_frame(
    ffmpeg_command: str,
    video_path: Path,
    t: int,
    gate: asyncio.Semaphore,
) -> bytes:
    """
    Run the external extractor once. `gate` caps how many extractor
    processes run at the same time; extra requests wait for a slot.
    """
    cmd = build_frame_command(ffmpeg_command, video_path, t)
    async with gate:
        try:
            proc = await asyncio.create_subprocess_exec(
                *cmd,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
            )
        except OSError as e:
            raise FrameExtractionError(f"could not start {ffmpeg_command}: {e}") from e

        stdout, stderr = await proc.communicate()

    if proc.returncode != 0:
        tail = stderr.decode("utf-8", errors="replace").strip()[-500:]
        raise FrameExtractionError(f"{ffmpeg_command} exited with {proc.returncode}: {tail}")
    if not stdout:
        raise FrameExtractionError(f"{ffmpeg_command} produced no image data")

    logger.debug("Extracted frame at %ss from %s (%d bytes)", t, video_path, len(stdout))
    return stdout
