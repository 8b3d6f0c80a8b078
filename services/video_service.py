import enum
import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

import aiofiles
from fastapi import Response
from fastapi.responses import PlainTextResponse

logger = logging.getLogger(__name__)

RANGE_UNIT_PREFIX = "bytes="
VIDEO_MEDIA_TYPE = "video/mp4"


@dataclass(frozen=True)
class ByteRange:
    start: int
    end: int  # inclusive

    @property
    def length(self) -> int:
        return self.end - self.start + 1


class Delivery(enum.Enum):
    FULL_BODY = "full_body"
    PARTIAL_BODY = "partial_body"
    NOT_SATISFIABLE = "not_satisfiable"
    NOT_FOUND = "not_found"


@dataclass(frozen=True)
class DeliveryOutcome:
    kind: Delivery
    byte_range: Optional[ByteRange] = None


class ShortReadError(OSError):
    """The file ended before the requested span could be read."""


def resolve_video_path(video_dir: Path, video: str) -> Optional[Path]:
    """
    Map a client supplied name to a file under `video_dir`.

    Containment is checked on the normalized, unresolved path so a video
    that is a symlink into another media library is still served.
    Returns None for anything that escapes the root.
    """
    root = Path(os.path.abspath(video_dir))
    path = Path(os.path.normpath(root / video))
    if root not in path.parents:
        logger.warning("Rejected video name %r outside %s", video, root)
        return None
    return path


def _parse_uint(token: str, default: int) -> int:
    # unsigned decimal with an optional leading "+", no surrounding whitespace
    digits = token[1:] if token.startswith("+") else token
    if digits.isascii() and digits.isdigit():
        return int(digits)
    return default


def parse_range(
    range_header: Optional[str],
    file_size: int,
    chunk_size: int,
) -> Optional[ByteRange]:
    """
    Turn a raw Range header into a candidate range, or None when the whole
    file should be sent.

    Only the first range of a range-set is honored. Malformed numbers fall
    back to defaults: start -> 0, end -> the last byte of one chunk window
    (clamped to the file). The result is not validated here, so it may lie
    outside the file; see `select_delivery`.
    """
    if range_header is None or not range_header.startswith(RANGE_UNIT_PREFIX):
        return None

    spec = range_header[len(RANGE_UNIT_PREFIX):].split(",", 1)[0]

    if spec.startswith("-"):
        # suffix range: last N bytes
        suffix = _parse_uint(spec[1:], default=0)
        return ByteRange(start=file_size - suffix, end=file_size - 1)

    start_str, _, end_str = spec.partition("-")
    start = _parse_uint(start_str, default=0)
    end = _parse_uint(end_str, default=min(start + chunk_size, file_size) - 1)
    return ByteRange(start=start, end=end)


def select_delivery(candidate: Optional[ByteRange], file_size: int) -> DeliveryOutcome:
    if candidate is None:
        return DeliveryOutcome(Delivery.FULL_BODY)

    # start < 0 happens for suffixes longer than the file
    if candidate.start < 0 or candidate.start > candidate.end or candidate.end >= file_size:
        return DeliveryOutcome(Delivery.NOT_SATISFIABLE, candidate)

    return DeliveryOutcome(Delivery.PARTIAL_BODY, candidate)


class VideoFile:
    """
    Seekable byte source over an opened aiofiles handle.
    """

    def __init__(self, handle) -> None:
        self._handle = handle

    async def size(self) -> int:
        return await self._handle.seek(0, os.SEEK_END)

    async def read_exact_at(self, offset: int, length: int) -> bytes:
        await self._handle.seek(offset)
        data = bytearray()
        while len(data) < length:
            chunk = await self._handle.read(length - len(data))
            if not chunk:
                raise ShortReadError(
                    f"expected {length} bytes at offset {offset}, got {len(data)}"
                )
            data.extend(chunk)
        return bytes(data)


def build_response(outcome: DeliveryOutcome, file_size: int = 0, body: bytes = b"") -> Response:
    if outcome.kind is Delivery.NOT_FOUND:
        return PlainTextResponse("Video not found", status_code=404)

    if outcome.kind is Delivery.NOT_SATISFIABLE:
        return PlainTextResponse(
            "Range Not Satisfiable",
            status_code=416,
            headers={"Content-Range": f"bytes */{file_size}"},
        )

    if outcome.kind is Delivery.FULL_BODY:
        return Response(
            content=body,
            status_code=200,
            headers={"Accept-Ranges": "bytes"},
            media_type=VIDEO_MEDIA_TYPE,
        )

    rng = outcome.byte_range
    headers = {
        "Content-Range": f"bytes {rng.start}-{rng.end}/{file_size}",
        "Accept-Ranges": "bytes",
    }
    return Response(
        content=body,
        status_code=206,
        headers=headers,
        media_type=VIDEO_MEDIA_TYPE,
    )


async def deliver_video(path: Optional[Path], range_header: Optional[str], chunk_size: int) -> Response:
    """
    Lookup -> parse -> validate -> read -> build, for one request.
    The file handle lives only for the duration of this call.
    """
    if path is None:
        return build_response(DeliveryOutcome(Delivery.NOT_FOUND))

    try:
        handle = await aiofiles.open(path, "rb")
    except OSError as e:
        logger.warning("Failed to open video %s: %s", path, e)
        return build_response(DeliveryOutcome(Delivery.NOT_FOUND))

    source = VideoFile(handle)
    try:
        file_size = await source.size()
        outcome = select_delivery(parse_range(range_header, file_size, chunk_size), file_size)

        body = b""
        if outcome.kind is Delivery.FULL_BODY:
            # whole file in memory, no incremental streaming
            body = await source.read_exact_at(0, file_size)
        elif outcome.kind is Delivery.PARTIAL_BODY:
            body = await source.read_exact_at(outcome.byte_range.start, outcome.byte_range.length)
    except OSError:
        logger.exception("Failed to read video %s", path)
        return PlainTextResponse("Failed to read video", status_code=500)
    finally:
        await handle.close()

    return build_response(outcome, file_size, body)
