"""Video materialization: turns a resolved source into something the model can read.

Uploads and trusted-bucket fetches become a scratch file owned by the request;
YouTube links pass through as a remote reference.
"""

from __future__ import annotations

import asyncio
import hashlib
import re
import secrets
import unicodedata
from contextlib import asynccontextmanager
from dataclasses import dataclass
from pathlib import Path
from typing import AsyncIterator, Optional, Union
from urllib.parse import unquote, urlsplit

import httpx
import structlog

from milestone_analyzer.config import settings
from milestone_analyzer.errors import InvalidVideoInput, VideoFetchFailed
from milestone_analyzer.pipeline.sources import (
    BucketUrlSource,
    UploadSource,
    VideoSource,
    YouTubeUrlSource,
)

logger = structlog.get_logger()

EXT_TO_MIME: dict[str, str] = {
    "mp4": "video/mp4",
    "mov": "video/quicktime",
    "webm": "video/webm",
    "mpeg": "video/mpeg",
    "mpg": "video/mpeg",
    "m4v": "video/mp4",
    "qt": "video/quicktime",
    "3gp": "video/3gpp",
    "3gpp": "video/3gpp",
    "3g2": "video/3gpp2",
    "3gpp2": "video/3gpp2",
}
DEFAULT_MIME_TYPE = "video/mp4"
REMOTE_MIME_TYPE = "video/*"
_GENERIC_MIME_TYPES = frozenset({"", "application/octet-stream", "binary/octet-stream"})

# Short extension with at least one letter ("mp4", "3gp", "webm").
_SAFE_EXTENSION = re.compile(r"^(?=[a-z0-9]*[a-z])[a-z0-9]{1,5}$")
_NON_ALNUM = re.compile(r"[^a-z0-9]+")


@dataclass(frozen=True)
class LocalVideoFile:
    path: Path
    mime_type: str
    file_name: str

    @property
    def size(self) -> int:
        return self.path.stat().st_size


@dataclass(frozen=True)
class RemoteVideoReference:
    url: str
    mime_type: str = REMOTE_MIME_TYPE


MaterializedVideo = Union[LocalVideoFile, RemoteVideoReference]


# ---------------------------------------------------------------------------
# MIME / filename helpers
# ---------------------------------------------------------------------------


def _extension(name: str) -> str:
    base = name.replace("\\", "/").rsplit("/", 1)[-1]
    if "." not in base:
        return ""
    return base.rsplit(".", 1)[1].lower()


def mime_type_from_extension(ext: str) -> str:
    return EXT_TO_MIME.get(ext.lower(), DEFAULT_MIME_TYPE)


def resolve_mime_type(declared: Optional[str], file_name: str) -> str:
    """Prefer a specific declared content type, else infer from the extension."""
    reported = (declared or "").split(";", 1)[0].strip().lower()
    if reported not in _GENERIC_MIME_TYPES and "*" not in reported:
        return reported
    return mime_type_from_extension(_extension(file_name))


def mime_type_from_url(url: str) -> str:
    try:
        path = urlsplit(url).path
    except ValueError:
        return DEFAULT_MIME_TYPE
    return mime_type_from_extension(_extension(path))


def file_name_from_url(url: str) -> str:
    try:
        path = urlsplit(url).path
    except ValueError:
        return "video.mp4"
    name = unquote(path.rsplit("/", 1)[-1]) or "video"
    return name if "." in name else f"{name}.mp4"


def _ascii_slug(text: str) -> str:
    normalized = unicodedata.normalize("NFKD", text)
    ascii_text = normalized.encode("ascii", "ignore").decode("ascii").lower()
    return _NON_ALNUM.sub("-", ascii_text).strip("-")


def generate_scratch_name(original_name: str, max_bytes: int | None = None) -> str:
    """Build a collision-resistant, ASCII-only scratch filename.

    Layout: ``video_<slug>_<hash12>_<random16>.<ext>``. The slug is a
    transliteration of the original stem and is truncated (or dropped) to keep
    the name within *max_bytes*. Directory components of *original_name* never
    survive, so crafted names cannot escape the scratch directory.
    """
    max_bytes = max_bytes if max_bytes is not None else settings.scratch_name_max_bytes
    digest = hashlib.sha256(original_name.encode("utf-8", "replace")).hexdigest()[:12]
    nonce = secrets.token_hex(8)

    ext = _extension(original_name)
    if not _SAFE_EXTENSION.match(ext):
        ext = "mp4"

    base = original_name.replace("\\", "/").rsplit("/", 1)[-1]
    stem = base.rsplit(".", 1)[0] if "." in base else base
    slug = _ascii_slug(stem)

    fixed = f"video_{digest}_{nonce}.{ext}"
    budget = max_bytes - len(fixed) - 1
    slug = slug[: max(budget, 0)].strip("-")
    if slug:
        return f"video_{slug}_{digest}_{nonce}.{ext}"
    return fixed


# ---------------------------------------------------------------------------
# Materialization
# ---------------------------------------------------------------------------


async def _write_scratch_file(data: bytes, file_name: str, mime_type: str) -> LocalVideoFile:
    path = Path(settings.scratch_dir) / generate_scratch_name(file_name)
    try:
        await asyncio.to_thread(path.write_bytes, data)
    except OSError as exc:
        logger.exception("materialize.write_failed", path=str(path))
        raise InvalidVideoInput("Could not store video") from exc

    logger.info("materialize.scratch_written", path=str(path), bytes_written=len(data), mime_type=mime_type)
    return LocalVideoFile(path=path, mime_type=mime_type, file_name=file_name)


async def _fetch_bucket_video(url: str, http_client: httpx.AsyncClient | None) -> httpx.Response:
    # Only the validated URL is fetched; redirects are not followed.
    try:
        if http_client is None:
            async with httpx.AsyncClient(timeout=settings.fetch_timeout_sec) as http:
                response = await http.get(url, follow_redirects=False)
        else:
            response = await http_client.get(url, follow_redirects=False)
    except httpx.HTTPError as exc:
        logger.warning("materialize.fetch_error", error=str(exc))
        raise VideoFetchFailed("Could not fetch video from videoUrl") from exc

    if not response.is_success:
        logger.warning("materialize.fetch_status", status_code=response.status_code)
        raise VideoFetchFailed(f"Video fetch returned HTTP {response.status_code}")
    return response


async def materialize(
    source: VideoSource,
    http_client: httpx.AsyncClient | None = None,
) -> MaterializedVideo:
    """Turn *source* into a local scratch file or a pass-through reference.

    Raises:
        InvalidVideoInput: on any transport or filesystem failure
            (``VideoFetchFailed`` for a failed bucket fetch).
    """
    if isinstance(source, YouTubeUrlSource):
        return RemoteVideoReference(url=source.url)

    if isinstance(source, BucketUrlSource):
        response = await _fetch_bucket_video(source.url, http_client)
        content_type = response.headers.get("content-type", "").split(";", 1)[0].strip().lower()
        mime_type = content_type if content_type.startswith("video/") else mime_type_from_url(source.url)
        return await _write_scratch_file(response.content, file_name_from_url(source.url), mime_type)

    if isinstance(source, UploadSource):
        mime_type = resolve_mime_type(source.declared_mime_type, source.file_name)
        return await _write_scratch_file(source.data, source.file_name or "video.mp4", mime_type)

    raise InvalidVideoInput(f"Unsupported video source: {type(source).__name__}")


def discard_scratch_file(path: Path) -> None:
    try:
        path.unlink(missing_ok=True)
    except OSError:
        logger.warning("materialize.cleanup_failed", path=str(path), exc_info=True)


@asynccontextmanager
async def materialized_video(
    source: VideoSource,
    http_client: httpx.AsyncClient | None = None,
) -> AsyncIterator[MaterializedVideo]:
    """Scoped materialization: the scratch file is removed on every exit path."""
    video = await materialize(source, http_client=http_client)
    try:
        yield video
    finally:
        if isinstance(video, LocalVideoFile):
            discard_scratch_file(video.path)
