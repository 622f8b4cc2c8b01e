"""Video source resolution: decides which single video input a request carries.

Pure URL/string validation; nothing here touches the network.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional, Union
from urllib.parse import urlsplit

import structlog

from milestone_analyzer.config import settings
from milestone_analyzer.errors import InvalidVideoInput

logger = structlog.get_logger()

YOUTUBE_HOSTS = frozenset({"youtube.com", "www.youtube.com", "youtu.be", "m.youtube.com"})


@dataclass(frozen=True)
class UploadSource:
    data: bytes
    file_name: str
    declared_mime_type: Optional[str] = None


@dataclass(frozen=True)
class BucketUrlSource:
    url: str


@dataclass(frozen=True)
class YouTubeUrlSource:
    url: str


VideoSource = Union[UploadSource, BucketUrlSource, YouTubeUrlSource]


def _hostname(url: str) -> str | None:
    try:
        return urlsplit(url).hostname
    except ValueError:
        return None


def is_trusted_bucket_url(
    url: str,
    host_suffix: str | None = None,
    bucket: str | None = None,
) -> bool:
    """Check *url* points into the trusted storage bucket over HTTPS.

    Accepts both addressing styles:
    - virtual-hosted: ``https://<bucket><suffix>/<key>``
    - path-style:     ``https://<account><suffix>/<bucket>/<key>``
    """
    host_suffix = (host_suffix or settings.bucket_host_suffix).lower()
    bucket = (bucket or settings.bucket_name).lower()
    try:
        parts = urlsplit(url)
        hostname = parts.hostname
    except ValueError:
        return False
    if parts.scheme.lower() != "https" or not hostname:
        return False
    hostname = hostname.lower()
    if not hostname.endswith(host_suffix):
        return False
    if hostname == f"{bucket}{host_suffix}":
        return True
    segments = [s for s in parts.path.split("/") if s]
    return bool(segments) and segments[0] == bucket


def is_youtube_url(url: str) -> bool:
    # Hostname only; any scheme is accepted.
    hostname = _hostname(url)
    return bool(hostname) and hostname.lower() in YOUTUBE_HOSTS


def resolve_video_source(upload: UploadSource | None, video_url: str | None) -> VideoSource:
    """Return the single video source in the request.

    Raises:
        InvalidVideoInput: neither or both inputs are present, or the URL is
            neither a trusted bucket URL nor a YouTube link.
    """
    url = (video_url or "").strip()
    has_upload = upload is not None
    has_url = bool(url)

    if has_upload == has_url:
        logger.info("video_source.rejected", has_upload=has_upload, has_url=has_url)
        raise InvalidVideoInput("Exactly one of 'video' or 'videoUrl' is required")

    if upload is not None:
        return upload

    if is_youtube_url(url):
        return YouTubeUrlSource(url=url)
    if is_trusted_bucket_url(url):
        return BucketUrlSource(url=url)

    logger.info("video_source.untrusted_url", hostname=_hostname(url))
    raise InvalidVideoInput("videoUrl must be a trusted storage URL or a YouTube link")
