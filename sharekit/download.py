"""Streaming media download with progress callbacks.

Bookkeeping (history, favorites, retries) is the caller's business; this module
only moves bytes and reports progress.
"""

import hashlib
import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Optional

import httpx

from .errors import ResolutionError, UpstreamUnreachable
from .http import headers as default_headers
from .models import MediaRecord

logger = logging.getLogger(__name__)

DOWNLOADING = "downloading"
COMPLETED = "completed"
FAILED = "failed"

CHUNK_SIZE = 64 * 1024

# Some CDNs refuse hotlinked media without the site as referer.
REFERERS = {
    "bilibili": "https://www.bilibili.com/",
    "weibo": "https://weibo.com/",
}


@dataclass
class DownloadProgress:
    id: str
    status: str
    downloaded_size: int = 0
    total_size: Optional[int] = None


ProgressCallback = Callable[[DownloadProgress], None]


async def download(
    client: httpx.AsyncClient,
    url: str,
    path,
    *,
    progress: Optional[ProgressCallback] = None,
    headers: Optional[dict[str, str]] = None,
    download_id: Optional[str] = None,
) -> Path:
    """Stream ``url`` into ``path`` and report progress per chunk.

    Redirects are followed here, unlike during resolution: media CDNs
    commonly bounce once or twice before serving bytes.
    """
    path = Path(path)
    did = download_id or hashlib.md5(url.encode("utf-8")).hexdigest()[:12]
    state = DownloadProgress(id=did, status=DOWNLOADING)

    def report():
        if progress is not None:
            progress(DownloadProgress(**vars(state)))

    path.parent.mkdir(parents=True, exist_ok=True)
    opened = False
    try:
        async with client.stream("GET", url, headers=headers, follow_redirects=True) as resp:
            resp.raise_for_status()
            length = resp.headers.get("content-length")
            state.total_size = int(length) if length and length.isdigit() else None
            with open(path, "wb") as f:
                opened = True
                async for chunk in resp.aiter_bytes(CHUNK_SIZE):
                    f.write(chunk)
                    state.downloaded_size += len(chunk)
                    report()
    except (httpx.HTTPError, OSError) as e:
        state.status = FAILED
        if opened:
            path.unlink(missing_ok=True)
        report()
        logger.warning(f"下载失败 url={url} file={path.name}: {e}")
        raise UpstreamUnreachable(f"下载失败: {e}", url=url) from e

    state.status = COMPLETED
    report()
    logger.debug(f"下载完成 {path} ({state.downloaded_size} bytes)")
    return path


def media_urls(record: MediaRecord) -> list[tuple[str, str]]:
    """``(url, extension)`` pairs worth saving for ``record``."""
    if record.images:
        out = []
        for img in record.images:
            out.append((img.url, "jpg"))
            if img.live_photo_url:
                out.append((img.live_photo_url, "mp4"))
        return out
    return [(record.video_url, "mp4")] if record.video_url else []


async def download_record(
    client: httpx.AsyncClient,
    record: MediaRecord,
    output_dir: str = ".",
    *,
    progress: Optional[ProgressCallback] = None,
) -> list[Path]:
    """Save every media file of ``record``; failed files are logged and skipped."""
    os.makedirs(output_dir, exist_ok=True)
    h = default_headers(referer=REFERERS.get(record.platform, ""))
    stem = hashlib.md5((record.video_url or record.title or record.cover_url).encode("utf-8")).hexdigest()[:8]

    downloaded = []
    for i, (url, ext) in enumerate(media_urls(record)):
        fname = f"{record.platform}_{stem}_{i}.{ext}"
        try:
            downloaded.append(await download(client, url, Path(output_dir) / fname, progress=progress, headers=h))
        except ResolutionError as e:
            logger.warning(f"跳过 {fname}: {e}")
    return downloaded
