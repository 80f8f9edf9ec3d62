import logging
from abc import ABC, abstractmethod
from typing import Optional
from urllib.parse import urlsplit

import httpx

from ..errors import InvalidShareInput
from ..models import MediaRecord
from ..utils import extract_url, looks_like_url

logger = logging.getLogger(__name__)


def host_of(url: str) -> str:
    """Lowercased host of ``url``; scheme-less input is tolerated."""
    if "://" not in url:
        url = "https://" + url
    return (urlsplit(url).hostname or "").lower()


def normalize_input(raw: str, platform: str = "") -> str:
    """The URL inside a share message, or the raw text when it is itself URL-shaped."""
    url = extract_url(raw)
    if url:
        return url
    text = (raw or "").strip()
    if not looks_like_url(text):
        raise InvalidShareInput(f"无法从输入中提取链接: {raw!r}", platform=platform)
    return text if "://" in text else "https://" + text


def path_segments(url: str) -> list[str]:
    if "://" not in url:
        url = "https://" + url
    return [s for s in urlsplit(url).path.split("/") if s]


# Order matters: the first extractor whose hosts match wins.
REGISTRY: list[type["BaseExtractor"]] = []


def register(cls):
    """Class decorator adding an extractor to the dispatch table."""
    if cls not in REGISTRY:
        REGISTRY.append(cls)
    return cls


class BaseExtractor(ABC):
    """Base class for all platform extractors."""

    platform: str = ""
    # Host substrings this extractor claims.
    hosts: tuple[str, ...] = ()

    def __init__(self, client: httpx.AsyncClient):
        self.client = client

    @classmethod
    def matches(cls, url: str) -> bool:
        host = host_of(url)
        return any(h in host for h in cls.hosts)

    @classmethod
    def mentioned_in(cls, url: str) -> bool:
        text = url.lower()
        return any(h in text for h in cls.hosts)

    @abstractmethod
    async def parse_share_url(self, raw: str) -> MediaRecord:
        ...

    def _url_from(self, raw: str) -> str:
        return normalize_input(raw, platform=self.platform)

    def _log_result(self, record: MediaRecord, url: Optional[str] = None) -> MediaRecord:
        kind = "图集" if record.is_gallery else "视频"
        logger.debug(f"[{self.platform}] {kind} {record.title!r} <- {url or ''}")
        return record.normalize()
