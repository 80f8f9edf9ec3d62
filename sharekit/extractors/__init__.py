"""Registration table and the dispatcher that routes share links to extractors."""

import logging
from typing import Optional

import httpx

from ..errors import ResolutionError, UnsupportedPlatform
from ..http import create_client
from ..models import MediaRecord
from .base import REGISTRY, BaseExtractor, normalize_input, register

# Import order is dispatch order.
from .douyin import DouyinExtractor
from .xiaohongshu import XiaohongshuExtractor
from .pipixia import PipixiaExtractor
from .weibo import WeiboExtractor
from .kuaishou import KuaishouExtractor
from .bilibili import BilibiliExtractor
from .xigua import XiguaExtractor

logger = logging.getLogger(__name__)

EXTRACTORS = {cls.platform: cls for cls in REGISTRY}


def find_extractor(url: str) -> Optional[type[BaseExtractor]]:
    """First registered extractor claiming the host, else one mentioned anywhere in the URL."""
    for cls in REGISTRY:
        if cls.matches(url):
            return cls
    for cls in REGISTRY:
        if cls.mentioned_in(url):
            return cls
    return None


def detect_platform(url: str) -> str:
    """Platform name for ``url``, or ``"unknown"``."""
    cls = find_extractor(url)
    return cls.platform if cls else "unknown"


class ShareResolver:
    """Resolve share links over one shared ``httpx.AsyncClient``.

    A client passed in is borrowed and left open; otherwise one is created
    and closed with the resolver::

        async with ShareResolver() as resolver:
            record = await resolver.resolve("看看这个 https://v.douyin.com/abc/")
    """

    def __init__(self, client: Optional[httpx.AsyncClient] = None):
        self._owns_client = client is None
        self.client = client or create_client()

    async def __aenter__(self) -> "ShareResolver":
        return self

    async def __aexit__(self, *exc) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        if self._owns_client:
            await self.client.aclose()

    async def resolve(self, raw: str) -> MediaRecord:
        url = normalize_input(raw)
        cls = find_extractor(url)
        if cls is None:
            raise UnsupportedPlatform(f"不支持的平台: {url}", url=url)

        logger.info(f"[{cls.platform}] 解析 {url}")
        try:
            record = await cls(self.client).parse_share_url(url)
        except ResolutionError as e:
            logger.warning(f"解析失败: {e}")
            raise
        return record.normalize()


async def resolve(raw: str, client: Optional[httpx.AsyncClient] = None) -> MediaRecord:
    """Resolve one share text or URL to a MediaRecord."""
    async with ShareResolver(client) as resolver:
        return await resolver.resolve(raw)


__all__ = [
    "REGISTRY",
    "EXTRACTORS",
    "register",
    "detect_platform",
    "find_extractor",
    "normalize_input",
    "ShareResolver",
    "resolve",
    "BaseExtractor",
    "DouyinExtractor",
    "XiaohongshuExtractor",
    "PipixiaExtractor",
    "WeiboExtractor",
    "KuaishouExtractor",
    "BilibiliExtractor",
    "XiguaExtractor",
]
