import logging

from ..embedded import dig, dig_str
from ..errors import ContentNotFound, UpstreamFormatChanged
from ..http import fetch_json, headers, resolve_redirect
from ..models import Author, MediaRecord, Statistics, VideoQuality
from ..utils import https, normalize_ts, optional_int, safe_int
from .base import BaseExtractor, register, path_segments

logger = logging.getLogger(__name__)

BILI_UA = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/108.0.0.0 Safari/537.36"
)
VIEW_API = "https://api.bilibili.com/x/web-interface/view?bvid={bvid}"
PLAY_API = (
    "https://api.bilibili.com/x/player/playurl"
    "?otype=json&fnver=0&fnval=0&qn=80&bvid={bvid}&cid={cid}&platform=html5"
)
REFERER = "https://www.bilibili.com/"

# -404: 啥都木有, 62002: 稿件不可见, 62004: 稿件审核中
NOT_FOUND_CODES = (-404, 62002, 62004)


# ─── B站 ───────────────────────────────────────────────────────────────────────

def bvid_from_url(url: str) -> str:
    """Segment after ``video`` when it is a BV id, else any segment starting with ``BV``."""
    segments = path_segments(url)
    for i, seg in enumerate(segments[:-1]):
        if seg == "video" and segments[i + 1].startswith("BV"):
            return segments[i + 1]
    for seg in segments:
        if seg.startswith("BV"):
            return seg
    raise UpstreamFormatChanged(f"无法提取 BV 号: {url}", platform="bilibili", url=url)


def quality_label(play: dict) -> str:
    """Human label of the served quality, from accept_quality/accept_description."""
    current = dig(play, "quality")
    accepted = dig(play, "accept_quality", default=[])
    described = dig(play, "accept_description", default=[])
    if current in accepted:
        idx = accepted.index(current)
        if idx < len(described) and isinstance(described[idx], str):
            return described[idx]
    return str(current) if current is not None else ""


@register
class BilibiliExtractor(BaseExtractor):
    platform = "bilibili"
    hosts = ("bilibili.com", "b23.tv")

    async def parse_share_url(self, raw: str) -> MediaRecord:
        url = self._url_from(raw)
        h = headers(user_agent=BILI_UA)

        # Handle short links
        if "b23.tv" in url:
            url = await resolve_redirect(self.client, url, headers=h, platform=self.platform)
        bvid = bvid_from_url(url)

        view_api = VIEW_API.format(bvid=bvid)
        view = await fetch_json(self.client, "GET", view_api, platform=self.platform, headers=h)
        code = dig(view, "code", default=-1)
        if code != 0:
            message = dig_str(view, "message", default="unknown")
            exc = ContentNotFound if code in NOT_FOUND_CODES else UpstreamFormatChanged
            raise exc(f"B站 API 错误 ({code}): {message}", platform=self.platform, url=view_api)

        data = dig(view, "data", default={})
        cid = dig(data, "cid") or dig(data, "pages", 0, "cid") or 0

        play_api = PLAY_API.format(bvid=bvid, cid=cid)
        play = await fetch_json(
            self.client, "GET", play_api, platform=self.platform,
            headers=headers(user_agent=BILI_UA, referer=REFERER),
        )
        durl = dig(play, "data", "durl", default=[])
        video_url = dig_str(durl, 0, "url")
        if not video_url:
            raise UpstreamFormatChanged("未找到视频流地址", platform=self.platform, url=play_api)

        label = quality_label(dig(play, "data", default={}))
        qualities = [
            VideoQuality(quality=label, url=dig_str(part, "url"), size=optional_int(dig(part, "size")))
            for part in durl
            if dig_str(part, "url")
        ]

        owner = dig(data, "owner", default={})
        stat = dig(data, "stat", default={})
        record = MediaRecord(
            platform=self.platform,
            title=dig_str(data, "title"),
            author=Author(
                uid=str(dig(owner, "mid", default="")),
                name=dig_str(owner, "name"),
                avatar=dig_str(owner, "face"),
            ),
            video_url=video_url,
            cover_url=https(dig_str(data, "pic")),
            video_qualities=qualities,
            statistics=Statistics(
                likes=safe_int(stat.get("like", 0)),
                views=safe_int(stat.get("view", 0)),
                favorites=safe_int(stat.get("favorite", 0)),
                shares=safe_int(stat.get("share", 0)),
                comments=safe_int(stat.get("reply", 0)),
            ),
            create_time=normalize_ts(dig(data, "pubdate")),
        )
        return self._log_result(record, url)
