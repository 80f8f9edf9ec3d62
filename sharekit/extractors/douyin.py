import logging
from typing import Any, Optional
from urllib.parse import parse_qs, urlsplit

from ..embedded import dig, dig_str, extract_state, find_node
from ..errors import ContentNotFound, ResolutionError, UpstreamFormatChanged
from ..http import MOBILE_UA, fetch, fetch_json, headers, resolve_cdn_url, resolve_redirect
from ..models import Author, ImageItem, MediaRecord, Music, Statistics, VideoQuality
from ..sign_engine import sign_query
from ..utils import hashtags, normalize_ts, numeric_id, optional_int, rand_seq, safe_int
from .base import BaseExtractor, register, host_of, path_segments

logger = logging.getLogger(__name__)

SHARE_PAGE = "https://www.douyin.com/share/video/{id}"
SLIDES_API = (
    "https://www.douyin.com/web/api/v2/aweme/slidesinfo/"
    "?reflow_source=reflow_page&web_id={web_id}&device_id={web_id}"
    "&aweme_ids=%5B{id}%5D&request_source=200&a_bogus={a_bogus}"
)
ROUTER_STATE = "window._ROUTER_DATA"
DEFAULT_GEAR = "未知"


# ─── 抖音 ──────────────────────────────────────────────────────────────────────

def video_id_from_url(url: str) -> str:
    """``modal_id`` query parameter, else the last path segment."""
    modal = parse_qs(urlsplit(url).query).get("modal_id", [""])[0]
    if modal:
        return modal
    segments = path_segments(url)
    if not segments:
        raise UpstreamFormatChanged(f"无法从链接中解析作品 ID: {url}", platform="douyin", url=url)
    return segments[-1]


def no_webp_url(url_list: Any) -> str:
    """First URL that is not a .webp rendition, else the first URL."""
    if not isinstance(url_list, list) or not url_list:
        return ""
    for u in url_list:
        if isinstance(u, str) and ".webp" not in u:
            return u
    first = url_list[0]
    return first if isinstance(first, str) else ""


def _unwatermark(url: str) -> str:
    return url.replace("playwm", "play")


def _is_item_page(key: str, node: Any) -> bool:
    return (
        "/page" in key
        and key.startswith(("video_", "note_"))
        and isinstance(dig(node, "videoInfoRes", "item_list", 0), dict)
    )


@register
class DouyinExtractor(BaseExtractor):
    platform = "douyin"
    hosts = ("douyin.com", "iesdouyin.com")

    async def parse_share_url(self, raw: str) -> MediaRecord:
        url = self._url_from(raw)
        if "v.douyin.com" in host_of(url):
            url = await resolve_redirect(self.client, url, headers=headers(), platform=self.platform)
        video_id = video_id_from_url(url)
        logger.debug(f"抖音作品 ID: {video_id}")

        item = await self._fetch_item(video_id)
        record = self._build_record(item)
        await self._resolve_cdn(record)
        return self._log_result(record, url)

    async def _fetch_item(self, video_id: str) -> dict:
        try:
            return await self._item_from_page(video_id)
        except ResolutionError as page_err:
            logger.info(f"抖音页面解析失败，尝试接口: {page_err}")
            try:
                return await self._item_from_api(video_id)
            except ContentNotFound:
                raise
            except ResolutionError as api_err:
                logger.debug(f"抖音接口解析失败: {api_err}")
                raise page_err from api_err

    async def _item_from_page(self, video_id: str) -> dict:
        url = SHARE_PAGE.format(id=video_id)
        resp = await fetch(self.client, "GET", url, platform=self.platform, headers=headers())
        state = extract_state(resp.text, ROUTER_STATE, platform=self.platform)
        found = find_node(dig(state, "loaderData", default={}), _is_item_page)
        if not found:
            raise UpstreamFormatChanged("loaderData 中未找到作品数据", platform=self.platform, url=url)
        return dig(found[1], "videoInfoRes", "item_list", 0)

    async def _item_from_api(self, video_id: str) -> dict:
        web_id = "75" + numeric_id(15)
        api = SLIDES_API.format(web_id=web_id, id=video_id, a_bogus=rand_seq(64))
        base, query = api.split("?", 1)
        url = f"{base}?{sign_query(query, MOBILE_UA)}"
        data = await fetch_json(self.client, "GET", url, platform=self.platform, headers=headers())

        item = dig(data, "aweme_details", 0)
        if isinstance(item, dict):
            return item
        # filter_detail marks removed or hidden content.
        if isinstance(data, dict) and data.get("filter_detail"):
            reason = dig_str(data, "filter_detail", "detail_msg") or "已删除"
            raise ContentNotFound(f"作品不可用: {reason}", platform=self.platform, url=url)
        status = dig_str(data, "status_msg") or str(dig(data, "status_code", default=""))
        raise UpstreamFormatChanged(
            "接口未返回 aweme_details" + (f" ({status})" if status else ""), platform=self.platform, url=url
        )

    def _build_record(self, item: dict) -> MediaRecord:
        desc = dig_str(item, "desc")

        images = []
        for img in dig(item, "images", default=[]):
            url = no_webp_url(dig(img, "url_list"))
            if url:
                live = dig_str(img, "video", "play_addr", "url_list", 0) or None
                images.append(ImageItem(url=url, live_photo_url=live))

        video_url = ""
        qualities = []
        if not images:
            video = dig(item, "video", default={})
            video_url = _unwatermark(dig_str(video, "play_addr", "url_list", 0))
            for br in dig(video, "bit_rate", default=[]):
                q_url = _unwatermark(dig_str(br, "play_addr", "url_list", 0))
                if q_url:
                    qualities.append(VideoQuality(
                        quality=dig_str(br, "gear_name") or DEFAULT_GEAR,
                        url=q_url,
                        size=optional_int(dig(br, "play_addr", "data_size")),
                    ))
            if not video_url and qualities:
                video_url = qualities[0].url

        author = Author(
            uid=dig_str(item, "author", "sec_uid"),
            name=dig_str(item, "author", "nickname"),
            avatar=dig_str(item, "author", "avatar_thumb", "url_list", 0),
        )

        tags = hashtags(desc)
        for extra in dig(item, "text_extra", default=[]):
            name = dig_str(extra, "hashtag_name")
            if name:
                tags.add(name)

        return MediaRecord(
            platform=self.platform,
            title=desc,
            author=author,
            video_url=video_url,
            cover_url=no_webp_url(dig(item, "video", "cover", "url_list")),
            images=images,
            video_qualities=qualities,
            music=self._music(item),
            statistics=self._statistics(item),
            tags=tags,
            create_time=normalize_ts(dig(item, "create_time")),
        )

    @staticmethod
    def _music(item: dict) -> Optional[Music]:
        music = dig(item, "music")
        if not isinstance(music, dict):
            return None
        return Music(
            title=dig_str(music, "title"),
            author=dig_str(music, "author"),
            url=dig_str(music, "play_url", "url_list", 0) or dig_str(music, "play_url", "uri"),
            cover_url=dig_str(music, "cover_hd", "url_list", 0),
        )

    @staticmethod
    def _statistics(item: dict) -> Optional[Statistics]:
        stat = dig(item, "statistics")
        if not isinstance(stat, dict):
            return None
        return Statistics(
            likes=safe_int(stat.get("digg_count", 0)),
            views=safe_int(stat.get("play_count", 0)),
            favorites=safe_int(stat.get("collect_count", 0)),
            shares=safe_int(stat.get("share_count", 0)),
            comments=safe_int(stat.get("comment_count", 0)),
        )

    async def _resolve_cdn(self, record: MediaRecord) -> None:
        h = headers()
        if record.video_url:
            record.video_url = await resolve_cdn_url(self.client, record.video_url, headers=h)
        for q in record.video_qualities:
            q.url = await resolve_cdn_url(self.client, q.url, headers=h)
