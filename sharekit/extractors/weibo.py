import json
import logging
import re
from typing import Any, Optional
from urllib.parse import parse_qs, urlsplit

from ..embedded import ARRAY_INDEX_END, dig, extract_state, pointer, pointer_str
from ..errors import ResolutionError, UpstreamFormatChanged
from ..http import DESKTOP_UA, fetch, fetch_json, get_cookie_header, headers
from ..models import Author, ImageItem, MediaRecord, Statistics, VideoQuality
from ..utils import clean_html_text, hashtags, safe_int
from .base import BaseExtractor, register, path_segments

logger = logging.getLogger(__name__)

COMPONENT_API = "https://h5.video.weibo.com/api/component?page=/show/{id}"
COMPONENT_REFERER = "https://h5.video.weibo.com/show/{id}"
STATUS_API = "https://m.weibo.cn/statuses/show?id={id}"
RENDER_STATE = "$render_data"

# Visitor cookie accepted by the h5 video component endpoint.
VISITOR_COOKIE = (
    "login_sid_t=6b652c77c1a4bc50cb9d06b24923210d; cross_origin_proto=SSL; "
    "WBStorage=2ceabba76d81138d|undefined; _s_tentry=passport.weibo.com; "
    "Apache=7330066378690.048.1625663522444; SINAGLOBAL=7330066378690.048.1625663522444; "
    "ULV=1625663522450:1:1:1:7330066378690.048.1625663522444:; "
    "TC-V-WEIBO-G0=35846f552801987f8c1e8f7cec0e2230; "
    "SUB=_2AkMXuScYf8NxqwJRmf8RzmnhaoxwzwDEieKh5dbDJRMxHRl-yT9jqhALtRB6PDkJ9w8OaqJAbsgjdEWtIcilcZxHG7rw; "
    "SUBP=0033WrSXqPxfM72-Ws9jqgMF55529P9D9W5Qx3Mf.RCfFAKC3smW0px0; "
    "XSRF-TOKEN=JQSK02Ijtm4Fri-YIRu0-vNj"
)

MOBILE_API_UA = (
    "Mozilla/5.0 (iPhone; CPU iPhone OS 14_0 like Mac OS X) "
    "AppleWebKit/605.1.15 (KHTML, like Gecko) Version/14.0 Mobile/15E148 Safari/604.1"
)

STREAM_PRIORITY = ("stream_url_hd", "stream_url", "mp4_720p_mp4", "mp4_hd_url", "mp4_sd_url")
PIC_INFO_SIZES = ("largest", "original", "large", "bmiddle")
PICS_SIZES = ("large", "original", "bmiddle")

_SINAIMG_RE = re.compile(
    r"https?://[^/]+\.sinaimg\.cn/(?:mw\d+|orj\d+|large|original|bmiddle|thumbnail|crop[^/]*)/(.+)"
)
_SINAIMG_HOSTS = (
    "wx1.sinaimg.cn", "wx2.sinaimg.cn", "wx3.sinaimg.cn", "wx4.sinaimg.cn",
    "tvax1.sinaimg.cn", "tvax2.sinaimg.cn", "tva1.sinaimg.cn",
)
_SHOW_FID_RE = re.compile(r"video\.weibo\.com/show\?fid=([^\"&\s]+)")
_FID_RE = re.compile(r"fid=([^&\s]+)")


# ─── 微博 ──────────────────────────────────────────────────────────────────────

def convert_image_url(url: str) -> str:
    """Rewrite a sinaimg URL to its full-size ``ww1.sinaimg.cn/large`` form."""
    m = _SINAIMG_RE.match(url or "")
    if m:
        return f"https://ww1.sinaimg.cn/large/{m.group(1)}"
    for host in _SINAIMG_HOSTS:
        url = url.replace(host, "ww1.sinaimg.cn")
    return url


def _prefix_https(url: Any) -> str:
    return f"https:{url}" if isinstance(url, str) and url else ""


def _first_size(pic: Any, sizes: tuple[str, ...]) -> str:
    for size in sizes:
        url = pointer_str(pic, f"/{size}/url")
        if url:
            return url
    return ""


def pics_from_status(status: dict) -> list[ImageItem]:
    images = []
    pic_infos = status.get("pic_infos")
    if isinstance(pic_infos, dict):
        order = [p for p in status.get("pic_ids") or [] if p in pic_infos]
        order += [k for k in pic_infos if k not in order]
        for pid in order:
            url = _first_size(pic_infos[pid], PIC_INFO_SIZES)
            if url:
                images.append(ImageItem(url=convert_image_url(url)))
    elif isinstance(status.get("pics"), list):
        for pic in status["pics"]:
            url = _first_size(pic, PICS_SIZES) or pointer_str(pic, "/url")
            if url:
                images.append(ImageItem(url=convert_image_url(url)))
    return images


@register
class WeiboExtractor(BaseExtractor):
    platform = "weibo"
    hosts = ("weibo.com", "weibo.cn")

    async def parse_share_url(self, raw: str) -> MediaRecord:
        url = self._url_from(raw)
        if "show?fid=" in url:
            fid = parse_qs(urlsplit(url).query).get("fid", [""])[0]
            if not fid:
                raise UpstreamFormatChanged("链接中缺少 fid 参数", platform=self.platform, url=url)
            record = await self.parse_video_id(fid)
        elif "/tv/show/" in url:
            record = await self.parse_video_id(urlsplit(url).path.replace("/tv/show/", "").strip("/"))
        else:
            segments = path_segments(url)
            if len(segments) < 2:
                raise UpstreamFormatChanged(f"不支持的微博链接格式: {url}", platform=self.platform, url=url)
            record = await self.parse_post(segments[-1], url)
        return self._log_result(record, url)

    async def parse_video_id(self, video_id: str) -> MediaRecord:
        """Video component endpoint used by ``video.weibo.com/show`` pages."""
        api = COMPONENT_API.format(id=video_id)
        h = headers(
            referer=COMPONENT_REFERER.format(id=video_id),
            cookie=get_cookie_header(self.platform, VISITOR_COOKIE),
        )
        h["Content-Type"] = "application/x-www-form-urlencoded"
        body = "data=" + json.dumps({"Component_Play_Playinfo": {"oid": video_id}}, separators=(",", ":"))
        data = await fetch_json(self.client, "POST", api, platform=self.platform, headers=h, content=body)

        info = pointer(data, "/data/Component_Play_Playinfo")
        if not isinstance(info, dict):
            raise UpstreamFormatChanged("视频组件接口返回格式异常", platform=self.platform, url=api)

        qualities = []
        urls = info.get("urls")
        if isinstance(urls, dict):
            for label, u in urls.items():
                if isinstance(u, str) and u:
                    qualities.append(VideoQuality(quality=label, url=_prefix_https(u)))

        return MediaRecord(
            platform=self.platform,
            title=pointer_str(info, "/title"),
            author=Author(
                uid=str(pointer(info, "/user/id", default="")),
                name=pointer_str(info, "/author"),
                avatar=_prefix_https(info.get("avatar")),
            ),
            video_url=qualities[0].url if qualities else "",
            cover_url=_prefix_https(info.get("cover_image")),
            video_qualities=qualities,
        )

    async def parse_post(self, post_id: str, original_url: str) -> MediaRecord:
        status = await self._mobile_status(post_id)
        if status is None:
            return await self._parse_html(original_url)

        record = self._record_from_status(status)
        fid = _FID_RE.search(record.video_url) if "video.weibo.com/show?fid=" in record.video_url else None
        if fid:
            try:
                video = await self.parse_video_id(fid.group(1))
            except ResolutionError as e:
                logger.warning(f"微博视频组件解析失败: {e}")
            else:
                record.video_url = video.video_url
                record.video_qualities = video.video_qualities
                record.cover_url = record.cover_url or video.cover_url
        return record

    async def _mobile_status(self, post_id: str) -> Optional[dict]:
        api = STATUS_API.format(id=post_id)
        h = headers(user_agent=MOBILE_API_UA, referer="https://m.weibo.cn/")
        h["Content-Type"] = "application/json;charset=UTF-8"
        h["X-Requested-With"] = "XMLHttpRequest"
        try:
            data = await fetch_json(self.client, "GET", api, platform=self.platform, headers=h)
        except ResolutionError as e:
            logger.info(f"微博移动端接口不可用，改用网页: {e}")
            return None
        status = data.get("data") if isinstance(data, dict) else None
        if not isinstance(status, dict):
            logger.info(f"微博移动端接口无数据 (ok={dig(data, 'ok')}): {dig(data, 'msg', default='')}")
            return None
        return status

    def _record_from_status(self, status: dict) -> MediaRecord:
        raw_text = status.get("text") or ""

        video_url = ""
        cover_url = ""
        page_info = status.get("page_info")
        if isinstance(page_info, dict):
            media = page_info.get("media_info")
            if isinstance(media, dict):
                for key in STREAM_PRIORITY:
                    if isinstance(media.get(key), str) and media[key]:
                        video_url = media[key]
                        break
            page_pic = page_info.get("page_pic")
            pic = page_pic if isinstance(page_pic, str) else pointer_str(page_pic, "/url")
            if pic:
                cover_url = convert_image_url(pic)

        if not video_url:
            m = _SHOW_FID_RE.search(raw_text)
            if m:
                video_url = f"https://video.weibo.com/show?fid={m.group(1)}"

        user = status.get("user") if isinstance(status.get("user"), dict) else {}
        return MediaRecord(
            platform=self.platform,
            title=clean_html_text(raw_text),
            author=Author(
                uid=str(pointer(user, "/id", default="")),
                name=pointer_str(user, "/screen_name"),
                avatar=convert_image_url(pointer_str(user, "/avatar_large")),
            ),
            video_url=video_url,
            cover_url=cover_url,
            images=pics_from_status(status),
            statistics=Statistics(
                likes=safe_int(status.get("attitudes_count", 0)),
                shares=safe_int(status.get("reposts_count", 0)),
                comments=safe_int(status.get("comments_count", 0)),
            ),
            tags=hashtags(clean_html_text(raw_text)),
        )

    async def _parse_html(self, url: str) -> MediaRecord:
        resp = await fetch(self.client, "GET", url, platform=self.platform, headers=headers(user_agent=DESKTOP_UA))
        state = extract_state(resp.text, RENDER_STATE, terminator=ARRAY_INDEX_END, platform=self.platform)
        status = dig(state, "status")
        if not isinstance(status, dict):
            raise UpstreamFormatChanged("$render_data 中缺少 status", platform=self.platform, url=url)
        user = status.get("user") if isinstance(status.get("user"), dict) else {}
        return MediaRecord(
            platform=self.platform,
            title=clean_html_text(status.get("text") or ""),
            author=Author(
                uid=str(pointer(user, "/id", default="")),
                name=pointer_str(user, "/screen_name"),
                avatar=pointer_str(user, "/avatar_large"),
            ),
            images=pics_from_status({"pics": status.get("pics")}),
        )
