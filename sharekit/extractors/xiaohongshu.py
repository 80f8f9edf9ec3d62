import logging

from ..embedded import dig, dig_str, extract_state, first_value
from ..errors import UpstreamFormatChanged
from ..http import follow_redirects, get_cookie_header, headers
from ..models import Author, ImageItem, MediaRecord, Statistics
from ..utils import https, normalize_ts, safe_int
from .base import BaseExtractor, register

logger = logging.getLogger(__name__)

INITIAL_STATE = "window.__INITIAL_STATE__"
# Anonymous visitors get a consent wall without these placeholder cookies.
DEFAULT_COOKIE = "abRequestId=0000; webId=0000; gibberish=0000;"
TITLE_FALLBACK_LEN = 30
STREAM_CODECS = ("h264", "h265", "av1")


# ─── 小红书 ────────────────────────────────────────────────────────────────────

def find_note(state: dict) -> dict:
    """The note object: ``note.note`` or the first entry of ``note.noteDetailMap``."""
    note = dig(state, "note", "note")
    if isinstance(note, dict) and note:
        return note
    detail_map = dig(state, "note", "noteDetailMap")
    if isinstance(detail_map, dict):
        entry = first_value(detail_map, lambda v: isinstance(v.get("note"), dict) and bool(v["note"]))
        if entry is None:
            raise UpstreamFormatChanged("noteDetailMap 为空", platform="xiaohongshu")
        return entry["note"]
    raise UpstreamFormatChanged("__INITIAL_STATE__ 中未找到笔记数据", platform="xiaohongshu")


def stream_url(video: dict) -> str:
    for codec in STREAM_CODECS:
        url = dig_str(video, "media", "stream", codec, 0, "masterUrl")
        if url:
            return https(url)
    return ""


@register
class XiaohongshuExtractor(BaseExtractor):
    platform = "xiaohongshu"
    hosts = ("xhslink.com", "xiaohongshu.com")

    async def parse_share_url(self, raw: str) -> MediaRecord:
        url = self._url_from(raw)
        h = headers(mobile=False, cookie=get_cookie_header(self.platform, DEFAULT_COOKIE))
        final_url, resp = await follow_redirects(self.client, url, headers=h, platform=self.platform)
        state = extract_state(resp.text, INITIAL_STATE, platform=self.platform)
        note = find_note(state)

        title = dig_str(note, "title")
        desc = dig_str(note, "desc")
        if not title:
            title = desc[:TITLE_FALLBACK_LEN]

        user = dig(note, "user")
        if not isinstance(user, dict):
            raise UpstreamFormatChanged("笔记缺少作者信息", platform=self.platform, url=final_url)
        author = Author(
            uid=dig_str(user, "userId"),
            name=dig_str(user, "nickname", default="Unknown"),
            avatar=dig_str(user, "avatar"),
        )

        image_list = dig(note, "imageList", default=[])
        cover_url = https(dig_str(image_list, 0, "urlDefault"))

        video_url = ""
        images = []
        if dig_str(note, "type") == "video":
            video_url = stream_url(dig(note, "video", default={}))
        else:
            for img in image_list:
                img_url = https(dig_str(img, "urlDefault"))
                if img_url:
                    live = https(self._live_photo(img)) or None
                    images.append(ImageItem(url=img_url, live_photo_url=live))

        interact = dig(note, "interactInfo")
        stats = None
        if isinstance(interact, dict):
            stats = Statistics(
                likes=safe_int(interact.get("likedCount", 0)),
                favorites=safe_int(interact.get("collectedCount", 0)),
                shares=safe_int(interact.get("shareCount", 0)),
                comments=safe_int(interact.get("commentCount", 0)),
            )

        tags = {dig_str(t, "name") for t in dig(note, "tagList", default=[])} - {""}

        record = MediaRecord(
            platform=self.platform,
            title=title,
            author=author,
            video_url=video_url,
            cover_url=cover_url,
            images=images,
            statistics=stats,
            tags=tags,
            create_time=normalize_ts(dig(note, "time")),
        )
        return self._log_result(record, final_url)

    @staticmethod
    def _live_photo(img: dict) -> str:
        if not img.get("livePhoto"):
            return ""
        return stream_url({"media": {"stream": dig(img, "stream", default={})}})
