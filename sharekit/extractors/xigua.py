import base64
import json
import logging
from urllib.parse import urlsplit

from ..embedded import dig, dig_str
from ..errors import ContentNotFound, NoRedirectLocation, ResolutionError, UpstreamFormatChanged
from ..http import fetch_json, headers, resolve_redirect
from ..models import Author, MediaRecord, VideoQuality
from ..utils import optional_int
from .base import BaseExtractor, register

logger = logging.getLogger(__name__)

INFO_API = "https://m.toutiao.com/i{id}/info/"
VOD_API = "https://vod.bytedanceapi.com/?{token}"
# The VOD gateway rejects browser-looking agents with a signature mismatch.
VOD_UA = "Mozilla/5.0"


# ─── 西瓜视频 ──────────────────────────────────────────────────────────────────

def item_id_from_url(url: str) -> str:
    path = urlsplit(url).path.rstrip("/")
    return path.rsplit("/", 1)[-1]


def play_info_token(auth_token: str) -> str:
    """``GetPlayInfoToken`` from the base64 JSON in ``play_auth_token_v2``."""
    decoded = json.loads(base64.b64decode(auth_token).decode("utf-8"))
    token = decoded.get("GetPlayInfoToken") if isinstance(decoded, dict) else None
    if not isinstance(token, str) or not token:
        raise ValueError("GetPlayInfoToken missing")
    return token


def best_play_info(play_infos: list) -> dict:
    """Entry with the greatest Height; the earliest one wins ties."""
    best = None
    for info in play_infos:
        height = optional_int(dig(info, "Height")) or 0
        if best is None or height > best[0]:
            best = (height, info)
    return best[1] if best else {}


@register
class XiguaExtractor(BaseExtractor):
    platform = "xigua"
    hosts = ("ixigua.com",)

    async def parse_share_url(self, raw: str) -> MediaRecord:
        url = self._url_from(raw)
        try:
            target = await resolve_redirect(self.client, url, headers=headers(), platform=self.platform)
        except NoRedirectLocation:
            target = url
        item_id = item_id_from_url(target)
        if not item_id:
            raise UpstreamFormatChanged(f"无法解析视频 ID: {target}", platform=self.platform, url=url)

        api = INFO_API.format(id=item_id)
        info = await fetch_json(self.client, "GET", api, platform=self.platform, headers=headers(mobile=False))
        if dig(info, "success") is not True:
            raise ContentNotFound("头条接口返回失败", platform=self.platform, url=api)
        data = dig(info, "data")
        if not isinstance(data, dict):
            raise UpstreamFormatChanged("头条接口缺少 data", platform=self.platform, url=api)

        video_url, qualities = await self._play_urls(dig_str(data, "play_auth_token_v2"))

        source = dig_str(data, "detail_source")
        user = data.get("media_user")
        if isinstance(user, dict):
            author = Author(
                uid=str(dig(user, "user_id", default="")),
                name=dig_str(user, "screen_name") or source,
                avatar=dig_str(user, "avatar_url"),
            )
        else:
            author = Author(name=source)

        record = MediaRecord(
            platform=self.platform,
            title=dig_str(data, "title"),
            author=author,
            video_url=video_url,
            cover_url=dig_str(data, "poster_url"),
            video_qualities=qualities,
        )
        return self._log_result(record, url)

    async def _play_urls(self, auth_token: str) -> tuple[str, list[VideoQuality]]:
        if not auth_token:
            logger.warning("西瓜视频缺少 play_auth_token_v2，无法获取播放地址")
            return "", []
        try:
            token = play_info_token(auth_token)
        except ValueError as e:
            logger.warning(f"play_auth_token_v2 解码失败: {e}")
            return "", []

        try:
            vod = await fetch_json(
                self.client, "GET", VOD_API.format(token=token),
                platform=self.platform, headers=headers(user_agent=VOD_UA),
            )
        except ResolutionError as e:
            logger.warning(f"西瓜视频播放信息获取失败: {e}")
            return "", []

        play_infos = [i for i in dig(vod, "Result", "Data", "PlayInfoList", default=[]) if isinstance(i, dict)]
        qualities = [
            VideoQuality(
                quality=dig_str(i, "Definition"),
                url=dig_str(i, "MainPlayUrl"),
                size=optional_int(dig(i, "Size")),
            )
            for i in play_infos
            if dig_str(i, "MainPlayUrl")
        ]
        return dig_str(best_play_info(play_infos), "MainPlayUrl"), qualities
