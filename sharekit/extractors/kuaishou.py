import logging

from ..embedded import dig, dig_str, extract_state, find_node_with_keys
from ..errors import ContentNotFound, UpstreamFormatChanged
from ..http import follow_redirects, get_cookie_header, headers
from ..models import Author, ImageItem, MediaRecord, Statistics, VideoQuality
from ..utils import normalize_ts, optional_int, safe_int
from .base import BaseExtractor, register

logger = logging.getLogger(__name__)

KUAISHOU_UA = (
    "Mozilla/5.0 (iPhone; CPU iPhone OS 26_0 like Mac OS X) "
    "AppleWebKit/605.1.15 (KHTML, like Gecko) Version/26.0 Mobile/15E148 Safari/604.1"
)
PAGE_ACCEPT = (
    "text/html,application/xhtml+xml,application/xml;q=0.9,image/avif,image/webp,"
    "image/apng,*/*;q=0.8,application/signed-exchange;v=b3;q=0.7"
)
DEFAULT_COOKIE = "did=web_d1326127361a7a02596e1e273063544d; didv=1686713337000;"
INIT_STATE = "window.INIT_STATE"
# Long-video share pages have no embedded state; the photo page does.
LONG_VIDEO_REWRITE = {"/fw/long-video/": "/fw/photo/"}


# ─── 快手 ──────────────────────────────────────────────────────────────────────

def find_video_node(state: dict) -> dict:
    node = find_node_with_keys(state, "photo", "result")
    if node is None:
        node = state.get("visionVideoDetail") if isinstance(state, dict) else None
    if not isinstance(node, dict):
        raise UpstreamFormatChanged("INIT_STATE 中未找到作品数据", platform="kuaishou")
    return node


def qualities_from_manifest(photo: dict) -> list[VideoQuality]:
    out = []
    for adaptation in dig(photo, "manifest", "adaptationSet", default=[]):
        for rep in dig(adaptation, "representation", default=[]):
            url = dig_str(rep, "url") or dig_str(rep, "backupUrl", 0)
            if url:
                label = dig_str(rep, "qualityLabel") or dig_str(rep, "qualityType") or str(dig(rep, "height", default=""))
                out.append(VideoQuality(quality=label, url=url, size=optional_int(dig(rep, "fileSize"))))
    return out


@register
class KuaishouExtractor(BaseExtractor):
    platform = "kuaishou"
    hosts = ("kuaishou.com", "chenzhongtech.com")

    async def parse_share_url(self, raw: str) -> MediaRecord:
        url = self._url_from(raw)
        h = headers(user_agent=KUAISHOU_UA, cookie=get_cookie_header(self.platform, DEFAULT_COOKIE))
        h["Accept"] = PAGE_ACCEPT
        final_url, resp = await follow_redirects(
            self.client, url, headers=h, rewrite=LONG_VIDEO_REWRITE, platform=self.platform
        )

        state = extract_state(resp.text, INIT_STATE, platform=self.platform)
        node = find_video_node(state)
        photo = node.get("photo")
        if not isinstance(photo, dict):
            if node.get("result") not in (None, 1):
                raise ContentNotFound(
                    f"作品不可用 (result={node.get('result')})", platform=self.platform, url=final_url
                )
            raise UpstreamFormatChanged("作品数据缺少 photo 字段", platform=self.platform, url=final_url)

        images = []
        cdn = dig_str(photo, "ext_params", "atlas", "cdn", 0)
        if cdn:
            for path in dig(photo, "ext_params", "atlas", "list", default=[]):
                if isinstance(path, str):
                    images.append(ImageItem(url=f"https://{cdn}/{path}"))

        record = MediaRecord(
            platform=self.platform,
            title=dig_str(photo, "caption"),
            author=Author(
                uid=str(dig(photo, "userEid", default="") or dig(photo, "userId", default="")),
                name=dig_str(photo, "userName"),
                avatar=dig_str(photo, "headUrl"),
            ),
            video_url=dig_str(photo, "mainMvUrls", 0, "url"),
            cover_url=dig_str(photo, "coverUrls", 0, "url"),
            images=images,
            video_qualities=qualities_from_manifest(photo),
            statistics=Statistics(
                likes=safe_int(photo.get("likeCount", 0)),
                views=safe_int(photo.get("viewCount", 0)),
                comments=safe_int(photo.get("commentCount", 0)),
            ),
            create_time=normalize_ts(photo.get("timestamp")),
        )
        return self._log_result(record, final_url)
