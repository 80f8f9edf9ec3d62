import logging
from typing import Any
from urllib.parse import urlsplit

from ..embedded import pointer, pointer_str
from ..errors import ContentNotFound, UpstreamFormatChanged
from ..http import fetch_json, headers, resolve_redirect
from ..models import Author, ImageItem, MediaRecord
from .base import BaseExtractor, register

logger = logging.getLogger(__name__)

CELL_API = (
    "https://api.pipix.com/bds/cell/cell_comment/"
    "?offset=0&cell_type=1&api_version=1&cell_id={id}"
    "&ac=wifi&channel=huawei_1319_64&aid=1319&app_name=super"
)


# ─── 皮皮虾 ────────────────────────────────────────────────────────────────────

def item_id_from_location(location: str) -> str:
    path = urlsplit(location).path.strip("/")
    return path.replace("ppx/item/", "").replace("item/", "")


def _id_text(value: Any) -> str:
    return "" if value is None else str(value)


@register
class PipixiaExtractor(BaseExtractor):
    platform = "pipixia"
    hosts = ("pipix.com",)

    async def parse_share_url(self, raw: str) -> MediaRecord:
        url = self._url_from(raw)
        location = await resolve_redirect(self.client, url, headers=headers(), platform=self.platform)
        item_id = item_id_from_location(location)
        if not item_id:
            raise UpstreamFormatChanged(f"无法从跳转地址解析作品 ID: {location}", platform=self.platform, url=url)
        logger.debug(f"皮皮虾作品 ID: {item_id}")

        api = CELL_API.format(id=item_id)
        data = await fetch_json(self.client, "GET", api, platform=self.platform, headers=headers())
        item = pointer(data, "/data/cell_comments/0/comment_info/item")
        if not isinstance(item, dict):
            status = pointer(data, "/status_code")
            message = pointer_str(data, "/message") or pointer_str(data, "/prompt")
            if status not in (None, 0) and message:
                raise ContentNotFound(f"作品不可用: {message}", platform=self.platform, url=api)
            raise UpstreamFormatChanged("接口未返回作品数据", platform=self.platform, url=api)

        author_id = _id_text(pointer(item, "/author/id"))

        images = []
        for img in pointer(item, "/note/multi_image", default=[]):
            img_url = pointer_str(img, "/url_list/0/url")
            if img_url:
                images.append(ImageItem(url=img_url))

        video_url = pointer_str(item, "/video/video_high/url_list/0/url")
        # The author's own reply carries the watermark-free upload.
        for comment in pointer(item, "/comments", default=[]):
            if author_id and _id_text(pointer(comment, "/item/author/id")) == author_id:
                own = pointer_str(comment, "/item/video/video_high/url_list/0/url")
                if own:
                    video_url = own
                    break

        record = MediaRecord(
            platform=self.platform,
            title=pointer_str(item, "/content"),
            author=Author(
                uid=author_id,
                name=pointer_str(item, "/author/name"),
                avatar=pointer_str(item, "/author/avatar/download_list/0/url"),
            ),
            video_url=video_url,
            cover_url=pointer_str(item, "/cover/url_list/0/url"),
            images=images,
        )
        return self._log_result(record, url)
