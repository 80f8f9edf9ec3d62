import base64
import json

import httpx
import pytest
import respx

from sharekit.errors import ContentNotFound
from sharekit.extractors.xigua import INFO_API, XiguaExtractor, best_play_info, play_info_token
from sharekit.http import create_client

ITEM_ID = "7300000000000000003"
SHARE = "https://v.ixigua.com/AbCd/"
VIDEO_PAGE = f"https://www.ixigua.com/{ITEM_ID}"
TOKEN = "Action=GetPlayInfo&Version=2020-08-01&Vid=v0&Signature=abc"


def auth_token(payload):
    return base64.b64encode(json.dumps(payload).encode("utf-8")).decode("ascii")


def info_payload(**data):
    base = {
        "title": "西瓜视频标题",
        "poster_url": "https://p3.pstatp.com/poster.jpg",
        "detail_source": "某头条号",
        "media_user": {"user_id": 55, "screen_name": "西瓜作者", "avatar_url": "https://p3.pstatp.com/a.jpg"},
        "play_auth_token_v2": auth_token({"GetPlayInfoToken": TOKEN}),
    }
    base.update(data)
    return {"success": True, "data": base}


VOD = {"Result": {"Data": {"PlayInfoList": [
    {"Definition": "480p", "Height": 480, "MainPlayUrl": "https://v.ixigua.com/480.mp4", "Size": 100},
    {"Definition": "720p", "Height": 720, "MainPlayUrl": "https://v.ixigua.com/720a.mp4", "Size": 200},
    {"Definition": "720p", "Height": 720, "MainPlayUrl": "https://v.ixigua.com/720b.mp4", "Size": 210},
]}}}


@pytest.mark.unit
class Describe_helpers:
    def test_play_info_token(self):
        """解码 play_auth_token_v2 得到 GetPlayInfoToken。"""
        assert play_info_token(auth_token({"GetPlayInfoToken": TOKEN})) == TOKEN
        with pytest.raises(ValueError):
            play_info_token(auth_token({"Other": 1}))
        with pytest.raises(ValueError):
            play_info_token("!!!not-base64!!!")

    def test_best_play_info_first_wins_ties(self):
        """取分辨率最高的一项，相同时取靠前的。"""
        infos = VOD["Result"]["Data"]["PlayInfoList"]
        assert best_play_info(infos)["MainPlayUrl"] == "https://v.ixigua.com/720a.mp4"
        assert best_play_info([]) == {}


@pytest.mark.unit
class Describe_XiguaExtractor:
    @respx.mock
    async def test_video(self):
        """短链跳转后解析视频信息，选择最高清晰度。"""
        respx.get(SHARE).mock(return_value=httpx.Response(302, headers={"Location": f"{VIDEO_PAGE}?logTag=abc"}))
        respx.get(INFO_API.format(id=ITEM_ID)).mock(return_value=httpx.Response(200, json=info_payload()))
        vod = respx.get(host="vod.bytedanceapi.com", path="/").mock(return_value=httpx.Response(200, json=VOD))

        async with create_client() as client:
            record = await XiguaExtractor(client).parse_share_url(SHARE)

        assert vod.calls.last.request.url.params["Vid"] == "v0"
        assert vod.calls.last.request.headers["User-Agent"] == "Mozilla/5.0"
        assert record.platform == "xigua"
        assert record.title == "西瓜视频标题"
        assert record.author.uid == "55"
        assert record.author.name == "西瓜作者"
        assert record.cover_url == "https://p3.pstatp.com/poster.jpg"
        assert record.video_url == "https://v.ixigua.com/720a.mp4"
        assert [q.size for q in record.video_qualities] == [100, 200, 210]

    @respx.mock
    async def test_direct_link_without_redirect(self):
        """非短链直接使用原地址；缺少 token 时视频地址为空。"""
        respx.get(VIDEO_PAGE).mock(return_value=httpx.Response(200, text="<html></html>"))
        respx.get(INFO_API.format(id=ITEM_ID)).mock(return_value=httpx.Response(
            200, json=info_payload(play_auth_token_v2="", media_user=None)
        ))

        async with create_client() as client:
            record = await XiguaExtractor(client).parse_share_url(VIDEO_PAGE)

        assert record.video_url == ""
        assert record.video_qualities == []
        assert record.author.name == "某头条号"
        assert record.author.uid == ""

    @respx.mock
    async def test_vod_failure_degrades(self):
        """播放接口不可用时返回无视频的记录。"""
        respx.get(SHARE).mock(return_value=httpx.Response(302, headers={"Location": VIDEO_PAGE}))
        respx.get(INFO_API.format(id=ITEM_ID)).mock(return_value=httpx.Response(200, json=info_payload()))
        respx.get(host="vod.bytedanceapi.com", path="/").mock(side_effect=httpx.ConnectError)

        async with create_client() as client:
            record = await XiguaExtractor(client).parse_share_url(SHARE)

        assert record.title == "西瓜视频标题"
        assert record.video_url == ""

    @respx.mock
    async def test_unsuccessful_info(self):
        """头条接口返回失败时抛出 ContentNotFound。"""
        respx.get(SHARE).mock(return_value=httpx.Response(302, headers={"Location": VIDEO_PAGE}))
        respx.get(INFO_API.format(id=ITEM_ID)).mock(return_value=httpx.Response(200, json={"success": False}))

        async with create_client() as client:
            with pytest.raises(ContentNotFound):
                await XiguaExtractor(client).parse_share_url(SHARE)
