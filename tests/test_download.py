import httpx
import pytest
import respx

from sharekit.download import COMPLETED, DOWNLOADING, FAILED, download, download_record, media_urls
from sharekit.errors import UpstreamUnreachable
from sharekit.http import create_client
from sharekit.models import ImageItem, MediaRecord

MEDIA = "https://cdn.example.com/v.mp4"


@pytest.mark.unit
class Describe_download:
    @respx.mock
    async def test_reports_progress_and_writes_file(self, tmp_path):
        """逐块报告进度，最后报告完成。"""
        respx.get(MEDIA).mock(return_value=httpx.Response(200, content=b"x" * 100))
        events = []

        async with create_client() as client:
            path = await download(client, MEDIA, tmp_path / "out" / "v.mp4", progress=events.append, download_id="d1")

        assert path.read_bytes() == b"x" * 100
        assert {e.id for e in events} == {"d1"}
        assert events[0].status == DOWNLOADING
        assert events[-1].status == COMPLETED
        assert events[-1].downloaded_size == 100
        assert events[-1].total_size == 100

    @respx.mock
    async def test_follows_cdn_redirects(self, tmp_path):
        """下载时跟随 CDN 跳转。"""
        respx.get(MEDIA).mock(return_value=httpx.Response(302, headers={"Location": "https://edge.example.com/v.mp4"}))
        respx.get("https://edge.example.com/v.mp4").mock(return_value=httpx.Response(200, content=b"abc"))

        async with create_client() as client:
            path = await download(client, MEDIA, tmp_path / "v.mp4")

        assert path.read_bytes() == b"abc"

    @respx.mock
    async def test_http_error_reports_failure(self, tmp_path):
        """HTTP 错误时报告失败并抛出 UpstreamUnreachable。"""
        respx.get(MEDIA).mock(return_value=httpx.Response(404))
        existing = tmp_path / "v.mp4"
        existing.write_bytes(b"old")
        events = []

        async with create_client() as client:
            with pytest.raises(UpstreamUnreachable):
                await download(client, MEDIA, existing, progress=events.append)

        assert events[-1].status == FAILED
        assert existing.read_bytes() == b"old"

    @respx.mock
    async def test_interrupted_stream_removes_partial_file(self, tmp_path):
        """传输中断时删除已写入的部分文件。"""
        class BrokenStream(httpx.AsyncByteStream):
            async def __aiter__(self):
                yield b"x" * 10
                raise httpx.ReadError("connection reset")

        respx.get(MEDIA).mock(
            return_value=httpx.Response(200, headers={"Content-Length": "100"}, stream=BrokenStream())
        )
        target = tmp_path / "v.mp4"
        events = []

        async with create_client() as client:
            with pytest.raises(UpstreamUnreachable):
                await download(client, MEDIA, target, progress=events.append)

        assert not target.exists()
        assert events[0].downloaded_size == 10
        assert events[-1].status == FAILED


@pytest.mark.unit
class Describe_download_record:
    def test_media_urls(self):
        """图集包含实况视频；视频记录只有一个地址。"""
        gallery = MediaRecord(images=[ImageItem(url="https://i/1.jpg", live_photo_url="https://i/1.mp4")])
        assert media_urls(gallery) == [("https://i/1.jpg", "jpg"), ("https://i/1.mp4", "mp4")]
        assert media_urls(MediaRecord(video_url="https://v/1.mp4")) == [("https://v/1.mp4", "mp4")]
        assert media_urls(MediaRecord()) == []

    @respx.mock
    async def test_failed_files_are_skipped(self, tmp_path):
        """单个文件失败不影响其他文件。"""
        respx.get("https://cdn.example.com/1.jpg").mock(return_value=httpx.Response(200, content=b"1"))
        respx.get("https://cdn.example.com/2.jpg").mock(return_value=httpx.Response(404))
        respx.get("https://cdn.example.com/2.mp4").mock(return_value=httpx.Response(200, content=b"2"))
        record = MediaRecord(
            platform="weibo",
            title="t",
            images=[
                ImageItem(url="https://cdn.example.com/1.jpg"),
                ImageItem(url="https://cdn.example.com/2.jpg", live_photo_url="https://cdn.example.com/2.mp4"),
            ],
        )

        async with create_client() as client:
            paths = await download_record(client, record, str(tmp_path))

        names = sorted(p.name for p in paths)
        assert len(names) == 2
        assert names[0].startswith("weibo_") and names[0].endswith("_0.jpg")
        assert names[1].endswith("_2.mp4")
