import json
from pathlib import Path
from typing import Any

import pytest


@pytest.fixture
def fixture_dir() -> Path:
    return Path(__file__).parent / "fixtures"


@pytest.fixture
def load_fixture(fixture_dir):
    def _loader(name: str) -> Any:
        with open(fixture_dir / name, "r", encoding="utf-8") as f:
            return json.load(f)
    return _loader


@pytest.fixture
def state_page():
    """Wrap a JSON value in a page that assigns it to ``variable`` inside a script tag."""
    def _page(variable: str, value: Any, raw: str = "") -> str:
        body = raw or json.dumps(value, ensure_ascii=False)
        return (
            "<!DOCTYPE html><html><head><title>t</title></head><body>"
            "<div id=\"root\"></div>"
            f"<script>{variable} = {body}</script>"
            "<script>console.log('tail')</script>"
            "</body></html>"
        )
    return _page


@pytest.fixture
def douyin_item(load_fixture):
    return load_fixture("douyin_item.json")


@pytest.fixture
def douyin_note(load_fixture):
    return load_fixture("douyin_note.json")


@pytest.fixture
def xhs_state(load_fixture):
    return load_fixture("xhs_state.json")


@pytest.fixture
def weibo_status(load_fixture):
    return load_fixture("weibo_status.json")


@pytest.fixture
def weibo_component(load_fixture):
    return load_fixture("weibo_component.json")


@pytest.fixture
def kuaishou_state(load_fixture):
    return load_fixture("kuaishou_state.json")


@pytest.fixture
def pipixia_cell(load_fixture):
    return load_fixture("pipixia_cell.json")


@pytest.fixture
def bilibili_view(load_fixture):
    return load_fixture("bilibili_view.json")


@pytest.fixture
def bilibili_playurl(load_fixture):
    return load_fixture("bilibili_playurl.json")


def assert_gallery_xor_video(record):
    if record.images:
        assert record.video_url == ""
        assert record.video_qualities == []
