import json
import logging
import os
from pathlib import Path
from typing import Optional
from urllib.parse import urljoin

import httpx

from .errors import (
    NoRedirectLocation,
    TooManyRedirects,
    UpstreamFormatChanged,
    UpstreamUnreachable,
)

logger = logging.getLogger(__name__)

MOBILE_UA = (
    "Mozilla/5.0 (iPhone; CPU iPhone OS 16_0 like Mac OS X) "
    "AppleWebKit/605.1.15 (KHTML, like Gecko) "
    "Version/16.0 Mobile/15E148 Safari/604.1"
)

DESKTOP_UA = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) "
    "AppleWebKit/537.36 (KHTML, like Gecko) "
    "Chrome/121.0.0.0 Safari/537.36"
)

TIMEOUT = float(os.getenv("SHAREKIT_TIMEOUT", "15.0"))
MAX_REDIRECT_HOPS = 5

COOKIES_PATH = Path(os.getenv("SHAREKIT_COOKIES", str(Path.home() / ".sharekit" / "cookies.json")))

NETWORK_EXCEPTIONS = (httpx.HTTPError,)

PARSE_EXCEPTIONS = (
    json.JSONDecodeError,
    ValueError,
    IndexError,
    TypeError,
)


def load_cookies(path: Optional[Path] = None) -> dict[str, dict]:
    """Load per-platform cookies from ~/.sharekit/cookies.json if it exists."""
    cookie_path = path or COOKIES_PATH
    if cookie_path.exists():
        try:
            with open(cookie_path, encoding="utf-8") as f:
                data = json.load(f)
            return data if isinstance(data, dict) else {}
        except (OSError, json.JSONDecodeError) as e:
            logger.warning(f"Failed to load cookies: {e}")
    return {}


_cookies_store = load_cookies()


def get_cookies(platform: str) -> dict[str, str]:
    """Get cookies for a platform. Supports both formats:
    - Simple: {"weibo": {"SUB": "xxx"}}
    - Nested: {"weibo": {"cookies": {"SUB": "xxx"}, "updated_at": "..."}}
    """
    entry = _cookies_store.get(platform, {})
    if isinstance(entry, dict) and isinstance(entry.get("cookies"), dict):
        return entry["cookies"]
    return entry if isinstance(entry, dict) else {}


def get_cookie_header(platform: str, default: str = "") -> str:
    """Cookie header value, preferring user-supplied cookies over the built-in default."""
    cookies = get_cookies(platform)
    if not cookies:
        return default
    return "; ".join(f"{k}={v}" for k, v in cookies.items())


def headers(mobile: bool = True, referer: str = "", cookie: str = "", user_agent: str = "") -> dict[str, str]:
    h = {
        "User-Agent": user_agent or (MOBILE_UA if mobile else DESKTOP_UA),
        "Accept-Language": "zh-CN,zh;q=0.9,en;q=0.8",
    }
    if referer:
        h["Referer"] = referer
    if cookie:
        h["Cookie"] = cookie
    return h


def create_client(timeout: float = TIMEOUT, **kwargs) -> httpx.AsyncClient:
    """Build the shared client. Redirects are never followed implicitly."""
    return httpx.AsyncClient(
        follow_redirects=False,
        timeout=timeout,
        headers=headers(mobile=True),
        **kwargs,
    )


async def fetch(client: httpx.AsyncClient, method: str, url: str, platform: str = "", **kwargs) -> httpx.Response:
    try:
        resp = await client.request(method, url, **kwargs)
    except NETWORK_EXCEPTIONS as e:
        logger.debug(f"{method} {url} failed: {e!r}")
        raise UpstreamUnreachable(f"请求失败: {e}", platform=platform, url=url) from e
    logger.debug(f"{method} {url} -> {resp.status_code}")
    return resp


async def fetch_json(client: httpx.AsyncClient, method: str, url: str, platform: str = "", **kwargs):
    resp = await fetch(client, method, url, platform=platform, **kwargs)
    try:
        return resp.json()
    except PARSE_EXCEPTIONS as e:
        raise UpstreamFormatChanged(
            f"接口返回非 JSON 内容 (HTTP {resp.status_code})", platform=platform, url=url
        ) from e


def _apply_rewrite(url: str, rewrite: Optional[dict[str, str]]) -> str:
    for old, new in (rewrite or {}).items():
        if old in url:
            url = url.replace(old, new)
    return url


def _location(resp: httpx.Response) -> str:
    if not resp.is_redirect:
        return ""
    loc = resp.headers.get("location", "")
    return urljoin(str(resp.request.url), loc) if loc else ""


async def resolve_redirect(
    client: httpx.AsyncClient,
    url: str,
    headers: Optional[dict[str, str]] = None,
    rewrite: Optional[dict[str, str]] = None,
    platform: str = "",
) -> str:
    """Issue one GET with redirects disabled and return the Location target."""
    resp = await fetch(client, "GET", url, platform=platform, headers=headers, follow_redirects=False)
    loc = _location(resp)
    if not loc:
        raise NoRedirectLocation(
            f"未返回跳转地址 (HTTP {resp.status_code})", platform=platform, url=url
        )
    return _apply_rewrite(loc, rewrite)


async def follow_redirects(
    client: httpx.AsyncClient,
    url: str,
    headers: Optional[dict[str, str]] = None,
    rewrite: Optional[dict[str, str]] = None,
    max_hops: int = MAX_REDIRECT_HOPS,
    platform: str = "",
) -> tuple[str, httpx.Response]:
    """Follow a redirect chain by hand, at most ``max_hops`` hops.

    Returns the final URL and its (non-redirect) response.
    """
    current = url
    for _ in range(max_hops):
        resp = await fetch(client, "GET", current, platform=platform, headers=headers, follow_redirects=False)
        loc = _location(resp)
        if not loc:
            return current, resp
        current = _apply_rewrite(loc, rewrite)
        logger.debug(f"redirect -> {current}")
    raise TooManyRedirects(
        f"跳转次数超过 {max_hops} 次", hops=max_hops, platform=platform, url=url
    )


async def resolve_cdn_url(client: httpx.AsyncClient, url: str, headers: Optional[dict[str, str]] = None) -> str:
    """Resolve one CDN redirect hop; keep ``url`` when the CDN does not redirect."""
    if not url:
        return url
    try:
        # Streamed so the media body is never downloaded.
        async with client.stream("GET", url, headers=headers, follow_redirects=False) as resp:
            return _location(resp) or url
    except NETWORK_EXCEPTIONS as e:
        logger.warning(f"CDN 跳转解析失败 {url}: {e}")
        return url
