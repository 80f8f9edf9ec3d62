import random
import re
import string
from datetime import datetime
from typing import Optional

# Share messages wrap the link in prose; only URL-safe characters are kept.
_URL_RE = re.compile(r"https?://[a-zA-Z0-9.\-_/?=&%]+")
_TAG_RE = re.compile(r"<[^>]*>")
_HASHTAG_RE = re.compile(r"#([\w\u4e00-\u9fff]+)")

_RAND_LETTERS = string.digits + string.ascii_lowercase + string.ascii_uppercase


def extract_url(text: str) -> Optional[str]:
    """Return the first http(s) URL embedded in ``text``, or None."""
    if not isinstance(text, str):
        return None
    m = _URL_RE.search(text)
    return m.group(0) if m else None


def looks_like_url(text: str) -> bool:
    text = (text or "").strip()
    if not text or any(c.isspace() for c in text):
        return False
    if text.startswith(("http://", "https://")):
        return True
    host = text.split("/", 1)[0]
    return "." in host and not host.startswith(".") and not host.endswith(".")


def safe_int(v) -> int:
    if isinstance(v, bool):
        return int(v)
    if isinstance(v, int):
        return v
    if isinstance(v, float):
        return int(v)
    if isinstance(v, str):
        v = v.replace(",", "").replace("+", "").strip()
        if "亿" in v:
            v = v.replace("亿", "")
            try:
                return int(float(v) * 100000000)
            except ValueError:
                return 0
        if "万" in v:
            v = v.replace("万", "")
            try:
                return int(float(v) * 10000)
            except ValueError:
                return 0
        try:
            return int(float(v))
        except ValueError:
            return 0
    return 0


def optional_int(v) -> Optional[int]:
    if v is None or isinstance(v, bool):
        return None
    if isinstance(v, (int, float)):
        return int(v)
    if isinstance(v, str) and v.strip().isdigit():
        return int(v.strip())
    return None


def ts_to_iso(ts) -> str:
    """Convert Unix timestamp to ISO string."""
    try:
        ts = int(ts)
        if ts > 0:
            return datetime.fromtimestamp(ts).isoformat()
    except (ValueError, TypeError, OSError):
        pass
    return ""


def normalize_ts(ts) -> Optional[int]:
    """Seconds since epoch; millisecond stamps are scaled down."""
    ts = optional_int(ts)
    if not ts or ts <= 0:
        return None
    if ts > 1e12:
        ts //= 1000
    return ts


def rand_seq(n: int) -> str:
    return "".join(random.choice(_RAND_LETTERS) for _ in range(n))


def numeric_id(length: int) -> str:
    """Zero-padded random decimal string of exactly ``length`` digits."""
    return f"{random.randrange(10 ** length):0{length}d}"


def clean_html_text(text: str) -> str:
    return _TAG_RE.sub("", text or "").strip()


def hashtags(text: str) -> set[str]:
    return set(_HASHTAG_RE.findall(text or ""))


def https(url: str) -> str:
    """Upgrade plain-http and protocol-relative URLs to https."""
    if not url:
        return ""
    if url.startswith("//"):
        return "https:" + url
    if url.startswith("http://"):
        return "https://" + url[len("http://"):]
    return url
