"""sharekit - resolve short-video / photo-note share links to direct media URLs."""

__version__ = "0.1.0"

from .errors import (
    ContentNotFound,
    InvalidShareInput,
    MalformedEmbeddedState,
    NoRedirectLocation,
    ResolutionError,
    SignatureDerivationFailed,
    TooManyRedirects,
    UnsupportedPlatform,
    UpstreamFormatChanged,
    UpstreamUnreachable,
)
from .extractors import EXTRACTORS, ShareResolver, detect_platform, resolve
from .models import Author, ImageItem, MediaRecord, Music, Statistics, VideoQuality
from .sign_engine import derive_signature
from .utils import extract_url

__all__ = [
    "__version__",
    "resolve",
    "ShareResolver",
    "detect_platform",
    "extract_url",
    "derive_signature",
    "EXTRACTORS",
    "Author",
    "ImageItem",
    "MediaRecord",
    "Music",
    "Statistics",
    "VideoQuality",
    "ResolutionError",
    "UnsupportedPlatform",
    "InvalidShareInput",
    "UpstreamUnreachable",
    "UpstreamFormatChanged",
    "MalformedEmbeddedState",
    "NoRedirectLocation",
    "TooManyRedirects",
    "ContentNotFound",
    "SignatureDerivationFailed",
]
