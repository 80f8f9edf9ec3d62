"""Typed failures raised while resolving a share link.

Callers that only need text can rely on ``str(err)``; callers that need to
branch catch the concrete subclass.
"""

from typing import Optional


class ResolutionError(Exception):
    """Base class for every failure surfaced by ``sharekit.resolve``."""

    def __init__(self, message: str, *, platform: str = "", url: str = ""):
        super().__init__(message)
        self.message = message
        self.platform = platform
        self.url = url

    def __str__(self) -> str:
        prefix = f"[{self.platform}] " if self.platform else ""
        return f"{prefix}{self.message}"


class UnsupportedPlatform(ResolutionError):
    """The URL host matches no registered extractor."""


class InvalidShareInput(ResolutionError):
    """No URL could be found in the share text."""


class UpstreamUnreachable(ResolutionError):
    """Network or transport failure talking to the platform."""


class UpstreamFormatChanged(ResolutionError):
    """An expected JSON key or HTML marker is missing."""


class MalformedEmbeddedState(UpstreamFormatChanged):
    """The embedded state blob was found but is not parseable JSON."""

    def __init__(self, message: str, *, snippet: str = "", **kwargs):
        super().__init__(f"{message}, content snippet: {snippet}", **kwargs)
        self.snippet = snippet


class NoRedirectLocation(UpstreamFormatChanged):
    """A redirect was expected but the response carried no Location."""


class TooManyRedirects(UpstreamFormatChanged):
    """The redirect chain did not settle within the hop limit."""

    def __init__(self, message: str, *, hops: Optional[int] = None, **kwargs):
        super().__init__(message, **kwargs)
        self.hops = hops


class ContentNotFound(ResolutionError):
    """The platform reports the content as missing or deleted."""


class SignatureDerivationFailed(ResolutionError, ValueError):
    """Signature inputs were unusable (e.g. an empty client identity)."""
