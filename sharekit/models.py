"""Canonical, platform-neutral media record returned by every extractor."""

from dataclasses import dataclass, field, asdict
from typing import Optional


@dataclass
class Author:
    uid: str = ""
    name: str = ""
    avatar: str = ""


@dataclass
class ImageItem:
    url: str = ""
    live_photo_url: Optional[str] = None


@dataclass
class VideoQuality:
    quality: str = ""
    url: str = ""
    size: Optional[int] = None


@dataclass
class Music:
    title: str = ""
    author: str = ""
    url: str = ""
    cover_url: str = ""


@dataclass
class Statistics:
    likes: int = 0
    views: int = 0
    favorites: int = 0
    shares: int = 0
    comments: int = 0


@dataclass
class MediaRecord:
    platform: str = ""
    title: str = ""
    author: Author = field(default_factory=Author)
    video_url: str = ""
    cover_url: str = ""
    images: list[ImageItem] = field(default_factory=list)
    video_qualities: list[VideoQuality] = field(default_factory=list)
    music: Optional[Music] = None
    statistics: Optional[Statistics] = None
    tags: Optional[set[str]] = None
    create_time: Optional[int] = None

    @property
    def is_gallery(self) -> bool:
        return bool(self.images)

    def normalize(self) -> "MediaRecord":
        """An item is either a gallery or a video, never both."""
        if self.images:
            self.video_url = ""
            self.video_qualities = []
        return self

    def to_dict(self) -> dict:
        d = asdict(self)
        if self.tags is not None:
            d["tags"] = sorted(self.tags)
        return d
