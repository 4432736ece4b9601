"""Value objects built from the site's JSON payloads.

Every object keeps the ``raw`` dict it was parsed from; that is what gets
written to disk as metadata, so fields the site adds later survive a dump.
"""

from __future__ import annotations

import copy
from dataclasses import dataclass, field
from enum import Enum
from typing import Any


def _int(value: Any, default: int = 0) -> int:
    try:
        return int(value)
    except (TypeError, ValueError):
        return default


class ImageType(Enum):
    JPEG = "jpg"
    PNG = "png"
    GIF = "gif"
    WEBP = "webp"
    BMP = "bmp"
    UNKNOWN = "unknown"

    @property
    def extension(self) -> str:
        return self.value

    @classmethod
    def from_mime(cls, mime: str | None) -> ImageType:
        return MIME_TYPES.get((mime or "").strip().lower(), cls.UNKNOWN)


# Map MIME type → image type
MIME_TYPES: dict[str, ImageType] = {
    "image/jpeg": ImageType.JPEG,
    "image/apng": ImageType.PNG,
    "image/png": ImageType.PNG,
    "image/gif": ImageType.GIF,
    "image/webp": ImageType.WEBP,
    "image/bmp": ImageType.BMP,
}


@dataclass(frozen=True)
class Category:
    id: str
    name: str
    nav_link: str = ""
    col: int = 0


@dataclass(frozen=True)
class Settings:
    img_hosts: dict[str, str]
    categories: tuple[Category, ...] = ()

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Settings:
        cats = tuple(
            Category(
                id=str(c.get("id", "")),
                name=c.get("name", ""),
                nav_link=c.get("nav_link", ""),
                col=_int(c.get("col")),
            )
            for c in data.get("categories") or []
        )
        return cls(img_hosts=dict(data.get("imgHosts") or {}), categories=cats)


@dataclass(frozen=True)
class User:
    user_id: int
    urlname: str
    username: str = ""
    created_at: int = 0
    board_count: int = 0
    pin_count: int = 0
    following_count: int = 0
    follower_count: int = 0
    seq: int = 0
    raw: dict[str, Any] = field(default_factory=dict, repr=False, compare=False)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> User:
        return cls(
            user_id=_int(data.get("user_id")),
            urlname=str(data.get("urlname") or ""),
            username=str(data.get("username") or ""),
            created_at=_int(data.get("created_at")),
            board_count=_int(data.get("board_count")),
            pin_count=_int(data.get("pin_count")),
            following_count=_int(data.get("following_count")),
            follower_count=_int(data.get("follower_count")),
            seq=_int(data.get("seq")),
            raw=data,
        )


@dataclass(frozen=True)
class PinFile:
    bucket: str
    key: str
    type: str
    width: int = 0
    height: int = 0

    @property
    def image_type(self) -> ImageType:
        return ImageType.from_mime(self.type)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> PinFile:
        return cls(
            bucket=str(data.get("bucket") or ""),
            key=str(data.get("key") or ""),
            type=str(data.get("type") or ""),
            width=_int(data.get("width")),
            height=_int(data.get("height")),
        )


@dataclass(frozen=True)
class Pin:
    pin_id: int
    board_id: int
    file: PinFile
    user_id: int = 0
    tags: tuple[str, ...] = ()
    raw_text: str = ""
    link: str | None = None
    source: str | None = None
    orig_source: str | None = None
    like_count: int = 0
    repin_count: int = 0
    comment_count: int = 0
    created_at: int = 0
    raw: dict[str, Any] = field(default_factory=dict, repr=False, compare=False)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Pin:
        tags = data.get("tags") or (data.get("text_meta") or {}).get("tags") or []
        return cls(
            pin_id=_int(data.get("pin_id")),
            board_id=_int(data.get("board_id")),
            file=PinFile.from_dict(data.get("file") or {}),
            user_id=_int(data.get("user_id")),
            tags=tuple(str(t) for t in tags),
            raw_text=str(data.get("raw_text") or ""),
            link=data.get("link"),
            source=data.get("source"),
            orig_source=data.get("orig_source"),
            like_count=_int(data.get("like_count")),
            repin_count=_int(data.get("repin_count")),
            comment_count=_int(data.get("comment_count")),
            created_at=_int(data.get("created_at")),
            raw=data,
        )


@dataclass(frozen=True)
class Board:
    board_id: int
    title: str
    description: str = ""
    pin_count: int = 0
    follow_count: int = 0
    category_id: str = ""
    category_name: str = ""
    created_at: int = 0
    updated_at: int = 0
    user: User | None = None
    pins: tuple[Pin, ...] = ()
    raw: dict[str, Any] = field(default_factory=dict, repr=False, compare=False)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Board:
        user = data.get("user")
        return cls(
            board_id=_int(data.get("board_id")),
            title=str(data.get("title") or ""),
            description=str(data.get("description") or ""),
            pin_count=_int(data.get("pin_count")),
            follow_count=_int(data.get("follow_count")),
            category_id=str(data.get("category_id") or ""),
            category_name=str(data.get("category_name") or ""),
            created_at=_int(data.get("created_at")),
            updated_at=_int(data.get("updated_at")),
            user=User.from_dict(user) if isinstance(user, dict) else None,
            pins=tuple(Pin.from_dict(p) for p in data.get("pins") or []),
            raw=data,
        )

    def descriptor(self) -> dict[str, Any]:
        """The board record without the owner's board list and the first pin page."""
        data = copy.deepcopy(self.raw)
        data.pop("pins", None)
        if isinstance(data.get("user"), dict):
            data["user"].pop("boards", None)
        return data


@dataclass(frozen=True)
class DumpResult:
    img_path: str
    meta_path: str
    size: int

    @property
    def skipped(self) -> bool:
        return self.size == 0
