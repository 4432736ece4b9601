"""Configuration and environment settings for the crawler."""

from __future__ import annotations

import os
from dataclasses import dataclass, field

USER_AGENT = (
    "Mozilla/5.0 (Windows NT 6.3; Win64; x64) "
    "AppleWebKit/537.36 (KHTML, like Gecko) "
    "Chrome/67.0.3396.99 Safari/537.36"
)

BOARD_SOURCE_NAMES = ("json", "html")


@dataclass(frozen=True)
class SiteConfig:
    """Where the site lives and how we present ourselves to it."""
    base_url: str = "http://huaban.com"
    user_agent: str = USER_AGENT
    accept_language: str = "en-US,en;q=0.9,zh-CN;q=0.8,zh;q=0.7"
    timeout: float = 30.0  # seconds per request

    @property
    def board_url_prefix(self) -> str:
        return f"{self.base_url.rstrip('/')}/boards/"

    @classmethod
    def from_env(cls) -> SiteConfig:
        return cls(
            base_url=os.getenv("HBC_BASE_URL", "http://huaban.com"),
            timeout=float(os.getenv("HBC_TIMEOUT", "30")),
        )


@dataclass(frozen=True)
class CrawlConfig:
    """Pagination and pacing.  ``gap`` is in milliseconds."""
    gap: int = 0
    accuracy: float = 1.0
    pins_per_page: int = 20
    boards_per_page: int = 10
    follows_per_page: int = 20
    waterfall: int = 1
    board_source: str = "json"

    def __post_init__(self) -> None:
        if self.gap < 0:
            raise ValueError("gap must not be negative")
        if not 0.0 <= self.accuracy <= 1.0:
            raise ValueError("accuracy must be within [0, 1]")
        if self.board_source not in BOARD_SOURCE_NAMES:
            raise ValueError(f"board_source must be one of {BOARD_SOURCE_NAMES}")

    @classmethod
    def from_env(cls) -> CrawlConfig:
        return cls(
            gap=int(os.getenv("HBC_GAP", "0")),
            accuracy=float(os.getenv("HBC_ACCURACY", "1")),
            board_source=os.getenv("HBC_BOARD_SOURCE", "json").lower(),
        )


@dataclass(frozen=True)
class DumpConfig:
    output: str = "."
    ignore_saved: bool = False
    save_meta: bool = False
    force_reload: bool = False


@dataclass
class CrawlerConfig:
    site: SiteConfig = field(default_factory=SiteConfig.from_env)
    crawl: CrawlConfig = field(default_factory=CrawlConfig.from_env)
    dump: DumpConfig = field(default_factory=DumpConfig)
