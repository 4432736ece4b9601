"""Shared fixtures: a fake site served through ``httpx.MockTransport``."""

from __future__ import annotations

from collections.abc import Callable
from typing import Any

import httpx
import pytest

from hbcrawler.config import CrawlConfig, CrawlerConfig, DumpConfig, SiteConfig
from hbcrawler.crawler import HuabanCrawler, Session
from hbcrawler.models import Settings
from hbcrawler.transport import Transport

BASE = "http://huaban.test"
IMG_HOST = "img.test"
SETTINGS = Settings(img_hosts={"hbimg_http": IMG_HOST})

SETTINGS_HTML_TEMPLATE = """<html><head><script>
app["settings"] = {"imgHosts": {"hbimg_http": "img.test"}, "categories": []};
app["req"] = {"url": "/"};
</script></head>"""

Handler = Callable[[httpx.Request], httpx.Response]


def json_ok(data: Any, **headers: str) -> Handler:
    return lambda request: httpx.Response(200, json=data, headers=headers)


def image_ok(body: bytes = b"\xff\xd8\xffimage", mime: str = "image/jpeg") -> Handler:
    return lambda request: httpx.Response(
        200,
        content=body,
        headers={"content-type": mime, "content-length": str(len(body))},
    )


def make_pin(pin_id: int, board_id: int = 1, mime: str = "image/jpeg", **extra: Any) -> dict:
    return {
        "pin_id": pin_id,
        "board_id": board_id,
        "user_id": 7,
        "raw_text": f"pin {pin_id}",
        "tags": ["cat"],
        "file": {"bucket": "hbimg", "key": f"key{pin_id}", "type": mime, "width": "640", "height": "480"},
        **extra,
    }


def make_board(board_id: int = 1, pins: list[dict] | None = None, pin_count: int | None = None, **extra: Any) -> dict:
    pins = pins or []
    return {
        "board_id": board_id,
        "title": f"Board {board_id}",
        "description": "things",
        "pin_count": len(pins) if pin_count is None else pin_count,
        "follow_count": 3,
        "category_id": "design",
        "category_name": "Design",
        "user": {"user_id": 7, "urlname": "alice", "username": "Alice", "boards": [{"board_id": 99}]},
        "pins": pins,
        **extra,
    }


class FakeSite:
    """Routes requests by path and records every request seen."""

    def __init__(self) -> None:
        self.routes: dict[tuple[str, str], Handler] = {}
        self.requests: list[httpx.Request] = []

    def route(self, path: str, handler: Handler, host: str = "huaban.test") -> FakeSite:
        self.routes[(host, path)] = handler
        return self

    def image(self, pin_id: int, body: bytes = b"\xff\xd8\xffimage", mime: str = "image/jpeg") -> FakeSite:
        return self.route(f"/key{pin_id}", image_ok(body, mime), host=IMG_HOST)

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        handler = self.routes.get((request.url.host, request.url.path))
        if handler is None:
            return httpx.Response(404, text="not found")
        return handler(request)

    def hits(self, path: str, host: str = "huaban.test") -> list[httpx.Request]:
        return [r for r in self.requests if r.url.host == host and r.url.path == path]


@pytest.fixture
def site() -> FakeSite:
    return FakeSite()


@pytest.fixture
def sleeps() -> list[float]:
    return []


@pytest.fixture
def make_crawler(site: FakeSite, sleeps: list[float]) -> Callable[..., HuabanCrawler]:
    def factory(
        *,
        settings: Settings | None = SETTINGS,
        board_source: str = "json",
        gap: int = 0,
        accuracy: float = 1.0,
        dump: DumpConfig | None = None,
    ) -> HuabanCrawler:
        cfg = CrawlerConfig(
            site=SiteConfig(base_url=BASE, timeout=5.0),
            crawl=CrawlConfig(gap=gap, accuracy=accuracy, board_source=board_source),
            dump=dump or DumpConfig(),
        )
        client = httpx.Client(transport=httpx.MockTransport(site))
        return HuabanCrawler(
            cfg,
            session=Session(unique_id="tok"),
            settings=settings,
            transport=Transport(client=client),
            sleep=sleeps.append,
            rand=lambda: 0.5,
        )

    return factory
