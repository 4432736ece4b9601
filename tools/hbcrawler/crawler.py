"""Session-aware client for the site's private AJAX endpoints."""

from __future__ import annotations

import dataclasses
import json
import logging
import random
import time
from collections.abc import Callable, Iterator
from dataclasses import dataclass, field
from typing import Any

from .config import CrawlerConfig
from .cookies import CookieJar
from .errors import ExtractionError, NotInitializedError, ProtocolError
from .extractor import extract_settings
from .models import Board, DumpResult, Pin, PinFile, Settings, User
from .pagination import (
    NO_UPPER_BOUND,
    AscendingCursor,
    DescendingCursor,
    Page,
    PageNumberCursor,
    Paginator,
    Throttle,
)
from .sources import HTML_ACCEPT, BoardSource, create_board_source
from .storage import DiskStorage
from .transport import HttpResponse, Transport

logger = logging.getLogger("hbcrawler.crawler")


def _base36(n: int) -> str:
    digits = "0123456789abcdefghijklmnopqrstuvwxyz"
    out = ""
    while True:
        n, r = divmod(n, 36)
        out = digits[r] + out
        if not n:
            return out


@dataclass
class Session:
    """Per-run state: a cache-busting token and the cookies the site handed out."""
    unique_id: str = field(default_factory=lambda: _base36(int(time.time() * 1000)))
    cookies: CookieJar = field(default_factory=CookieJar)


class HuabanCrawler:
    """Fetches boards, pins and users, one request at a time."""

    def __init__(
        self,
        cfg: CrawlerConfig | None = None,
        *,
        session: Session | None = None,
        settings: Settings | None = None,
        transport: Transport | None = None,
        source: BoardSource | None = None,
        storage: DiskStorage | None = None,
        sleep: Callable[[float], None] = time.sleep,
        rand: Callable[[], float] = random.random,
    ) -> None:
        self.cfg = cfg or CrawlerConfig()
        self.session = session or Session()
        self._settings = settings
        self.transport = transport or Transport(timeout=self.cfg.site.timeout)
        self.source = source or create_board_source(self.cfg.crawl.board_source)
        self.storage = storage or DiskStorage()
        self._sleep = sleep
        self._rand = rand

    # ── settings ────────────────────────────────────────────────

    @property
    def initialized(self) -> bool:
        return self._settings is not None

    @property
    def settings(self) -> Settings:
        if self._settings is None:
            raise NotInitializedError()
        return self._settings

    def load_settings(self, html: str) -> Settings:
        self._settings = extract_settings(html)
        logger.debug("Loaded settings: %d image hosts", len(self._settings.img_hosts))
        return self._settings

    def initialize(self) -> Settings:
        """Load the site root, picking up cookies and the image-host settings."""
        root = f"{self.cfg.site.base_url.rstrip('/')}/"
        resp = self.fetch(root, accept=HTML_ACCEPT, referer=root)
        return self.load_settings(resp.text)

    # ── plumbing ────────────────────────────────────────────────

    def board_url(self, board_id: int) -> str:
        return f"{self.cfg.site.board_url_prefix}{board_id}/"

    def user_url(self, urlname: str) -> str:
        return f"{self.cfg.site.base_url.rstrip('/')}/{urlname}/"

    def throttle(self, gap: int | None = None, accuracy: float | None = None) -> Throttle:
        return Throttle(
            self.cfg.crawl.gap if gap is None else gap,
            self.cfg.crawl.accuracy if accuracy is None else accuracy,
            sleep=self._sleep,
            rand=self._rand,
        )

    def _wrap_headers(self, headers: dict[str, str] | None = None, ajax: bool = False) -> dict[str, str]:
        h = dict(headers or {})
        h["Pragma"] = "no-cache"
        h["Cache-Control"] = "no-cache"
        h["Accept-Encoding"] = "gzip, deflate"
        h["Accept-Language"] = self.cfg.site.accept_language
        h["User-Agent"] = self.cfg.site.user_agent
        cookies = self.session.cookies.serialize()
        if cookies:
            h["Cookie"] = cookies
        if ajax:
            h["X-Requested-With"] = "XMLHttpRequest"
            h["X-Request"] = "JSON"
        return h

    def fetch(
        self,
        url: str,
        *,
        accept: str,
        referer: str,
        ajax: bool = False,
        method: str = "GET",
        track_cookies: bool = True,
    ) -> HttpResponse:
        """Issue one request with session headers; anything but 200 raises ``ProtocolError``."""
        resp = self.transport.request(
            method,
            url,
            self._wrap_headers({"Accept": accept, "Referer": referer}, ajax),
            timeout=self.cfg.site.timeout,
        )
        if track_cookies and resp.set_cookies:
            self.session.cookies.update_from(resp.set_cookies)
        if resp.code != 200:
            logger.warning("%s %s -> HTTP %d", method, url, resp.code)
            raise ProtocolError(resp.code, resp.body, url)
        return resp

    def fetch_json(self, url: str, referer: str) -> Any:
        resp = self.fetch(url, accept="application/json", referer=referer, ajax=True)
        try:
            return resp.json()
        except (json.JSONDecodeError, UnicodeDecodeError) as exc:
            raise ExtractionError(f"Response from {url} is not JSON: {exc}", {"url": url}) from exc

    # ── boards & pins ───────────────────────────────────────────

    def get_board_info(self, board_id: int) -> Board:
        logger.debug("Fetching board %d via %s source", board_id, self.source.name)
        return self.source.fetch_board(self, board_id)

    def get_pin_list_of_board_ajax(
        self,
        board_id: int,
        max_pin_id: int,
        limit: int | None = None,
        waterfall: int | None = None,
    ) -> list[Pin]:
        limit = limit or self.cfg.crawl.pins_per_page
        waterfall = self.cfg.crawl.waterfall if waterfall is None else waterfall
        url = self.board_url(board_id)
        data = self.fetch_json(
            f"{url}?{self.session.unique_id}&max={max_pin_id}&limit={limit}&wfl={waterfall}",
            referer=url,
        )
        try:
            pins = data["board"]["pins"]
        except (KeyError, TypeError) as exc:
            raise ExtractionError(f"No pin list in response for board {board_id}", {"board_id": board_id}) from exc
        return [Pin.from_dict(p) for p in pins]

    def iter_board_pins(
        self,
        board_id: int,
        start: int = NO_UPPER_BOUND,
        *,
        target: int | None = None,
        limit: int | None = None,
        gap: int | None = None,
        accuracy: float | None = None,
        stop_on_short_page: bool = True,
    ) -> Iterator[list[Pin]]:
        """Yield pages of pins older than ``start``, newest first.

        With ``stop_on_short_page=False`` only an empty page (or ``target``)
        ends the stream.
        """
        limit = limit or self.cfg.crawl.pins_per_page

        def fetch(cursor: int) -> Page[Pin]:
            return Page(self.get_pin_list_of_board_ajax(board_id, cursor, limit), cursor)

        paginator: Paginator[Pin] = Paginator(
            fetch,
            DescendingCursor(start, key=lambda p: p.pin_id),
            page_size=limit if stop_on_short_page else None,
            target=target,
            throttle=self.throttle(gap, accuracy),
            name=f"board {board_id} pins",
        )
        for page in paginator.pages():
            yield page.items

    def get_pin_list_of_board(
        self,
        board_id: int,
        first_page_only: bool = False,
        gap: int | None = None,
        accuracy: float | None = None,
    ) -> Board:
        """The board with every pin loaded, not just the first page."""
        board = self.get_board_info(board_id)
        if first_page_only:
            return board
        pins = list(board.pins)
        remaining = board.pin_count - len(pins)
        if remaining <= 0:
            return board
        self.throttle(gap, accuracy).wait()
        start = min((p.pin_id for p in pins), default=NO_UPPER_BOUND)
        for page in self.iter_board_pins(board_id, start, target=remaining, gap=gap, accuracy=accuracy):
            pins.extend(page)
        return dataclasses.replace(board, pins=tuple(pins))

    # ── users ───────────────────────────────────────────────────

    def get_user_info_by_id(self, user_id: int) -> User:
        url = f"{self.cfg.site.base_url.rstrip('/')}/users/{user_id}/"
        data = self.fetch_json(f"{url}?{self.session.unique_id}", referer=url)
        user = data.get("user") if isinstance(data, dict) else None
        if not isinstance(user, dict):
            raise ExtractionError(f"No user object in response for user {user_id}", {"user_id": user_id})
        return User.from_dict(user)

    def get_boards_by_username(self, urlname: str, gap: int | None = None, accuracy: float | None = None) -> list[Board]:
        url = self.user_url(urlname)
        limit = self.cfg.crawl.boards_per_page

        def fetch(cursor: int) -> Page[Board]:
            data = self.fetch_json(
                f"{url}?{self.session.unique_id}&max={cursor}&limit={limit}&wfl={self.cfg.crawl.waterfall}",
                referer=url,
            )
            user = (data or {}).get("user") or {}
            total = int(user.get("board_count") or 0)
            boards = [Board.from_dict(b) for b in user.get("boards") or []]
            return Page(boards, cursor, exhausted=total == 0, total=total)

        paginator: Paginator[Board] = Paginator(
            fetch,
            AscendingCursor(0, key=lambda b: b.board_id),
            throttle=self.throttle(gap, accuracy),
            name=f"boards of {urlname}",
        )
        return paginator.collect()

    def get_followed_boards_by_username(self, urlname: str, gap: int | None = None, accuracy: float | None = None) -> list[Board]:
        url = f"{self.user_url(urlname)}following/boards/"
        limit = self.cfg.crawl.follows_per_page

        def fetch(cursor: int) -> Page[Board]:
            data = self.fetch_json(
                f"{url}?{self.session.unique_id}&page={cursor}&limit={limit}&wfl={self.cfg.crawl.waterfall}",
                referer=url,
            )
            data = data or {}
            boards = [Board.from_dict(b) for b in data.get("boards") or []]
            return Page(boards, cursor, exhausted=not data.get("following_count"))

        paginator: Paginator[Board] = Paginator(
            fetch,
            PageNumberCursor(),
            throttle=self.throttle(gap, accuracy),
            name=f"boards followed by {urlname}",
        )
        return paginator.collect()

    def get_followed_users_by_username(self, urlname: str, gap: int | None = None, accuracy: float | None = None) -> list[User]:
        url = f"{self.user_url(urlname)}following/"
        limit = self.cfg.crawl.follows_per_page

        def fetch(cursor: int) -> Page[User]:
            data = self.fetch_json(
                f"{url}?{self.session.unique_id}&max={cursor}&limit={limit}&wfl={self.cfg.crawl.waterfall}",
                referer=url,
            )
            users = [User.from_dict(u) for u in (data or {}).get("users") or []]
            return Page(users, cursor)

        paginator: Paginator[User] = Paginator(
            fetch,
            DescendingCursor(NO_UPPER_BOUND, key=lambda u: u.seq),
            throttle=self.throttle(gap, accuracy),
            name=f"users followed by {urlname}",
        )
        return paginator.collect()

    # ── images ──────────────────────────────────────────────────

    def get_image_link(self, file: PinFile) -> str:
        bucket = f"{file.bucket}_http"
        host = self.settings.img_hosts.get(bucket)
        if not host:
            raise ExtractionError(f"Unknown image bucket {file.bucket!r}", {"bucket": file.bucket})
        return f"http://{host}/{file.key}"

    def get_pin_image_size(self, pin: Pin) -> int:
        resp = self.fetch(
            self.get_image_link(pin.file),
            accept=pin.file.type or "*/*",
            referer=self.board_url(pin.board_id),
            method="HEAD",
            track_cookies=False,
        )
        return resp.content_length

    def dump_file(self, path: str, pin: Pin, with_pin_info: bool = True, ignore_if_present: bool = True) -> DumpResult:
        """Download a pin's image into ``path``; a result with ``size == 0`` means it was already there."""
        img_path = self.storage.image_path(path, pin)
        meta_path = self.storage.meta_path(path, pin) if with_pin_info else None
        meta = str(meta_path) if meta_path else ""

        if ignore_if_present and self.storage.is_saved(img_path):
            logger.debug("Pin %d already saved at %s", pin.pin_id, img_path)
            return DumpResult(str(img_path), meta, 0)

        resp = self.fetch(
            self.get_image_link(pin.file),
            accept=pin.file.type or "*/*",
            referer=self.board_url(pin.board_id),
            track_cookies=False,
        )
        self.storage.save_pin(img_path, resp.body, meta_path, pin)
        return DumpResult(str(img_path), meta, resp.content_length)

    # ── lifecycle ───────────────────────────────────────────────

    def close(self) -> None:
        self.transport.close()

    def __enter__(self) -> HuabanCrawler:
        return self

    def __exit__(self, *args: object) -> None:
        self.close()
