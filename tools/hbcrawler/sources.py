"""Strategies for fetching a board's details and first page of pins."""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from typing import TYPE_CHECKING

from .errors import ExtractionError
from .extractor import extract_board_payload
from .models import Board

if TYPE_CHECKING:
    from .crawler import HuabanCrawler

logger = logging.getLogger("hbcrawler.sources")

HTML_ACCEPT = "text/html,application/xhtml+xml,application/xml;q=0.9,image/webp,image/apng,*/*;q=0.8"


class BoardSource(ABC):
    name: str = ""

    @abstractmethod
    def fetch_board(self, crawler: HuabanCrawler, board_id: int) -> Board:
        ...


class JsonBoardSource(BoardSource):
    """Ask the board URL for JSON, the way the site's own scripts do."""

    name = "json"

    def fetch_board(self, crawler: HuabanCrawler, board_id: int) -> Board:
        url = crawler.board_url(board_id)
        data = crawler.fetch_json(f"{url}?{crawler.session.unique_id}", referer=url)
        board = data.get("board") if isinstance(data, dict) else None
        if not isinstance(board, dict):
            raise ExtractionError(f"No board object in response for board {board_id}", {"board_id": board_id})
        return Board.from_dict(board)


class HtmlBoardSource(BoardSource):
    """Load the full board page and read the state embedded in its scripts.

    The same page carries the site settings; they are loaded from it only
    when the crawler has none yet.
    """

    name = "html"

    def fetch_board(self, crawler: HuabanCrawler, board_id: int) -> Board:
        url = crawler.board_url(board_id)
        resp = crawler.fetch(url, accept=HTML_ACCEPT, referer=url)
        html = resp.text
        logger.debug("Board page %d: %d chars of markup", board_id, len(html))
        if not crawler.initialized:
            crawler.load_settings(html)
        return extract_board_payload(html)


BOARD_SOURCES: dict[str, type[BoardSource]] = {
    JsonBoardSource.name: JsonBoardSource,
    HtmlBoardSource.name: HtmlBoardSource,
}


def create_board_source(name: str) -> BoardSource:
    try:
        return BOARD_SOURCES[name]()
    except KeyError:
        raise ValueError(f"Unknown board source {name!r}; expected one of {sorted(BOARD_SOURCES)}") from None
