"""Bulk dumping – orchestrates crawler → disk for boards and users."""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from pathlib import Path

from rich.progress import BarColumn, Progress, SpinnerColumn, TextColumn, TimeElapsedColumn

from .config import CrawlerConfig
from .crawler import HuabanCrawler
from .errors import ExtractionError, ProtocolError, TransportError
from .models import Board, Pin
from .pagination import NO_UPPER_BOUND

logger = logging.getLogger("hbcrawler.dumper")


def _ts(ts: int) -> str:
    return datetime.fromtimestamp(ts, tz=timezone.utc).isoformat() if ts else "-"


class Dumper:
    """Dumps boards, a user's boards, or everything a user follows."""

    def __init__(self, cfg: CrawlerConfig | None = None, crawler: HuabanCrawler | None = None, *, show_progress: bool = True) -> None:
        self.cfg = cfg or CrawlerConfig()
        self.crawler = crawler or HuabanCrawler(self.cfg)
        self.show_progress = show_progress
        self._throttle = self.crawler.throttle()
        self.stats = {"boards": 0, "pins": 0, "skipped": 0, "errors": 0, "bytes": 0}

    # ── setup ───────────────────────────────────────────────────

    def initialize(self) -> None:
        if not self.crawler.initialized:
            self.crawler.initialize()

    def resolve_username(self, user_id: int | None = None, user_name: str | None = None) -> str:
        if user_id:
            return self.crawler.get_user_info_by_id(user_id).urlname
        if user_name:
            return user_name
        raise ValueError("Must specify either a user id or a user name.")

    # ── pins ────────────────────────────────────────────────────

    def _dump_pin(self, pin: Pin, output: Path) -> None:
        try:
            result = self.crawler.dump_file(
                str(output), pin, self.cfg.dump.save_meta, self.cfg.dump.ignore_saved
            )
        except (TransportError, ProtocolError, ExtractionError) as exc:
            logger.error("Failed to save pin %d: %s", pin.pin_id, exc)
            self.stats["errors"] += 1
        else:
            if result.skipped:
                logger.debug("Pin %d skipped.", pin.pin_id)
                self.stats["skipped"] += 1
                return
            self.stats["pins"] += 1
            self.stats["bytes"] += result.size
            logger.info("Downloaded pin %d (%d bytes) -> %s", pin.pin_id, result.size, result.img_path)
            if result.meta_path:
                logger.debug("  meta: %s", result.meta_path)
        self._throttle.wait()

    def _log_board(self, board: Board) -> None:
        logger.info("Board %d: %s", board.board_id, board.title)
        logger.info("  Pins: %d  Followers: %d  Category: %s [%s]", board.pin_count, board.follow_count, board.category_name, board.category_id)
        logger.info("  Updated: %s  Created: %s", _ts(board.updated_at), _ts(board.created_at))
        if board.user:
            logger.info("  User: %s (%d), %d pins", board.user.username or board.user.urlname, board.user.user_id, board.user.pin_count)

    # ── boards ──────────────────────────────────────────────────

    def dump_board(self, board: int | Board, output: str | Path, *, force_reload: bool | None = None) -> int:
        """Dump one board into ``output``.  Returns the number of pins processed.

        A directory that already holds ``2 * pin_count + 1`` entries is taken
        as fully dumped and left alone.
        """
        force_reload = self.cfg.dump.force_reload if force_reload is None else force_reload
        if isinstance(board, int):
            logger.info("Loading board %d...", board)
            board = self.crawler.get_board_info(board)
        self._log_board(board)

        storage = self.crawler.storage
        output = storage.ensure_dir(output)
        storage.save_board(output, board)
        if storage.looks_complete(output, board):
            logger.info("Board %d has been dumped, skip.", board.board_id)
            return 0

        pins: list[Pin] = list(board.pins)
        if force_reload:
            pins = self.crawler.get_pin_list_of_board_ajax(board.board_id, NO_UPPER_BOUND)

        processed = 0
        with Progress(
            SpinnerColumn(),
            TextColumn("[progress.description]{task.description}"),
            BarColumn(),
            TextColumn("{task.completed}/{task.total}"),
            TimeElapsedColumn(),
            disable=not self.show_progress,
        ) as progress:
            task = progress.add_task(f"board {board.board_id}", total=board.pin_count)

            def dump_batch(batch: list[Pin]) -> None:
                nonlocal processed
                for pin in batch:
                    self._dump_pin(pin, output)
                    processed += 1
                    progress.advance(task)

            dump_batch(pins)
            if processed < board.pin_count:
                start = min((p.pin_id for p in pins), default=NO_UPPER_BOUND)
                for page in self.crawler.iter_board_pins(
                    board.board_id, start, target=board.pin_count - processed, stop_on_short_page=False
                ):
                    dump_batch(page)
                    if processed >= board.pin_count:
                        break

        self.stats["boards"] += 1
        logger.info("All pins in board %d have been processed (%d).", board.board_id, processed)
        return processed

    # ── users ───────────────────────────────────────────────────

    def dump_user(self, urlname: str, output: str | Path) -> int:
        logger.info("Loading boards of user %s...", urlname)
        boards = self.crawler.get_boards_by_username(urlname)
        logger.info("%d boards found.", len(boards))
        total = 0
        for board in boards:
            total += self.dump_board(board, Path(output) / f"{urlname}-{board.board_id}", force_reload=True)
        return total

    def dump_followed_boards(self, urlname: str, output: str | Path) -> int:
        logger.info("Loading boards followed by %s...", urlname)
        boards = self.crawler.get_followed_boards_by_username(urlname)
        logger.info("%d boards found.", len(boards))
        total = 0
        for board in boards:
            owner = board.user.urlname if board.user else urlname
            total += self.dump_board(board, Path(output) / f"{owner}-{board.board_id}", force_reload=True)
        return total

    def dump_followed_users(self, urlname: str, output: str | Path) -> int:
        logger.info("Loading users followed by %s...", urlname)
        users = self.crawler.get_followed_users_by_username(urlname)
        logger.info("%d users found.", len(users))
        return sum(self.dump_user(user.urlname, output) for user in users)

    # ── lifecycle ───────────────────────────────────────────────

    def close(self) -> None:
        self.crawler.close()

    def __enter__(self) -> Dumper:
        return self

    def __exit__(self, *args: object) -> None:
        self.close()
