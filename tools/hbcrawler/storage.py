"""Disk layout for dumped boards: ``board.json`` plus one image (and
optionally one JSON file) per pin."""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any

from .errors import FilesystemError
from .models import Board, Pin

logger = logging.getLogger("hbcrawler.storage")

BOARD_DESCRIPTOR = "board.json"


class DiskStorage:
    """Decides file names and writes pin images, pin metadata and board descriptors."""

    # ── naming ──────────────────────────────────────────────────

    @staticmethod
    def image_path(directory: str | Path, pin: Pin) -> Path:
        return Path(directory).resolve() / f"{pin.pin_id}.{pin.file.image_type.extension}"

    @staticmethod
    def meta_path(directory: str | Path, pin: Pin) -> Path:
        return Path(directory).resolve() / f"{pin.pin_id}.json"

    @staticmethod
    def is_saved(path: Path) -> bool:
        return path.exists()

    # ── writing ─────────────────────────────────────────────────

    @staticmethod
    def ensure_dir(directory: str | Path) -> Path:
        path = Path(directory)
        try:
            path.mkdir(parents=True, exist_ok=True)
        except OSError as exc:
            raise FilesystemError(f"Cannot create {path}: {exc}", {"path": str(path)}) from exc
        return path

    @staticmethod
    def _write(path: Path, data: bytes) -> None:
        try:
            path.write_bytes(data)
        except OSError as exc:
            raise FilesystemError(f"Cannot write {path}: {exc}", {"path": str(path)}) from exc

    def write_json(self, path: Path, data: Any) -> None:
        self._write(path, json.dumps(data, indent=2, ensure_ascii=False).encode("utf-8"))

    def save_pin(self, img_path: Path, content: bytes, meta_path: Path | None = None, pin: Pin | None = None) -> None:
        """Write the image, then the pin record when ``meta_path`` is given."""
        self._write(img_path, content)
        if meta_path is not None and pin is not None:
            self.write_json(meta_path, pin.raw)
        logger.debug("Saved %s (%d bytes)", img_path, len(content))

    def save_board(self, directory: str | Path, board: Board) -> Path:
        path = Path(directory) / BOARD_DESCRIPTOR
        self.write_json(path, board.descriptor())
        return path

    # ── resume checks ───────────────────────────────────────────

    @staticmethod
    def count_entries(directory: str | Path) -> int:
        try:
            return sum(1 for _ in Path(directory).iterdir())
        except FileNotFoundError:
            return 0

    def looks_complete(self, directory: str | Path, board: Board) -> bool:
        """A dumped board holds an image and a JSON file per pin, plus ``board.json``.

        This only counts directory entries; runs without ``--save-meta`` or
        stray files defeat it.
        """
        return self.count_entries(directory) == board.pin_count * 2 + 1
