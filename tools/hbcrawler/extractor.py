"""Pull JSON literals out of inline ``<script>`` assignments.

The site renders its initial page state as ``app[...] = {...};`` statements
instead of offering an API.  All knowledge of those markers lives here.
"""

from __future__ import annotations

import json
from typing import Any

from .errors import ExtractionError
from .models import Board, Settings

SETTINGS_START = 'app["settings"] = '
SETTINGS_END = 'app["req"] = '

BOARD_START = 'app.page["board"] = '
BOARD_END = "app._csr ="


def extract_json(html: str, start_marker: str, end_marker: str) -> Any:
    """Parse the JSON between ``start_marker`` and the last ``;`` before ``end_marker``."""
    start = html.find(start_marker)
    if start == -1:
        raise ExtractionError(f"Marker {start_marker!r} not found", {"marker": start_marker})

    end_marker_pos = html.find(end_marker, start)
    if end_marker_pos == -1:
        raise ExtractionError(f"Marker {end_marker!r} not found", {"marker": end_marker})

    payload_start = start + len(start_marker)
    end = html.rfind(";", payload_start, end_marker_pos)
    if end == -1:
        raise ExtractionError(f"No statement terminator before {end_marker!r}", {"marker": end_marker})

    payload = html[payload_start:end].strip()
    if not payload:
        raise ExtractionError(f"Empty payload after {start_marker!r}", {"marker": start_marker})
    try:
        return json.loads(payload)
    except json.JSONDecodeError as exc:
        raise ExtractionError(f"Invalid JSON after {start_marker!r}: {exc}", {"marker": start_marker}) from exc


def extract_settings(html: str) -> Settings:
    data = extract_json(html, SETTINGS_START, SETTINGS_END)
    if not isinstance(data, dict):
        raise ExtractionError("Settings payload is not an object")
    return Settings.from_dict(data)


def extract_board_payload(html: str) -> Board:
    data = extract_json(html, BOARD_START, BOARD_END)
    if not isinstance(data, dict):
        raise ExtractionError("Board payload is not an object")
    return Board.from_dict(data)
