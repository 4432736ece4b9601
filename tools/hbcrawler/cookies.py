"""In-memory cookie jar fed from ``Set-Cookie`` response headers."""

from __future__ import annotations

import logging
import time
from collections.abc import Iterable
from dataclasses import dataclass
from http.cookiejar import http2time

logger = logging.getLogger("hbcrawler.cookies")


@dataclass(frozen=True)
class CookieInfo:
    name: str
    value: str
    httponly: bool = False
    secure: bool = False
    path: str | None = None
    domain: str | None = None
    max_age: int | None = None
    expires: float | None = None  # unix seconds

    def is_expired(self, now: float) -> bool:
        if self.max_age is not None and self.max_age <= 0:
            return True
        return self.expires is not None and self.expires < now


def _split_pair(segment: str) -> tuple[str, str | None]:
    pos = segment.find("=")
    if pos == -1:
        return segment, None
    return segment[:pos].strip(), segment[pos + 1:].strip()


def parse_set_cookie(line: str) -> CookieInfo:
    """Parse one ``Set-Cookie`` line: ``name=value; attr=val; flag``."""
    segments = [s.strip() for s in line.split(";")]
    name, value = _split_pair(segments[0])
    attrs: dict[str, object] = {}
    for seg in segments[1:]:
        if not seg:
            continue
        key, val = _split_pair(seg)
        key = key.lower()
        if key in ("httponly", "secure"):
            attrs[key] = True
        elif key in ("path", "domain"):
            attrs[key] = val or ""
        elif key == "max-age":
            try:
                attrs["max_age"] = int(val or "")
            except ValueError:
                logger.debug("Ignoring bad Max-Age %r for cookie %s", val, name)
        elif key == "expires":
            ts = http2time(val or "")
            if ts is None:
                logger.debug("Ignoring bad Expires %r for cookie %s", val, name)
            else:
                attrs["expires"] = float(ts)
    return CookieInfo(name=name, value=value or "", **attrs)  # type: ignore[arg-type]


class CookieJar:
    """name → value mapping.

    Expiry is only evaluated when new ``Set-Cookie`` lines arrive; nothing
    runs on a timer.
    """

    def __init__(self, cookies: dict[str, str] | None = None) -> None:
        self._cookies: dict[str, str] = dict(cookies or {})

    def update_from(self, lines: Iterable[str], now: float | None = None) -> None:
        now = time.time() if now is None else now
        for line in lines:
            info = parse_set_cookie(line)
            if not info.name:
                continue
            if info.is_expired(now):
                if self._cookies.pop(info.name, None) is not None:
                    logger.debug("Cookie %s expired", info.name)
            else:
                self._cookies[info.name] = info.value

    def serialize(self) -> str:
        return "; ".join(f"{k}={v}" for k, v in self._cookies.items())

    def get(self, name: str) -> str | None:
        return self._cookies.get(name)

    def as_dict(self) -> dict[str, str]:
        return dict(self._cookies)

    def __contains__(self, name: object) -> bool:
        return name in self._cookies

    def __len__(self) -> int:
        return len(self._cookies)
