"""HTTP transport – every verb funnels through one ``request()``."""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from typing import Any

import httpx

from .errors import TransportError

logger = logging.getLogger("hbcrawler.transport")


@dataclass(frozen=True)
class URLInfo:
    """Pre-split request target.  ``URLInfo(...).url`` is what goes on the wire."""
    host: str
    path: str = "/"
    port: int | None = None
    https: bool = False

    @property
    def url(self) -> str:
        scheme = "https" if self.https else "http"
        netloc = f"{self.host}:{self.port}" if self.port else self.host
        path = self.path if self.path.startswith("/") else f"/{self.path}"
        return f"{scheme}://{netloc}{path}"

    @classmethod
    def parse(cls, url: str) -> URLInfo:
        u = httpx.URL(url)
        path = u.raw_path.decode("ascii") or "/"
        return cls(host=u.host, path=path, port=u.port, https=u.scheme == "https")


@dataclass(frozen=True)
class HttpResponse:
    code: int
    headers: httpx.Headers
    body: bytes

    @property
    def set_cookies(self) -> list[str]:
        return self.headers.get_list("set-cookie")

    @property
    def content_length(self) -> int:
        value = self.headers.get("content-length")
        return int(value) if value and value.isdigit() else 0

    @property
    def text(self) -> str:
        return self.body.decode("utf-8", errors="replace")

    def json(self) -> Any:
        return json.loads(self.body)


class Transport:
    """Thin wrapper around ``httpx.Client``.

    Cookies are never handled implicitly: the client's own jar is emptied
    after each exchange, so callers pass a ``Cookie`` header themselves.
    Redirects are not followed; a 30x comes back as-is, ``Set-Cookie`` included.
    Bodies are decompressed according to ``Content-Encoding``.
    """

    def __init__(self, timeout: float = 30.0, client: httpx.Client | None = None) -> None:
        self.timeout = timeout
        self._client = client or httpx.Client(timeout=timeout, follow_redirects=False)

    def request(
        self,
        method: str,
        url: str | URLInfo,
        headers: dict[str, str] | None = None,
        body: bytes | str | None = None,
        *,
        content_type: str | None = None,
        timeout: float | None = None,
        header_only: bool = False,
    ) -> HttpResponse:
        method = method.upper()
        target = url.url if isinstance(url, URLInfo) else url
        if method == "HEAD":
            header_only = True

        hdrs = dict(headers or {})
        if content_type:
            hdrs["Content-Type"] = content_type
        content = body.encode("utf-8") if isinstance(body, str) else body

        try:
            req = self._client.build_request(
                method,
                target,
                headers=hdrs,
                content=content,
                timeout=timeout if timeout is not None else self.timeout,
            )
            resp = self._client.send(req, stream=True, follow_redirects=False)
        except httpx.RequestError as exc:
            self._client.cookies.clear()
            logger.warning("%s %s failed: %s", method, target, exc)
            raise TransportError(f"{method} {target} failed: {exc}", {"url": target}) from exc

        try:
            if header_only or resp.status_code == 204 or "content-type" not in resp.headers:
                data = b""
            else:
                data = resp.read()
        except httpx.RequestError as exc:
            logger.warning("Reading body of %s %s failed: %s", method, target, exc)
            raise TransportError(f"Reading body of {target} failed: {exc}", {"url": target}) from exc
        finally:
            resp.close()
            self._client.cookies.clear()

        logger.debug("%s %s -> %d (%d bytes)", method, target, resp.status_code, len(data))
        return HttpResponse(code=resp.status_code, headers=resp.headers, body=data)

    # ── verb wrappers ───────────────────────────────────────────

    def get(self, url: str | URLInfo, headers: dict[str, str] | None = None, **kwargs: Any) -> HttpResponse:
        return self.request("GET", url, headers, **kwargs)

    def head(self, url: str | URLInfo, headers: dict[str, str] | None = None, **kwargs: Any) -> HttpResponse:
        return self.request("HEAD", url, headers, header_only=True, **kwargs)

    def delete(self, url: str | URLInfo, headers: dict[str, str] | None = None, **kwargs: Any) -> HttpResponse:
        return self.request("DELETE", url, headers, **kwargs)

    def options(self, url: str | URLInfo, headers: dict[str, str] | None = None, **kwargs: Any) -> HttpResponse:
        return self.request("OPTIONS", url, headers, **kwargs)

    def post(self, url: str | URLInfo, body: bytes | str, content_type: str, headers: dict[str, str] | None = None, **kwargs: Any) -> HttpResponse:
        return self.request("POST", url, headers, body, content_type=content_type, **kwargs)

    def put(self, url: str | URLInfo, body: bytes | str, content_type: str, headers: dict[str, str] | None = None, **kwargs: Any) -> HttpResponse:
        return self.request("PUT", url, headers, body, content_type=content_type, **kwargs)

    def patch(self, url: str | URLInfo, body: bytes | str, content_type: str, headers: dict[str, str] | None = None, **kwargs: Any) -> HttpResponse:
        return self.request("PATCH", url, headers, body, content_type=content_type, **kwargs)

    def close(self) -> None:
        self._client.close()

    def __enter__(self) -> Transport:
        return self

    def __exit__(self, *args: object) -> None:
        self.close()
