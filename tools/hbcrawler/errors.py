"""Failure kinds raised by the crawler."""

from __future__ import annotations

from typing import Any


class HBCError(Exception):
    """Base exception for the crawler."""

    def __init__(self, message: str, code: str = "INTERNAL_ERROR", context: dict[str, Any] | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.code = code
        self.context = context or {}


class TransportError(HBCError):
    """Socket, timeout or body-decoding failure. Never retried here."""

    def __init__(self, message: str, context: dict[str, Any] | None = None) -> None:
        super().__init__(message, "TRANSPORT_ERROR", context)


class ProtocolError(HBCError):
    """The site answered with something other than 200."""

    def __init__(self, status: int, body: bytes = b"", url: str = "") -> None:
        text = body.decode("utf-8", errors="replace") if body else ""
        super().__init__(
            f"Unexpected HTTP {status} from {url or 'server'}" + (f": {text[:200]}" if text else ""),
            "PROTOCOL_ERROR",
            {"status": status, "url": url},
        )
        self.status = status
        self.body = body


class ExtractionError(HBCError):
    """Expected embedded data was not found; the page markup has probably changed."""

    def __init__(self, message: str, context: dict[str, Any] | None = None) -> None:
        super().__init__(message, "EXTRACTION_ERROR", context)


class FilesystemError(HBCError):
    """Writing a dumped file failed."""

    def __init__(self, message: str, context: dict[str, Any] | None = None) -> None:
        super().__init__(message, "FILESYSTEM_ERROR", context)


class NotInitializedError(HBCError):
    """Site settings were needed before ``initialize()`` loaded them."""

    def __init__(self, message: str = "Site settings are not loaded; call initialize() first") -> None:
        super().__init__(message, "NOT_INITIALIZED")
