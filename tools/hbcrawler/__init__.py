"""
Huaban Crawler – dump boards and pins from huaban.com to disk.

Supports:
  • Dumping a single board (all pages of pins)
  • Dumping every board of a user
  • Dumping the boards / users a user follows
  • Optional per-pin JSON metadata
  • Resumable operation by skipping files already on disk
"""

from .crawler import HuabanCrawler, Session
from .errors import ExtractionError, FilesystemError, HBCError, NotInitializedError, ProtocolError, TransportError

__all__ = [
    "HuabanCrawler",
    "Session",
    "HBCError",
    "TransportError",
    "ProtocolError",
    "ExtractionError",
    "FilesystemError",
    "NotInitializedError",
]
