"""
ClipSync Backend — Content Sanitizer/Validator
===============================================

What:  Size and type validation, sensitive-content redaction, display helpers.
Who:   SyncService (every write path), system info route, admin CLI.

Redaction heuristic:
    Short clips (< 100 characters) that look like a key/value pair
    ("=" or ":") and mention a credential keyword are replaced wholesale by
    REDACTION_MARKER before storage. Long content is never scanned. This is
    a heuristic only; it can be turned off with
    SANITIZE_SENSITIVE_CONTENT=false.
"""

import logging
from typing import Optional

from clipsync.config import settings
from clipsync.exceptions import ContentTooLargeError, InvalidContentTypeError
from clipsync.models.clipboard_item import ClipboardType

logger = logging.getLogger(__name__)

REDACTION_MARKER = "[SENSITIVE_CONTENT_HIDDEN]"
SENSITIVE_SCAN_LIMIT = 100
SENSITIVE_KEYWORDS = (
    "password",
    "passwd",
    "pwd",
    "secret",
    "token",
    "api_key",
    "apikey",
    "auth",
)
FAILURE_PREVIEW_CHARS = 50


class ContentService:
    def __init__(
        self,
        max_content_size: Optional[int] = None,
        sanitize_enabled: Optional[bool] = None,
    ):
        self.max_content_size = max_content_size or settings.max_content_size
        self.sanitize_enabled = (
            settings.sanitize_sensitive_content if sanitize_enabled is None else sanitize_enabled
        )

    @staticmethod
    def content_size(content: str) -> int:
        """Size in bytes of the UTF-8 encoding."""
        return len(content.encode("utf-8"))

    def validate_size(self, content: str, max_bytes: Optional[int] = None) -> int:
        """
        Raises:
            ContentTooLargeError: UTF-8 byte length exceeds the limit
        """
        limit = max_bytes if max_bytes is not None else self.max_content_size
        size = self.content_size(content)
        if size > limit:
            raise ContentTooLargeError(size=size, max_size=limit)
        return size

    @staticmethod
    def coerce_type(content_type: Optional[str]) -> str:
        """Absent or blank type means text."""
        if content_type is None or not content_type.strip():
            return ClipboardType.TEXT.value
        return content_type.strip()

    @staticmethod
    def validate_type(content_type: str) -> str:
        if content_type not in ClipboardType.values():
            raise InvalidContentTypeError(content_type)
        return content_type

    def sanitize(self, content: str) -> str:
        if not self.sanitize_enabled or len(content) >= SENSITIVE_SCAN_LIMIT:
            return content
        if "=" not in content and ":" not in content:
            return content

        lowered = content.lower()
        if any(keyword in lowered for keyword in SENSITIVE_KEYWORDS):
            logger.info("Redacted credential-like clipboard content (%d chars)", len(content))
            return REDACTION_MARKER
        return content

    @staticmethod
    def truncate(content: str, max_chars: int = FAILURE_PREVIEW_CHARS) -> str:
        if len(content) <= max_chars:
            return content
        return content[:max_chars] + "..."

    @staticmethod
    def format_size(size: int) -> str:
        """1536 → '1.5 KB'."""
        if size < 1024:
            return f"{size} B"
        value = size / 1024
        for unit in ("KB", "MB"):
            if value < 1024:
                return f"{value:.1f} {unit}"
            value /= 1024
        return f"{value:.1f} GB"


content_service = ContentService()
