"""
ClipSync Backend — Content Sanitizer/Validator Unit Tests
==========================================================

What we test:
    ✅ Size limit counts UTF-8 bytes, not characters
    ✅ Type coercion and validation
    ✅ Redaction heuristic: short, key/value shaped, keyword present
    ✅ Truncation and human-readable sizes
"""

import pytest

from clipsync.exceptions import ContentTooLargeError, InvalidContentTypeError
from clipsync.services.content_service import REDACTION_MARKER, ContentService


class TestValidation:
    def setup_method(self):
        self.service = ContentService(max_content_size=10, sanitize_enabled=True)

    def test_size_within_limit(self):
        assert self.service.validate_size("0123456789") == 10

    def test_size_counts_bytes(self):
        # 4 characters, 12 bytes
        with pytest.raises(ContentTooLargeError) as exc_info:
            self.service.validate_size("日本語字")
        assert exc_info.value.size == 12
        assert exc_info.value.max_size == 10

    def test_explicit_limit_overrides_default(self):
        with pytest.raises(ContentTooLargeError):
            self.service.validate_size("abc", max_bytes=2)

    def test_explicit_zero_limit_is_honoured(self):
        with pytest.raises(ContentTooLargeError) as exc_info:
            self.service.validate_size("a", max_bytes=0)
        assert exc_info.value.max_size == 0
        assert self.service.validate_size("", max_bytes=0) == 0

    @pytest.mark.parametrize("raw", [None, "", "   "])
    def test_missing_type_is_text(self, raw):
        assert self.service.coerce_type(raw) == "text"

    @pytest.mark.parametrize("value", ["text", "image", "file"])
    def test_valid_types(self, value):
        assert self.service.validate_type(value) == value

    @pytest.mark.parametrize("value", ["video", "TEXT", "binary"])
    def test_invalid_types(self, value):
        with pytest.raises(InvalidContentTypeError):
            self.service.validate_type(value)


class TestSanitize:
    def setup_method(self):
        self.service = ContentService(sanitize_enabled=True)

    @pytest.mark.parametrize(
        "content",
        ["password=hunter2", "API_KEY: abc123", "db_pwd=letmein", "auth: Bearer xyz", "secret = 42"],
    )
    def test_credential_like_content_hidden(self, content):
        assert self.service.sanitize(content) == REDACTION_MARKER

    def test_keyword_without_separator_kept(self):
        content = "remember to reset my password tomorrow"
        assert self.service.sanitize(content) == content

    def test_separator_without_keyword_kept(self):
        assert self.service.sanitize("x = 1") == "x = 1"

    def test_long_content_never_scanned(self):
        content = "password=hunter2 " + "a" * 100
        assert self.service.sanitize(content) == content

    def test_disabled(self):
        service = ContentService(sanitize_enabled=False)
        assert service.sanitize("password=hunter2") == "password=hunter2"


class TestHelpers:
    def test_truncate(self):
        assert ContentService.truncate("a" * 60) == "a" * 50 + "..."
        assert ContentService.truncate("short") == "short"
        assert ContentService.truncate("a" * 50) == "a" * 50

    @pytest.mark.parametrize(
        "size,expected",
        [(512, "512 B"), (1536, "1.5 KB"), (1_048_576, "1.0 MB"), (3 * 1024 ** 3, "3.0 GB")],
    )
    def test_format_size(self, size, expected):
        assert ContentService.format_size(size) == expected
