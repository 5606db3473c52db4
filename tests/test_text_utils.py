"""
Tests for tutor_gateway.utils.text_utils: sanitization and identity hashing.
"""

import pytest

from tutor_gateway.utils.text_utils import anonymize, sanitize_output, sanitize_text, truncate_text


# ============================================================
# sanitize_text
# ============================================================

class TestSanitizeText:

    def test_email_redacted(self):
        assert sanitize_text("Email me at kid@example.com", 100) == "Email me at [redacted]"

    def test_phone_redacted(self):
        assert sanitize_text("Call 555-123-4567 now", 100) == "Call [redacted] now"

    def test_phone_with_country_code_redacted(self):
        result = sanitize_text("Text +1 555.123.4567 please", 100)
        assert "555" not in result
        assert "[redacted]" in result

    def test_long_digit_run_redacted(self):
        assert sanitize_text("Account 123456789012", 100) == "Account [redacted]"

    def test_short_numbers_kept(self):
        assert sanitize_text("What is 12 times 34?", 100) == "What is 12 times 34?"

    def test_lines_stripped_and_blank_lines_dropped(self):
        assert sanitize_text("  first  \r\n\n   \n  second ", 100) == "first\nsecond"

    def test_truncates_to_max_length(self):
        assert sanitize_text("abcdefgh", 3) == "abc"

    def test_none_and_empty_return_empty_string(self):
        assert sanitize_text(None, 100) == ""
        assert sanitize_text("", 100) == ""
        assert sanitize_text("  \n \n ", 100) == ""

    def test_output_cap_is_1600(self):
        assert len(sanitize_output("x" * 5000)) == 1600


# ============================================================
# Idempotence
# ============================================================

IDEMPOTENCE_SAMPLES = [
    "plain text",
    "  padded  \n\n lines  ",
    "reach me at kid@example.com or 555-123-4567",
    "ab cd ef gh",
    "digits 1234567890123 and more",
    "line one\nline two\nline three",
    "trailing kid@example.com",
]


@pytest.mark.parametrize("text", IDEMPOTENCE_SAMPLES)
@pytest.mark.parametrize("cap", [3, 10, 15, 24, 1200])
def test_sanitize_is_idempotent(text, cap):
    once = sanitize_text(text, cap)
    assert sanitize_text(once, cap) == once


def test_redaction_marker_not_double_redacted():
    once = sanitize_text("kid@example.com", 100)
    assert sanitize_text(once, 100) == "[redacted]"


# ============================================================
# anonymize / truncate_text
# ============================================================

class TestAnonymize:

    def test_hash_is_short_hex_and_stable(self):
        first = anonymize("student-10")
        assert first == anonymize("student-10")
        assert len(first) == 12
        assert all(ch in "0123456789abcdef" for ch in first)

    def test_distinct_inputs_give_distinct_keys(self):
        assert anonymize("student-10") != anonymize("student-11")

    def test_empty_input_gives_none(self):
        assert anonymize(None) is None
        assert anonymize("") is None

    def test_raw_value_not_contained(self):
        assert "student" not in anonymize("student-10")


def test_truncate_text_adds_suffix():
    assert truncate_text("abcdefghij", 6) == "abc..."
    assert truncate_text("short", 10) == "short"
