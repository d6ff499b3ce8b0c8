"""Tests for log-safe identifiers"""
from storefront.cart import IdentityRef
from storefront.logging import describe_owner, get_logger, safe_id


def test_safe_id_truncates():
    assert safe_id("0123456789abcdef") == "01234567"


def test_safe_id_escapes_line_breaks():
    """A forged second log line stays on the first one."""
    assert safe_id("a\nFAKE") == "a\\nFAKE"
    assert "\n" not in safe_id("ab\r\ncd")


def test_safe_id_missing():
    assert safe_id(None) == "N/A"
    assert safe_id("") == "N/A"


def test_describe_owner():
    assert describe_owner(IdentityRef.user("3f2a9c1d-77")) == "user 3f2a9c1d"
    assert describe_owner(IdentityRef.anonymous("dev")) == "anonymous dev"


def test_get_logger_is_cached():
    assert get_logger("storefront.test") is get_logger("storefront.test")
