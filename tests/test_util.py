from trcd.constants import REDACTED, ban_rejection_notice
from trcd.util import fmt_addr, normalize_name, sensitive


def test_normalize_name_trims_and_decodes() -> None:
    assert normalize_name(b"  bob\r\n") == "bob"
    assert normalize_name("  zoë ") == "zoë"


def test_normalize_name_rejects_bad_input() -> None:
    assert normalize_name(None) is None
    assert normalize_name(b"\xff") is None
    assert normalize_name("   ") is None
    assert normalize_name("a\nb") is None
    assert normalize_name("nul\x00") is None
    assert normalize_name(42) is None


def test_normalize_name_truncates_long_names() -> None:
    assert normalize_name("x" * 33) == "x" * 32
    assert normalize_name("  abcd efgh  ", max_chars=5) == "abcd"


def test_normalize_name_length_limit_is_configurable() -> None:
    assert normalize_name("abcdef", max_chars=5) == "abcde"
    assert normalize_name("x" * 100, max_chars=0) == "x" * 100


def test_redaction_only_changes_text() -> None:
    assert sensitive("10.0.0.1", True) == REDACTED
    assert sensitive("10.0.0.1", False) == "10.0.0.1"
    assert fmt_addr(("10.0.0.1", 6969)) == "10.0.0.1:6969"
    assert fmt_addr(("::1", 6969)) == "[::1]:6969"
    assert fmt_addr(("10.0.0.1", 6969), safe_mode=True) == REDACTED


def test_ban_rejection_notice_format() -> None:
    assert ban_rejection_notice(2.5) == "You are banned buddy: 2.500000 seconds left\n"
