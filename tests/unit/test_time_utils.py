from datetime import UTC, datetime

from meeting_bot_agent.common.time import parse_timestamp
from meeting_bot_agent.common.utils import join_url, safe_dict, to_ws_url


def test_parse_timestamp_variants():
    assert parse_timestamp("2026-01-01T10:00:00Z") == datetime(2026, 1, 1, 10, tzinfo=UTC)
    assert parse_timestamp(0) == datetime(1970, 1, 1, tzinfo=UTC)
    assert parse_timestamp(datetime(2026, 1, 1)).tzinfo is not None
    assert parse_timestamp("not a date") is None
    assert parse_timestamp("") is None
    assert parse_timestamp(None) is None


def test_url_helpers():
    assert join_url("http://a/", "/v1/x") == "http://a/v1/x"
    assert to_ws_url("https://a/v1") == "wss://a/v1"
    assert to_ws_url("http://a/v1") == "ws://a/v1"


def test_safe_dict_truncates():
    out = safe_dict({"text": "x" * 600, "n": 1}, max_len=10)
    assert out["text"].startswith("xxxxxxxxxx")
    assert out["text"].endswith("(truncated)")
    assert out["n"] == 1
