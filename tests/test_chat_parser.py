from __future__ import annotations

import json
from pathlib import Path

import pytest

import fakes  # noqa: F401

from chatrelay.ai.models import ChatTurn
from chatrelay.chat.chat_parser import ChatParser, FilterConfig, normalize_text


def test_normalize_escapes_angle_brackets_and_strips_stage_directions() -> None:
    parser = ChatParser()
    turn = parser.normalize("  <b>bob</b> ", "  hi [waves] there <3 ")

    assert turn.username == "&lt;b&gt;bob&lt;/b&gt;"
    assert turn.message == "hi there &lt;3"


def test_stage_directions_are_not_stripped_from_username() -> None:
    assert normalize_text("[mod] carol") == "[mod] carol"


def test_accept_records_seen_and_suppresses_repeat() -> None:
    parser = ChatParser()

    first = parser.accept("alice", "hello there")
    second = parser.accept("alice", "hello there")

    assert first == ChatTurn("alice", "hello there")
    assert second is None
    assert parser.seen_count == 1


def test_same_message_from_other_user_is_not_a_duplicate() -> None:
    parser = ChatParser()
    assert parser.accept("alice", "gm everyone") is not None
    assert parser.accept("bob", "gm everyone") is not None


def test_reset_clears_dedup_record() -> None:
    parser = ChatParser()
    parser.accept("alice", "hello there")
    parser.reset()
    assert parser.accept("alice", "hello there") is not None


@pytest.mark.parametrize("message", ["a", "x" * 201])
def test_length_out_of_bounds_is_suppressed(message: str) -> None:
    assert ChatParser().accept("alice", message) is None


@pytest.mark.parametrize("message", ["ok", "y" * 200])
def test_length_bounds_are_inclusive(message: str) -> None:
    assert ChatParser().accept("alice", message) is not None


def test_length_is_measured_after_normalization() -> None:
    # [지문] 제거 후 한 글자만 남음
    assert ChatParser().accept("alice", "[laughs] a") is None


@pytest.mark.parametrize("message", ["readme.txt", "v1.2", "abc123.xyz9"])
def test_filename_like_tokens_are_suppressed(message: str) -> None:
    assert ChatParser().accept("alice", message) is None


def test_filename_rule_only_applies_to_whole_message() -> None:
    assert ChatParser().accept("alice", "i read v1.2 notes") is not None


def test_blocked_keyword_is_case_insensitive_substring() -> None:
    parser = ChatParser(FilterConfig(blocked_keywords=["scam"], promo_patterns=[]))
    assert parser.accept("alice", "this is a SCAMMER token") is None


@pytest.mark.parametrize(
    "message",
    [
        "visit https://example.org now",
        "ping @somebody here",
        "giveaway in my profile",
        "wow!!! nice",
    ],
)
def test_default_promo_patterns_are_suppressed(message: str) -> None:
    assert ChatParser().accept("alice", message) is None


def test_promo_filter_can_be_disabled_by_policy() -> None:
    parser = ChatParser(FilterConfig(promo_patterns=[]))
    assert parser.accept("alice", "wow!!! nice") is not None


def test_message_without_alphanumeric_is_suppressed_by_default() -> None:
    assert ChatParser().accept("alice", "?? ..") is None
    assert ChatParser(FilterConfig(require_alphanumeric=False)).accept("alice", "?? ..") is not None


def test_suppressed_message_is_not_recorded_as_seen() -> None:
    parser = ChatParser()
    assert parser.accept("alice", "a") is None
    assert parser.seen_count == 0


def test_seen_set_evicts_oldest_insertion_first() -> None:
    parser = ChatParser(FilterConfig(seen_capacity=3))
    for i in range(4):
        assert parser.accept("alice", f"message number {i}") is not None

    assert parser.seen_count == 3
    # 가장 먼저 들어온 0번만 빠졌으므로 다시 통과
    assert parser.accept("alice", "message number 0") is not None
    assert parser.accept("alice", "message number 3") is None


def test_filter_config_from_file_overrides_known_keys(tmp_path: Path) -> None:
    path = tmp_path / "filter_policy.json"
    path.write_text(
        json.dumps({"max_length": 10, "blocked_keywords": ["moon"], "unknown": 1}),
        encoding="utf-8",
    )

    config = FilterConfig.from_file(path)

    assert config.max_length == 10
    assert config.blocked_keywords == ["moon"]
    assert config.min_length == 2


def test_filter_config_from_missing_or_broken_file_uses_defaults(tmp_path: Path) -> None:
    broken = tmp_path / "broken.json"
    broken.write_text("{not json", encoding="utf-8")

    assert FilterConfig.from_file(tmp_path / "missing.json") == FilterConfig()
    assert FilterConfig.from_file(broken) == FilterConfig()
