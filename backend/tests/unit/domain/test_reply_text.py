"""Tests for reply text normalization."""

from __future__ import annotations

import pytest

from replyguys.domain.reports.text import is_meaningful, meaningful_length, strip_mentions_and_urls


class TestStripMentionsAndUrls:
    def test_mentions_and_links_are_removed(self):
        assert strip_mentions_and_urls("@alice https://t.co/x check this out!") == "check this out!"

    def test_whitespace_collapses(self):
        assert strip_mentions_and_urls("  great\n\n  point   @bob  ") == "great point"

    def test_handles_longer_than_fifteen_chars_are_only_partly_stripped(self):
        assert strip_mentions_and_urls("@abcdefghijklmnopq") == "pq"

    def test_http_and_https_links(self):
        assert strip_mentions_and_urls("see http://a.io/x and https://b.io/y") == "see and"

    def test_none_is_empty(self):
        assert strip_mentions_and_urls(None) == ""


class TestMeaningfulLength:
    def test_reply_that_is_mostly_mentions_and_a_link(self):
        assert meaningful_length("@alice https://t.co/x check this out!") == len("check this out!")

    def test_only_mentions_is_zero(self):
        assert meaningful_length("@alice @bob @carol") == 0


class TestIsMeaningful:
    @pytest.mark.parametrize(
        "text, min_length, expected",
        [
            ("@alice https://t.co/x check this out!", 15, True),
            ("@alice https://t.co/x check this out!", 16, False),
            ("@alice", 1, False),
            ("@alice", 0, True),
            ("", 0, True),
        ],
    )
    def test_threshold(self, text, min_length, expected):
        assert is_meaningful(text, min_length) is expected
