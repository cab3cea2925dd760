"""Tests for the two-phase pagination rules."""

from __future__ import annotations

from datetime import datetime

import pytest

from replyguys.domain.reports.models import ScrapePage, ScrapePhase
from replyguys.domain.reports.pagination import (
    build_reply_query,
    format_bound,
    next_phase,
    should_self_chain,
)


class TestFormatBound:
    def test_provider_syntax(self):
        assert format_bound(datetime(2024, 5, 1, 9, 3, 4)) == "2024-05-01_09:03:04_UTC"


class TestNextPhase:
    def test_short_page_ends_backfill(self):
        assert next_phase(ScrapePhase.BACKWARDS, page_exhausted=True) is ScrapePhase.FORWARD

    def test_full_page_keeps_backfilling(self):
        assert next_phase(ScrapePhase.BACKWARDS, page_exhausted=False) is ScrapePhase.BACKWARDS

    @pytest.mark.parametrize("exhausted", [True, False])
    def test_forward_never_goes_back(self, exhausted):
        assert next_phase(ScrapePhase.FORWARD, page_exhausted=exhausted) is ScrapePhase.FORWARD

    def test_padding_does_not_fill_a_page(self):
        # 3 real rows plus 97 placeholders is a short page.
        assert ScrapePage(items=[], requested=100, returned_count=3).exhausted is True
        assert ScrapePage(items=[], requested=100, returned_count=0).exhausted is True
        assert ScrapePage(items=[], requested=100, returned_count=100).exhausted is False


class TestShouldSelfChain:
    def _chain(self, phase=ScrapePhase.BACKWARDS, **overrides):
        kwargs = dict(
            page_full=True,
            inserted=10,
            scraped_total=50,
            reply_threshold=50,
            cap_multiplier=3,
        )
        kwargs.update(overrides)
        return should_self_chain(phase, **kwargs)

    def test_full_backwards_page_with_new_rows_chains(self):
        assert self._chain() is True

    def test_forward_never_chains(self):
        assert self._chain(phase=ScrapePhase.FORWARD) is False

    def test_short_page_does_not_chain(self):
        assert self._chain(page_full=False) is False

    def test_page_of_duplicates_does_not_chain(self):
        assert self._chain(inserted=0) is False

    def test_cap_stops_chaining(self):
        assert self._chain(scraped_total=149) is True
        assert self._chain(scraped_total=150) is False


class TestBuildReplyQuery:
    def test_first_backwards_page_is_unbounded(self):
        query = build_reply_query("123", ScrapePhase.BACKWARDS, oldest_seen_at=None, newest_seen_at=None)
        assert query.search_term() == "conversation_id:123 filter:replies -from:grok"

    def test_backwards_uses_until_oldest(self):
        query = build_reply_query(
            "123",
            ScrapePhase.BACKWARDS,
            oldest_seen_at=datetime(2024, 5, 1, 12, 0, 0),
            newest_seen_at=datetime(2024, 5, 2, 12, 0, 0),
        )
        assert query.until == datetime(2024, 5, 1, 12, 0, 0)
        assert query.since is None
        assert "until:2024-05-01_12:00:00_UTC" in query.search_term()
        assert "since:" not in query.search_term()

    def test_forward_uses_since_newest(self):
        query = build_reply_query(
            "123",
            ScrapePhase.FORWARD,
            oldest_seen_at=datetime(2024, 5, 1, 12, 0, 0),
            newest_seen_at=datetime(2024, 5, 2, 12, 0, 0),
        )
        assert query.since == datetime(2024, 5, 2, 12, 0, 0)
        assert query.until is None
        assert "since:2024-05-02_12:00:00_UTC" in query.search_term()

    def test_filters_are_pushed_to_the_provider(self):
        query = build_reply_query(
            "123",
            ScrapePhase.BACKWARDS,
            oldest_seen_at=None,
            newest_seen_at=None,
            verified_only=True,
            min_followers=500,
        )
        assert query.search_term() == (
            "conversation_id:123 filter:replies -from:grok min_followers:500 filter:blue_verified"
        )

    def test_sort_follows_phase(self):
        backwards = build_reply_query("123", ScrapePhase.BACKWARDS, oldest_seen_at=None, newest_seen_at=None)
        forward = build_reply_query("123", ScrapePhase.FORWARD, oldest_seen_at=None, newest_seen_at=None)
        assert backwards.sort == "Latest"
        assert forward.sort == "Oldest"
