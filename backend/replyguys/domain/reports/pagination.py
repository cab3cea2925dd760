"""Two-phase pagination rules.

A report first pages *backwards* through the existing conversation
(``until:`` the oldest reply seen so far).  Once a page comes back short
the history is exhausted and the report switches to *forward* paging
(``since:`` the newest reply seen), driven only by the recurring tick.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime

from .models import ScrapePhase

# Accounts excluded at query level.
EXCLUDED_AUTHORS: tuple[str, ...] = ("grok",)

_BOUND_FORMAT = "%Y-%m-%d_%H:%M:%S_UTC"


def format_bound(value: datetime) -> str:
    """Render a naive-UTC datetime in the provider's search syntax."""
    return value.strftime(_BOUND_FORMAT)


def next_phase(current: ScrapePhase, page_exhausted: bool) -> ScrapePhase:
    """The single predicate that moves a report from backfill to live paging."""
    if current is ScrapePhase.BACKWARDS and page_exhausted:
        return ScrapePhase.FORWARD
    return current


def should_self_chain(
    phase: ScrapePhase,
    *,
    page_full: bool,
    inserted: int,
    scraped_total: int,
    reply_threshold: int,
    cap_multiplier: int,
) -> bool:
    """Whether the backwards scraper should immediately fetch the next page.

    Forward paging never self-chains; it waits for the recurring tick.
    """
    if phase is not ScrapePhase.BACKWARDS:
        return False
    if not page_full or inserted <= 0:
        return False
    return scraped_total < reply_threshold * cap_multiplier


@dataclass(frozen=True)
class ReplyQuery:
    """Provider search request for one page of replies."""

    conversation_id: str
    phase: ScrapePhase
    since: datetime | None = None
    until: datetime | None = None
    verified_only: bool = False
    min_followers: int | None = None

    @property
    def sort(self) -> str:
        """Forward pages oldest first so a burst between ticks is walked in order."""
        return "Oldest" if self.phase is ScrapePhase.FORWARD else "Latest"

    def search_term(self) -> str:
        parts = [f"conversation_id:{self.conversation_id}", "filter:replies"]
        parts.extend(f"-from:{handle}" for handle in EXCLUDED_AUTHORS)
        if self.since is not None:
            parts.append(f"since:{format_bound(self.since)}")
        if self.until is not None:
            parts.append(f"until:{format_bound(self.until)}")
        if self.min_followers:
            parts.append(f"min_followers:{self.min_followers}")
        if self.verified_only:
            parts.append("filter:blue_verified")
        return " ".join(parts)


def build_reply_query(
    conversation_id: str,
    phase: ScrapePhase,
    *,
    oldest_seen_at: datetime | None,
    newest_seen_at: datetime | None,
    verified_only: bool = False,
    min_followers: int | None = None,
) -> ReplyQuery:
    """Bound the query by the cursor belonging to ``phase``.

    The first backwards page has no cursor and fetches the most recent
    replies.
    """
    if phase is ScrapePhase.BACKWARDS:
        return ReplyQuery(
            conversation_id=conversation_id,
            phase=phase,
            until=oldest_seen_at,
            verified_only=verified_only,
            min_followers=min_followers,
        )
    return ReplyQuery(
        conversation_id=conversation_id,
        phase=phase,
        since=newest_seen_at,
        verified_only=verified_only,
        min_followers=min_followers,
    )
