"""Apify implementation of the ReplyProvider port.

Runs the tweet-scraper actor synchronously over the Apify REST API and
normalizes its dataset items.  The actor pads short result sets with
placeholder rows (``type == "mock_tweet"`` or ``id == -1``); those are
dropped here and do not count toward the page size, since a padded
page is by definition a short one.
"""

from __future__ import annotations

import logging
from typing import Any

import requests
from dateutil import parser as date_parser

from replyguys.config import settings
from replyguys.domain.reports.models import RootPost, ScrapedReply, ScrapePage
from replyguys.domain.reports.ports import ReplyProvider
from replyguys.domain.reports.pagination import ReplyQuery
from replyguys.utils.clock import to_naive_utc

logger = logging.getLogger(__name__)

# Statuses that mean the actor will never accept this input.
_REJECTED_STATUSES = {400, 404, 422}


class ProviderError(Exception):
    """Transient provider failure; the task layer retries."""


class ProviderRejectedError(ProviderError):
    """The provider permanently rejected the request (bad conversation, bad input)."""


def is_placeholder(item: Any) -> bool:
    if not isinstance(item, dict):
        return True
    return item.get("type") == "mock_tweet" or item.get("id") in (-1, "-1")


def parse_item(item: dict) -> ScrapedReply | None:
    """Normalize one dataset item; returns None for malformed rows."""
    author = item.get("author")
    if item.get("id") is None or not isinstance(item.get("text"), str) or not isinstance(author, dict):
        return None

    created_at = None
    raw_created = item.get("createdAt")
    if raw_created:
        try:
            created_at = to_naive_utc(date_parser.parse(raw_created))
        except (ValueError, OverflowError):
            logger.debug("Unparseable createdAt %r on item %s", raw_created, item.get("id"))

    return ScrapedReply(
        # Ids exceed 2**53; keep them as strings end to end.
        id=str(item["id"]),
        text=item["text"],
        created_at=created_at,
        author_id=str(author.get("id") or ""),
        author_handle=author.get("userName") or "",
        author_name=author.get("name") or "",
        author_followers=int(author.get("followers") or 0),
        author_verified=bool(author.get("isBlueVerified")),
        author_avatar=author.get("profilePicture"),
    )


class ApifyReplyProvider(ReplyProvider):
    """Fetch conversation replies and root posts through the Apify actor."""

    def __init__(
        self,
        token: str | None = None,
        actor_id: str | None = None,
        base_url: str | None = None,
        timeout: int | None = None,
        session: requests.Session | None = None,
    ) -> None:
        self._token = token if token is not None else settings.apify_token
        self._actor_id = actor_id or settings.apify_actor_id
        self._base_url = (base_url or settings.apify_base_url).rstrip("/")
        self._timeout = timeout or settings.apify_request_timeout
        self._http = session or requests.Session()

    def _run_actor(self, actor_input: dict) -> list:
        url = f"{self._base_url}/acts/{self._actor_id}/run-sync-get-dataset-items"
        try:
            response = self._http.post(
                url,
                json=actor_input,
                headers={"Authorization": f"Bearer {self._token}"},
                timeout=self._timeout,
            )
        except requests.RequestException as e:
            raise ProviderError(f"Apify request failed: {e}") from e

        if response.status_code in _REJECTED_STATUSES:
            raise ProviderRejectedError(
                f"Apify rejected input ({response.status_code}): {response.text[:200]}"
            )
        if response.status_code >= 400:
            raise ProviderError(f"Apify returned {response.status_code}: {response.text[:200]}")

        try:
            items = response.json()
        except ValueError as e:
            raise ProviderError(f"Apify returned non-JSON body: {e}") from e
        if not isinstance(items, list):
            raise ProviderError(f"Apify returned {type(items).__name__}, expected a list")
        return items

    def fetch_replies(self, query: ReplyQuery, max_items: int) -> ScrapePage:
        search_term = query.search_term()
        logger.info("Fetching replies: %s (maxItems=%s)", search_term, max_items)

        raw_items = self._run_actor(
            {"searchTerms": [search_term], "maxItems": max_items, "sort": query.sort}
        )

        items: list[ScrapedReply] = []
        placeholders = malformed = 0
        for raw in raw_items:
            if is_placeholder(raw):
                placeholders += 1
                continue
            parsed = parse_item(raw)
            if parsed is None:
                malformed += 1
                continue
            items.append(parsed)

        if placeholders or malformed:
            logger.info(
                "Dropped %d placeholder and %d malformed items for conversation %s",
                placeholders,
                malformed,
                query.conversation_id,
            )
        return ScrapePage(
            items=items, requested=max_items, returned_count=len(raw_items) - placeholders
        )

    def fetch_post(self, post_id: str) -> RootPost | None:
        logger.info("Fetching root post %s", post_id)
        raw_items = self._run_actor({"tweetIDs": [post_id], "maxItems": 1})

        for raw in raw_items:
            if is_placeholder(raw):
                continue
            parsed = parse_item(raw)
            if parsed is not None:
                return RootPost(
                    id=parsed.id,
                    text=parsed.text,
                    author_handle=parsed.author_handle,
                    author_avatar=parsed.author_avatar,
                )
        return None
