"""
Publication: post a short recap of a finished report as a quote of the
original post, crediting up to three contributors.
"""
import logging
import re
from typing import Callable, List, Optional

import requests

from ..config import settings
from ..domain.common.uow import UnitOfWork
from ..domain.reports.models import PublicationStatus, SummaryStatus
from .activity_log import ActivityLogger

logger = logging.getLogger(__name__)

_SENTENCE_SPLIT_RE = re.compile(r"(?<=[.!?])\s+")
_MAX_SNIPPET_CHARS = 200
SIGNATURE = "Assessed by @replyguysapp"


class PublicationError(Exception):
    """The X API refused or failed to create the post."""


def select_mentions(summary: dict, original_author: str, max_mentions: int = 3) -> List[str]:
    """Hidden gems first, then top insights; never the post's own author."""
    mentions: List[str] = []
    seen = {(original_author or "").lower()}

    candidates = [g.get("username") for g in summary.get("hidden_gems") or []]
    candidates += [i.get("username") for i in summary.get("top_insights") or []]

    for username in candidates:
        if len(mentions) >= max_mentions:
            break
        if not username or username.lower() in seen:
            continue
        seen.add(username.lower())
        mentions.append(username)
    return mentions


def compose_post(executive_summary: str, mentions: List[str]) -> str:
    sentences = _SENTENCE_SPLIT_RE.split((executive_summary or "").strip())
    snippet = " ".join(sentences[:2])
    if len(snippet) > _MAX_SNIPPET_CHARS:
        snippet = snippet[: _MAX_SNIPPET_CHARS - 3] + "..."

    parts = [snippet]
    if mentions:
        parts.append("\nShoutout to " + " ".join(f"@{u}" for u in mentions) + " for the insights")
    parts.append("\n\n" + SIGNATURE)
    return "".join(parts)


class XApiClient:
    """Minimal X API v2 client for creating posts."""

    def __init__(
        self,
        bearer_token: Optional[str] = None,
        base_url: Optional[str] = None,
        session: Optional[requests.Session] = None,
    ):
        self._bearer_token = bearer_token if bearer_token is not None else settings.x_bearer_token
        self._base_url = (base_url or settings.x_api_base_url).rstrip("/")
        self._http = session or requests.Session()

    def create_post(self, text: str, quote_post_id: Optional[str] = None) -> str:
        payload = {"text": text}
        if quote_post_id:
            payload["quote_tweet_id"] = quote_post_id
        try:
            response = self._http.post(
                f"{self._base_url}/tweets",
                json=payload,
                headers={"Authorization": f"Bearer {self._bearer_token}"},
                timeout=30,
            )
        except requests.RequestException as e:
            raise PublicationError(f"X API request failed: {e}") from e

        if response.status_code >= 400:
            raise PublicationError(f"X API returned {response.status_code}: {response.text[:200]}")

        try:
            return str(response.json()["data"]["id"])
        except (ValueError, KeyError, TypeError) as e:
            raise PublicationError(f"X API returned no post id: {response.text[:200]}") from e


class PublicationService:
    """Publish a report's recap exactly once."""

    def __init__(
        self,
        uow_factory: Callable[[], UnitOfWork],
        client: XApiClient,
        activity: ActivityLogger,
    ):
        self._uow_factory = uow_factory
        self._client = client
        self._activity = activity

    def publish(self, report_id: str) -> str:
        """Returns the resulting publication status, or "skipped"."""
        with self._uow_factory() as uow:
            report = uow.reports.get(report_id)
            if report is None or report.summary_status != SummaryStatus.COMPLETED.value or not report.summary:
                return "skipped"
            if not uow.reports.transition_publication_status(
                report_id,
                [None, PublicationStatus.PENDING.value, PublicationStatus.FAILED.value],
                PublicationStatus.POSTING.value,
            ):
                return "skipped"
            report = uow.reports.get(report_id)
            summary = dict(report.summary)
            author = report.original_author_handle or ""
            quote_id = report.conversation_id
            uow.commit()

        mentions = select_mentions(summary, author, settings.publication_max_mentions)
        text = compose_post(summary.get("executive_summary", ""), mentions)

        try:
            post_id = self._client.create_post(text, quote_post_id=quote_id)
        except PublicationError as e:
            logger.error("Publishing report %s failed: %s", report_id, e)
            with self._uow_factory() as uow:
                uow.reports.transition_publication_status(
                    report_id, [PublicationStatus.POSTING.value], PublicationStatus.FAILED.value
                )
                uow.commit()
            self._activity.log(report_id, "publish", "Posting the recap failed", {"error": str(e)[:200]})
            raise

        with self._uow_factory() as uow:
            uow.reports.transition_publication_status(
                report_id,
                [PublicationStatus.POSTING.value],
                PublicationStatus.POSTED.value,
                published_post_id=post_id,
            )
            uow.commit()

        self._activity.log(
            report_id, "publish", "Recap posted", {"post_id": post_id, "mentions": mentions}
        )
        return PublicationStatus.POSTED.value
