"""Domain models for the reports bounded context.

Pure value objects and enums describing a report's lifecycle, its
scoring weights and the provider items it collects.  No ORM, HTTP or
Redis types appear here.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum


# ---------------------------------------------------------------------------
# Enums
# ---------------------------------------------------------------------------


class ReportStatus(str, Enum):
    """Lifecycle states of a report."""

    SETTING_UP = "setting_up"
    PENDING = "pending"
    SCRAPING = "scraping"
    COMPLETED = "completed"
    FAILED = "failed"


class SummaryStatus(str, Enum):
    """Synthesis sub-status, independent of the report status."""

    PENDING = "pending"
    GENERATING = "generating"
    COMPLETED = "completed"
    FAILED = "failed"


class EvaluationStatus(str, Enum):
    PENDING = "pending"
    EVALUATING = "evaluating"
    EVALUATED = "evaluated"


class ScrapePhase(str, Enum):
    """Which end of the conversation the scraper is paging."""

    BACKWARDS = "backwards"  # historical backfill, older than oldest_seen_at
    FORWARD = "forward"  # new arrivals, newer than newest_seen_at


class PublicationStatus(str, Enum):
    PENDING = "pending"
    POSTING = "posting"
    POSTED = "posted"
    FAILED = "failed"


class ReplyTag(str, Enum):
    FEATURE_REQUEST = "feature_request"
    COMPLAINT = "complaint"
    PRAISE = "praise"
    QUESTION = "question"
    SUGGESTION = "suggestion"
    PERSONAL_EXPERIENCE = "personal_experience"
    DATA_POINT = "data_point"
    COUNTERPOINT = "counterpoint"
    AGREEMENT = "agreement"


# Reports the supervisor keeps an eye on.
ACTIVE_STATUSES: frozenset[str] = frozenset(
    {ReportStatus.SCRAPING.value, ReportStatus.PENDING.value, ReportStatus.SETTING_UP.value}
)


# ---------------------------------------------------------------------------
# Weights
# ---------------------------------------------------------------------------

WEIGHT_DIMENSIONS: tuple[str, ...] = (
    "actionability",
    "specificity",
    "substantiveness",
    "constructiveness",
)


@dataclass(frozen=True)
class Weights:
    """Relative importance of the four quality dimensions (each 0..100)."""

    actionability: float = 25
    specificity: float = 25
    substantiveness: float = 25
    constructiveness: float = 25

    @property
    def total(self) -> float:
        return self.actionability + self.specificity + self.substantiveness + self.constructiveness

    def to_dict(self) -> dict[str, float]:
        return {name: getattr(self, name) for name in WEIGHT_DIMENSIONS}

    @classmethod
    def from_dict(cls, data: dict | None) -> "Weights":
        if not data:
            return cls()
        return cls(**{name: data.get(name, 0) for name in WEIGHT_DIMENSIONS})


WEIGHT_PRESETS: dict[str, Weights] = {
    "balanced": Weights(25, 25, 25, 25),
    "research": Weights(35, 35, 15, 15),
    "ideas": Weights(15, 15, 40, 30),
    "feedback": Weights(35, 20, 10, 35),
}

DEFAULT_PRESET = "balanced"


# ---------------------------------------------------------------------------
# Value objects
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class ScrapedReply:
    """One normalized item returned by the scraping provider."""

    id: str
    text: str
    created_at: datetime | None
    author_id: str = ""
    author_handle: str = ""
    author_name: str = ""
    author_followers: int = 0
    author_verified: bool = False
    author_avatar: str | None = None


@dataclass(frozen=True)
class RootPost:
    """The monitored post itself."""

    id: str
    text: str
    author_handle: str
    author_avatar: str | None = None


@dataclass(frozen=True)
class ScrapePage:
    """Provider response for one scrape tick."""

    items: list[ScrapedReply]
    requested: int
    returned_count: int  # rows left after placeholder removal, malformed included

    @property
    def exhausted(self) -> bool:
        return self.returned_count < self.requested

    @property
    def oldest(self) -> datetime | None:
        stamps = [i.created_at for i in self.items if i.created_at is not None]
        return min(stamps) if stamps else None

    @property
    def newest(self) -> datetime | None:
        stamps = [i.created_at for i in self.items if i.created_at is not None]
        return max(stamps) if stamps else None


@dataclass(frozen=True)
class ReplyScores:
    """Dimension scores returned by the scoring service (0..100 each)."""

    goal_relevance: int
    actionability: int
    specificity: int
    substantiveness: int
    constructiveness: int
    tags: list[str] = field(default_factory=list)
    mini_summary: str = ""
    to_be_included: bool = False


@dataclass(frozen=True)
class ReplyVerdict:
    """Scores plus the policy outcome computed locally."""

    reply_id: str
    scores: ReplyScores | None
    weighted_score: int
    inclusion: bool
