"""Pydantic schemas for the synthesized report."""

from typing import List, Literal, Optional

from pydantic import BaseModel, Field, field_validator

Sentiment = Literal["positive", "negative", "mixed", "neutral"]
Priority = Literal["high", "medium", "low"]


class KeyTheme(BaseModel):
    theme: str
    description: str
    reply_ids: List[str] = Field(default_factory=list)
    sentiment: Sentiment = "neutral"


class TopInsight(BaseModel):
    insight: str
    reply_id: str
    username: str
    why_notable: str = ""


class ActionItem(BaseModel):
    action: str
    priority: Priority = "medium"
    based_on: List[str] = Field(default_factory=list)


class SentimentBreakdown(BaseModel):
    positive: float = 0
    negative: float = 0
    neutral: float = 0


class SentimentOverview(BaseModel):
    overall: Sentiment
    breakdown: SentimentBreakdown = Field(default_factory=SentimentBreakdown)
    notable_sentiment_shifts: Optional[str] = None


class HiddenGem(BaseModel):
    reply_id: str
    username: str
    follower_count: int = 0
    insight: str
    is_big_little_guy: bool = False


class ControversialTake(BaseModel):
    reply_id: str
    username: str
    take: str
    counterpoint_to: str = ""


class ReportSummary(BaseModel):
    """Final synthesis; only ``executive_summary`` is mandatory."""

    executive_summary: str
    key_themes: Optional[List[KeyTheme]] = None
    top_insights: Optional[List[TopInsight]] = None
    action_items: Optional[List[ActionItem]] = None
    sentiment_overview: Optional[SentimentOverview] = None
    hidden_gems: Optional[List[HiddenGem]] = None
    controversial_takes: Optional[List[ControversialTake]] = None
    quality_note: Optional[str] = None

    @field_validator("top_insights")
    @classmethod
    def _at_most_five_insights(cls, v):
        if v is None:
            return v
        return v[:5]

    @field_validator("executive_summary")
    @classmethod
    def _not_blank(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("executive_summary must not be empty")
        return v.strip()
