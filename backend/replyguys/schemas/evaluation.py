"""Pydantic schema for the per-reply scoring response."""

from typing import List

from pydantic import BaseModel, Field, field_validator

from ..domain.reports.models import ReplyScores, ReplyTag

_KNOWN_TAGS = {tag.value for tag in ReplyTag}


class ReplyEvaluationResponse(BaseModel):
    """Structured output expected from the scoring model."""

    goal_relevance: int = Field(ge=0, le=100)
    actionability: int = Field(ge=0, le=100)
    specificity: int = Field(ge=0, le=100)
    substantiveness: int = Field(ge=0, le=100)
    constructiveness: int = Field(ge=0, le=100)
    tags: List[str] = Field(default_factory=list)
    mini_summary: str = ""
    to_be_included: bool = False

    @field_validator(
        "goal_relevance",
        "actionability",
        "specificity",
        "substantiveness",
        "constructiveness",
        mode="before",
    )
    @classmethod
    def _round_scores(cls, v):
        # Models occasionally answer 72.5
        if isinstance(v, float):
            return int(round(v))
        return v

    @field_validator("tags", mode="before")
    @classmethod
    def _known_tags_only(cls, v):
        if not isinstance(v, list):
            return []
        return [t for t in v if isinstance(t, str) and t in _KNOWN_TAGS]

    @field_validator("mini_summary")
    @classmethod
    def _truncate_summary(cls, v: str) -> str:
        return v.strip()[:300]

    def to_scores(self) -> ReplyScores:
        return ReplyScores(
            goal_relevance=self.goal_relevance,
            actionability=self.actionability,
            specificity=self.specificity,
            substantiveness=self.substantiveness,
            constructiveness=self.constructiveness,
            tags=list(self.tags),
            mini_summary=self.mini_summary,
            to_be_included=self.to_be_included,
        )
