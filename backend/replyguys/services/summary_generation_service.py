"""
Final report synthesis.

Feeds the qualified replies (best first) to the synthesis model and
validates the answer into ``ReportSummary``.  An empty reply list never
reaches the model.
"""
import logging
from dataclasses import dataclass, field
from typing import List, Optional

from pydantic import ValidationError as PydanticValidationError

from ..schemas.summary import ReportSummary
from .llm import LLMService
from .llm.json_output import loads_object
from .report_prompts import (
    SUMMARY_REPLY_BLOCK,
    SUMMARY_SYSTEM_PROMPT,
    SUMMARY_USER_PROMPT,
    audience_block,
)
from .reply_evaluation_service import EvaluationContext

logger = logging.getLogger(__name__)

INSUFFICIENT_REPLIES_SUMMARY = (
    "This report did not receive enough high-quality replies to generate meaningful "
    "insights. The replies that were collected either lacked specificity, "
    "actionability, or relevance to the stated goal."
)
INSUFFICIENT_REPLIES_NOTE = "Insufficient quality replies for comprehensive analysis."

TIMEOUT_NO_SIGNAL_SUMMARY = (
    "Our post monitor checks for 24 hours. As you haven't received enough quality "
    "replies, we have marked the report as complete."
)
TIMEOUT_NO_SIGNAL_NOTE = "No qualified replies were collected during the 24-hour monitoring period."


class SummaryParseError(Exception):
    """The synthesis model answered with something that is not a valid report."""


@dataclass(frozen=True)
class QualifiedReply:
    id: str
    username: str
    follower_count: int
    text: str
    goal_relevance: int
    actionability: int
    specificity: int
    substantiveness: int
    constructiveness: int
    tags: List[str] = field(default_factory=list)
    mini_summary: str = ""


def timeout_placeholder_summary() -> ReportSummary:
    return ReportSummary(
        executive_summary=TIMEOUT_NO_SIGNAL_SUMMARY,
        quality_note=TIMEOUT_NO_SIGNAL_NOTE,
    )


class SummaryGenerationService:
    """Synthesize a report from its qualified replies."""

    def __init__(self, llm: Optional[LLMService] = None):
        self._llm = llm

    @property
    def llm(self) -> LLMService:
        if self._llm is None:
            self._llm = LLMService(use_case="synthesis")
        return self._llm

    def build_prompt(self, context: EvaluationContext, replies: List[QualifiedReply]) -> str:
        replies_section = "\n\n".join(
            SUMMARY_REPLY_BLOCK.format(
                reply_id=r.id,
                username=r.username,
                follower_count=int(r.follower_count or 0),
                goal_relevance=r.goal_relevance,
                actionability=r.actionability,
                specificity=r.specificity,
                substantiveness=r.substantiveness,
                constructiveness=r.constructiveness,
                tags=", ".join(r.tags),
                mini_summary=r.mini_summary,
                text=r.text,
            )
            for r in replies
        )
        return SUMMARY_USER_PROMPT.format(
            goal=context.goal,
            post_text=context.post_text or "",
            audience_block=audience_block(context.persona),
            reply_count=len(replies),
            replies_section=replies_section,
        )

    def generate(self, context: EvaluationContext, replies: List[QualifiedReply]) -> ReportSummary:
        if not replies:
            logger.info("No qualified replies; returning minimal summary without a model call")
            return ReportSummary(
                executive_summary=INSUFFICIENT_REPLIES_SUMMARY,
                quality_note=INSUFFICIENT_REPLIES_NOTE,
            )

        response = self.llm.completion_sync(
            messages=[
                {"role": "system", "content": SUMMARY_SYSTEM_PROMPT},
                {"role": "user", "content": self.build_prompt(context, replies)},
            ],
            response_format={"type": "json_object"},
        )
        response_text = LLMService.extract_content(response)

        try:
            return ReportSummary.model_validate(loads_object(response_text))
        except (ValueError, PydanticValidationError) as e:
            logger.error(
                "Failed to parse synthesis response: %s", (response_text or "EMPTY")[:500]
            )
            raise SummaryParseError(f"Failed to parse synthesis response: {e}") from e
