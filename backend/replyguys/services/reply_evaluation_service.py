"""
Reply scoring against the report goal.

One LLM call per reply; the response is validated into
``ReplyEvaluationResponse`` and converted to domain ``ReplyScores``.
Weighting and the inclusion gate are applied by the caller.
"""
import logging
from dataclasses import dataclass
from typing import Optional

from pydantic import ValidationError as PydanticValidationError

from ..domain.reports.models import ReplyScores
from ..schemas.evaluation import ReplyEvaluationResponse
from .llm import LLMService
from .llm.json_output import loads_object
from .report_prompts import SCORING_SYSTEM_PROMPT, SCORING_USER_PROMPT, audience_block

logger = logging.getLogger(__name__)

_MAX_REPLY_CHARS = 4000


class ScoringParseError(Exception):
    """The scoring model answered with something that is not a valid evaluation."""


@dataclass(frozen=True)
class EvaluationContext:
    post_text: str
    goal: str
    persona: Optional[str] = None


@dataclass(frozen=True)
class ReplyForScoring:
    id: str
    username: str
    follower_count: int
    text: str


class ReplyEvaluationService:
    """Score single replies with the scoring model."""

    def __init__(self, llm: Optional[LLMService] = None):
        self.llm = llm or LLMService(use_case="scoring")

    def build_prompt(self, context: EvaluationContext, reply: ReplyForScoring) -> str:
        text = reply.text
        if len(text) > _MAX_REPLY_CHARS:
            text = text[:_MAX_REPLY_CHARS] + "... [truncated]"
        return SCORING_USER_PROMPT.format(
            goal=context.goal,
            post_text=context.post_text or "",
            audience_block=audience_block(context.persona),
            username=reply.username,
            follower_count=int(reply.follower_count or 0),
            reply_text=text,
        )

    def evaluate(self, context: EvaluationContext, reply: ReplyForScoring) -> ReplyScores:
        """
        Score one reply.

        Raises:
            ScoringParseError: response was not a valid evaluation object
            LLMError: the model call failed after LiteLLM-level retries
        """
        response = self.llm.completion_sync(
            messages=[
                {"role": "system", "content": SCORING_SYSTEM_PROMPT},
                {"role": "user", "content": self.build_prompt(context, reply)},
            ],
            response_format={"type": "json_object"},
        )
        response_text = LLMService.extract_content(response)

        try:
            payload = loads_object(response_text)
            evaluation = ReplyEvaluationResponse.model_validate(payload)
        except (ValueError, PydanticValidationError) as e:
            logger.warning(
                "Unparseable scoring response for reply %s: %s",
                reply.id,
                (response_text or "EMPTY")[:200],
            )
            raise ScoringParseError(f"Failed to parse scoring response: {e}") from e

        return evaluation.to_scores()
