"""Tests for single-reply scoring: prompt building and response parsing."""

import json
from unittest.mock import MagicMock

import pytest

from replyguys.services.reply_evaluation_service import (
    EvaluationContext,
    ReplyEvaluationService,
    ReplyForScoring,
    ScoringParseError,
)

from tests.unit.report_fakes import llm_response

CONTEXT = EvaluationContext(post_text="What should we build next?", goal="Find feature requests")
REPLY = ReplyForScoring(id="7", username="alice", follower_count=1200, text="Offline mode with sync")

SCORES = {
    "goal_relevance": 90,
    "actionability": 80,
    "specificity": 72.6,
    "substantiveness": 60,
    "constructiveness": 50,
    "tags": ["feature_request", "made_up_tag"],
    "mini_summary": "  Wants offline mode  ",
    "to_be_included": True,
}


def _service(content: str) -> tuple[ReplyEvaluationService, MagicMock]:
    llm = MagicMock()
    llm.completion_sync.return_value = llm_response(content)
    return ReplyEvaluationService(llm=llm), llm


class TestBuildPrompt:
    def test_includes_reply_and_author(self):
        service, _ = _service("{}")

        prompt = service.build_prompt(CONTEXT, REPLY)

        assert "Offline mode with sync" in prompt
        assert "alice" in prompt
        assert "Find feature requests" in prompt

    def test_long_reply_is_truncated(self):
        service, _ = _service("{}")
        reply = ReplyForScoring(id="8", username="bob", follower_count=0, text="x" * 5000)

        prompt = service.build_prompt(CONTEXT, reply)

        assert "[truncated]" in prompt
        assert "x" * 4001 not in prompt


class TestEvaluate:
    def test_valid_response(self):
        service, llm = _service(json.dumps(SCORES))

        scores = service.evaluate(CONTEXT, REPLY)

        assert scores.goal_relevance == 90
        assert scores.specificity == 73
        assert scores.tags == ["feature_request"]
        assert scores.mini_summary == "Wants offline mode"
        assert scores.to_be_included is True
        assert llm.completion_sync.call_args.kwargs["response_format"] == {"type": "json_object"}

    def test_fenced_json(self):
        service, _ = _service("```json\n" + json.dumps(SCORES) + "\n```")

        assert service.evaluate(CONTEXT, REPLY).actionability == 80

    @pytest.mark.parametrize(
        "content",
        [
            "",
            "not json at all",
            "[1, 2, 3]",
            json.dumps({**SCORES, "goal_relevance": 140}),
            json.dumps({"actionability": 10}),
        ],
    )
    def test_bad_responses_raise_parse_error(self, content):
        service, _ = _service(content)

        with pytest.raises(ScoringParseError):
            service.evaluate(CONTEXT, REPLY)
