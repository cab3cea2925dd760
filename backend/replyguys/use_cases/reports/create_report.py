"""CreateReportUseCase: validate a request and start monitoring a post.

This use case owns the business rules for creating a new report:
  1. Validate the post URL and extract the conversation id
  2. Resolve the scoring weights (named preset or custom values)
  3. Persist the Report in ``setting_up`` via ReportRepository
  4. Dispatch the setup task via TaskDispatcher

The use case depends ONLY on domain ports, never on SQLAlchemy or Celery.
"""

from __future__ import annotations

import re
import uuid
from dataclasses import dataclass

from replyguys.domain.common.errors import ValidationError
from replyguys.domain.common.uow import UnitOfWork
from replyguys.domain.reports.models import (
    DEFAULT_PRESET,
    WEIGHT_DIMENSIONS,
    WEIGHT_PRESETS,
    ReportStatus,
    SummaryStatus,
    Weights,
)
from replyguys.domain.reports.ports import TaskDispatcher

POST_URL_RE = re.compile(
    r"^https://(?:www\.|mobile\.)?(?:x\.com|twitter\.com)/([A-Za-z0-9_]{1,15})/status/(\d+)(?:[/?#].*)?$"
)

MIN_REPLY_THRESHOLD = 1
MAX_REPLY_THRESHOLD = 250
DEFAULT_REPLY_THRESHOLD = 50
DEFAULT_MIN_LENGTH = 10


def parse_post_url(url: str) -> tuple[str, str]:
    """Return ``(author_handle, conversation_id)`` or raise ValidationError."""
    match = POST_URL_RE.match((url or "").strip())
    if match is None:
        raise ValidationError(
            "Post URL must look like https://x.com/<handle>/status/<id>", field="post_url"
        )
    return match.group(1), match.group(2)


def resolve_weights(preset: str | None, custom: dict | None) -> Weights:
    """Custom weights win over a preset; each dimension is clamped to 0..100."""
    if custom:
        values = {}
        for name in WEIGHT_DIMENSIONS:
            try:
                raw = float(custom.get(name, 0))
            except (TypeError, ValueError):
                raise ValidationError(f"Weight '{name}' must be a number", field="weights")
            values[name] = min(100.0, max(0.0, raw))
        return Weights(**values)
    return WEIGHT_PRESETS.get(preset or DEFAULT_PRESET, WEIGHT_PRESETS[DEFAULT_PRESET])


# ── Command (input) ──────────────────────────────────────────────────────


@dataclass(frozen=True)
class CreateReportCommand:
    """Immutable value object describing the report the caller wants."""

    post_url: str
    goal: str
    persona: str | None = None
    preset: str | None = None
    weights: dict | None = None
    reply_threshold: int = DEFAULT_REPLY_THRESHOLD
    min_length: int = DEFAULT_MIN_LENGTH
    verified_only: bool = False
    min_followers: int | None = None
    publish: bool = False


# ── Result (output) ──────────────────────────────────────────────────────


@dataclass(frozen=True)
class CreateReportResult:
    report_id: str
    conversation_id: str
    status: str


# ── Use Case ─────────────────────────────────────────────────────────────


class CreateReportUseCase:
    """Create a report record and dispatch its setup."""

    def __init__(self, dispatcher: TaskDispatcher) -> None:
        self._dispatcher = dispatcher

    def execute(self, uow: UnitOfWork, cmd: CreateReportCommand) -> CreateReportResult:
        """Run the use case.

        Persists the Report and commits before dispatching, so the worker
        picking up the setup task can read it.
        """
        _, conversation_id = parse_post_url(cmd.post_url)

        goal = (cmd.goal or "").strip()
        if not goal:
            raise ValidationError("Goal is required", field="goal")

        if not MIN_REPLY_THRESHOLD <= cmd.reply_threshold <= MAX_REPLY_THRESHOLD:
            raise ValidationError(
                f"Reply threshold must be between {MIN_REPLY_THRESHOLD} and {MAX_REPLY_THRESHOLD}",
                field="reply_threshold",
            )
        if cmd.min_length < 0:
            raise ValidationError("Minimum length cannot be negative", field="min_length")

        weights = resolve_weights(cmd.preset, cmd.weights)
        min_followers = cmd.min_followers if cmd.min_followers and cmd.min_followers > 0 else None
        persona = (cmd.persona or "").strip() or None

        with uow:
            report_id = str(uuid.uuid4())
            uow.reports.create(
                report_id=report_id,
                conversation_id=conversation_id,
                post_url=cmd.post_url.strip(),
                goal=goal,
                persona=persona,
                weights=weights.to_dict(),
                reply_threshold=cmd.reply_threshold,
                min_length=cmd.min_length,
                verified_only=cmd.verified_only,
                min_followers=min_followers,
                publish_requested=cmd.publish,
                status=ReportStatus.SETTING_UP.value,
                summary_status=SummaryStatus.PENDING.value,
            )
            uow.activity.add(report_id, "setup", "Report created")

            # Commit so the report row is visible to the Celery worker.
            uow.commit()

            try:
                self._dispatcher.dispatch_setup(report_id)
            except Exception as e:
                uow.reports.transition_status(
                    report_id,
                    [ReportStatus.SETTING_UP.value],
                    ReportStatus.FAILED.value,
                    error_message=f"Could not queue setup: {e}"[:500],
                )
                uow.commit()
                raise

        return CreateReportResult(
            report_id=report_id,
            conversation_id=conversation_id,
            status=ReportStatus.SETTING_UP.value,
        )
