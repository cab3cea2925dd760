#!/usr/bin/env python3
"""Start monitoring the replies to a post on X."""

from __future__ import annotations

import argparse
import sys
from pathlib import Path

# Add backend to path
sys.path.insert(0, str(Path(__file__).resolve().parents[1]))

from replyguys.database import init_db  # noqa: E402
from replyguys.domain.common.errors import ValidationError  # noqa: E402
from replyguys.domain.reports.models import WEIGHT_PRESETS  # noqa: E402
from replyguys.use_cases.reports.create_report import (  # noqa: E402
    DEFAULT_MIN_LENGTH,
    DEFAULT_REPLY_THRESHOLD,
    CreateReportCommand,
)
from replyguys.wiring.bootstrap import get_create_report_use_case, get_uow  # noqa: E402


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Create a report for the replies to a post on X.")
    parser.add_argument("post_url", help="https://x.com/<handle>/status/<id>")
    parser.add_argument("--goal", required=True, help="What you want to learn from the replies")
    parser.add_argument("--persona", default=None, help="Optional audience hint for scoring")
    parser.add_argument("--preset", choices=sorted(WEIGHT_PRESETS), default=None, help="Weight preset")
    parser.add_argument(
        "--threshold",
        type=int,
        default=DEFAULT_REPLY_THRESHOLD,
        help="Qualified replies needed before the summary is written",
    )
    parser.add_argument(
        "--min-length",
        type=int,
        default=DEFAULT_MIN_LENGTH,
        help="Minimum reply length once mentions and links are removed",
    )
    parser.add_argument("--verified-only", action="store_true", help="Only collect verified authors")
    parser.add_argument("--min-followers", type=int, default=None, help="Minimum author follower count")
    parser.add_argument("--publish", action="store_true", help="Post a recap when the report is done")
    return parser


def main() -> None:
    args = _build_parser().parse_args()
    cmd = CreateReportCommand(
        post_url=args.post_url,
        goal=args.goal,
        persona=args.persona,
        preset=args.preset,
        reply_threshold=args.threshold,
        min_length=args.min_length,
        verified_only=bool(args.verified_only),
        min_followers=args.min_followers,
        publish=bool(args.publish),
    )

    init_db()
    try:
        result = get_create_report_use_case().execute(get_uow(), cmd)
    except ValidationError as exc:
        field = f" ({exc.field})" if exc.field else ""
        print(f"Invalid request{field}: {exc}", file=sys.stderr)
        sys.exit(2)

    print("Report created")
    print(f"  report_id: {result.report_id}")
    print(f"  conversation_id: {result.conversation_id}")
    print(f"  status: {result.status}")


if __name__ == "__main__":
    main()
