"""Report, reply and activity models"""
from sqlalchemy import (
    Boolean,
    Column,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    JSON,
    String,
    Text,
)

from ..database import Base
from ..utils.clock import utcnow


class Report(Base):
    """One monitored post and the state of its collection pipeline"""

    __tablename__ = "reports"

    id = Column(String(36), primary_key=True)  # UUID
    conversation_id = Column(String(32), nullable=False, index=True)
    post_url = Column(Text, nullable=False)

    # Root post (populated during setup)
    title = Column(String(200))
    original_text = Column(Text)
    original_author_handle = Column(String(50))
    original_author_avatar = Column(Text)

    # Configuration
    goal = Column(Text, nullable=False)
    persona = Column(Text, nullable=True)
    weights = Column(JSON, nullable=False)  # {actionability, specificity, substantiveness, constructiveness}
    reply_threshold = Column(Integer, nullable=False)
    min_length = Column(Integer, nullable=False, default=0)
    verified_only = Column(Boolean, nullable=False, default=False)
    min_followers = Column(Integer, nullable=True)

    # Lifecycle
    status = Column(String(20), nullable=False, default="setting_up", index=True)  # setting_up, pending, scraping, completed, failed
    summary_status = Column(String(20), nullable=False, default="pending")  # pending, generating, completed, failed
    summary = Column(JSON, nullable=True)
    error_message = Column(Text, nullable=True)

    # Pagination cursors
    scrape_phase = Column(String(20), nullable=False, default="backwards")  # backwards, forward
    oldest_seen_at = Column(DateTime, nullable=True)  # Only moves earlier
    newest_seen_at = Column(DateTime, nullable=True)  # Only moves later

    # Counters (qualified_count is a cache of COUNT(inclusion = true))
    scraped_count = Column(Integer, nullable=False, default=0)
    qualified_count = Column(Integer, nullable=False, default=0)

    # Publication
    publish_requested = Column(Boolean, nullable=False, default=False)
    publication_status = Column(String(20), nullable=True)  # pending, posting, posted, failed
    published_post_id = Column(String(32), nullable=True)

    # Timestamps
    created_at = Column(DateTime, nullable=False, default=utcnow, index=True)
    updated_at = Column(DateTime, nullable=False, default=utcnow, onupdate=utcnow)
    completed_at = Column(DateTime, nullable=True)


class Reply(Base):
    """A collected reply and its evaluation, keyed by (id, report_id)"""

    __tablename__ = "replies"

    id = Column(String(32), primary_key=True)  # Provider post id
    report_id = Column(
        String(36),
        ForeignKey("reports.id", ondelete="CASCADE"),
        primary_key=True,
    )

    # Author
    author_id = Column(String(32))
    author_handle = Column(String(50), nullable=False)
    author_name = Column(String(100))
    author_avatar = Column(Text)
    author_followers = Column(Integer, nullable=False, default=0)
    author_verified = Column(Boolean, nullable=False, default=False)

    # Content
    text = Column(Text, nullable=False)
    posted_at = Column(DateTime, nullable=True)

    # Evaluation
    evaluation_status = Column(String(20), nullable=False, default="pending")  # pending, evaluating, evaluated
    evaluation_started_at = Column(DateTime, nullable=True)
    goal_relevance = Column(Integer, nullable=True)
    actionability = Column(Integer, nullable=True)
    specificity = Column(Integer, nullable=True)
    substantiveness = Column(Integer, nullable=True)
    constructiveness = Column(Integer, nullable=True)
    weighted_score = Column(Integer, nullable=True)
    tags = Column(JSON, nullable=True)
    mini_summary = Column(Text, nullable=True)
    inclusion = Column(Boolean, nullable=True)
    evaluated_at = Column(DateTime, nullable=True)

    created_at = Column(DateTime, nullable=False, default=utcnow)

    __table_args__ = (
        Index("idx_replies_report_status", "report_id", "evaluation_status"),
        Index("idx_replies_report_inclusion", "report_id", "inclusion"),
    )


class ActivityEvent(Base):
    """Append-only, user-facing progress log for a report"""

    __tablename__ = "report_activity"

    id = Column(Integer, primary_key=True, autoincrement=True)
    report_id = Column(
        String(36),
        ForeignKey("reports.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    key = Column(String(20), nullable=False)  # setup, scrape, filter, insert, evaluate, ...
    message = Column(Text, nullable=False)
    meta = Column(JSON, nullable=True)
    created_at = Column(DateTime, nullable=False, default=utcnow)
