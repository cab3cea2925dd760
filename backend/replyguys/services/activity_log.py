"""
Best-effort activity log.

Each event is written in its own short-lived session so a failure here
never rolls back pipeline state, and a failing pipeline transaction
never loses the event that explains it.
"""
import logging
from typing import Any, Callable, Optional

from sqlalchemy.orm import Session

from ..infra.db.repositories.activity_repo import SqlActivityRepository

logger = logging.getLogger(__name__)


class ActivityLogger:
    """Append user-facing progress events for a report."""

    def __init__(self, session_factory: Callable[[], Session]):
        self._session_factory = session_factory

    def log(
        self,
        report_id: str,
        key: str,
        message: str,
        meta: Optional[dict[str, Any]] = None,
    ) -> None:
        session = None
        try:
            session = self._session_factory()
            SqlActivityRepository(session).add(report_id, key, message, meta)
            session.commit()
        except Exception as e:
            logger.warning(
                "Activity log write failed for report %s (%s): %s", report_id, key, e
            )
            if session is not None:
                try:
                    session.rollback()
                except Exception:
                    logger.debug("Activity log rollback failed", exc_info=True)
        finally:
            if session is not None:
                session.close()
