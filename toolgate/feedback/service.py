"""Shortcoming reports and gap browsing."""

from typing import Any, get_args

from toolgate.feedback.models import GapSeverity, GapStatus, Shortcoming, ShortcomingType
from toolgate.feedback.store import FeedbackStore
from toolgate.gateway.errors import invalid_params
from toolgate.gateway.params import clamp_limit
from toolgate.gateway.sink import BestEffortSink
from toolgate.observability.logging import get_logger

logger = get_logger(__name__)

GAPS_DEFAULT_LIMIT = 20
GAPS_MAX_LIMIT = 100


class FeedbackService:
    """Accepts shortcoming reports without blocking and lists open gaps."""

    def __init__(self, store: FeedbackStore, sink: BestEffortSink) -> None:
        self._store = store
        self._sink = sink

    def report(
        self,
        user_id: str,
        type: Any,
        summary: Any,
        context: Any = None,
        session_id: str | None = None,
    ) -> dict[str, Any]:
        """Record a shortcoming in the background. Always acknowledges."""
        if type not in get_args(ShortcomingType) or not isinstance(summary, str) or not summary:
            logger.info("shortcoming_report_ignored", user_id=user_id, type=type)
            return {"received": True}
        shortcoming = Shortcoming(
            user_id=user_id,
            session_id=session_id,
            type=type,
            summary=summary[:2000],
            context=context if isinstance(context, dict) else None,
        )
        self._sink.submit("shortcoming_report", self._store.add_shortcoming(shortcoming))
        return {"received": True}

    async def browse(
        self,
        status: str | None = None,
        severity: str | None = None,
        season: int | None = None,
        limit: Any = None,
    ) -> dict[str, Any]:
        status = status or "open"
        if status not in get_args(GapStatus):
            raise invalid_params(f"status must be one of {', '.join(get_args(GapStatus))}")
        if severity is not None and severity not in get_args(GapSeverity):
            raise invalid_params(f"severity must be one of {', '.join(get_args(GapSeverity))}")
        gaps = await self._store.list_gaps(
            status=status,
            severity=severity,
            season=season,
            limit=clamp_limit(limit, GAPS_DEFAULT_LIMIT, GAPS_MAX_LIMIT),
        )
        return {
            "gaps": [
                {
                    "id": g.id,
                    "title": g.title,
                    "description": g.description,
                    "severity": g.severity,
                    "points_value": g.points_value,
                    "season": g.season,
                    "status": g.status,
                    "created_at": g.created_at.isoformat(),
                }
                for g in gaps
            ],
            "total": len(gaps),
        }
