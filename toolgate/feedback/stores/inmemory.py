"""In-memory implementation of FeedbackStore."""

from toolgate.feedback.models import Gap, Shortcoming
from toolgate.feedback.store import FeedbackStore


class InMemoryFeedbackStore(FeedbackStore):
    """In-memory implementation of FeedbackStore for testing and development."""

    def __init__(self) -> None:
        self.shortcomings: list[Shortcoming] = []
        self._gaps: dict[str, Gap] = {}

    async def add_shortcoming(self, shortcoming: Shortcoming) -> None:
        self.shortcomings.append(shortcoming)

    async def save_gap(self, gap: Gap) -> Gap:
        self._gaps[gap.id] = gap
        return gap

    async def list_gaps(
        self,
        status: str = "open",
        severity: str | None = None,
        season: int | None = None,
        limit: int = 20,
    ) -> list[Gap]:
        gaps = [
            g
            for g in self._gaps.values()
            if g.status == status
            and (severity is None or g.severity == severity)
            and (season is None or g.season == season)
        ]
        gaps.sort(key=lambda g: (g.points_value, g.created_at), reverse=True)
        return gaps[:limit]
