"""FeedbackStore abstract interface."""

from abc import ABC, abstractmethod

from toolgate.feedback.models import Gap, Shortcoming


class FeedbackStore(ABC):
    """Abstract interface for shortcomings and gaps."""

    @abstractmethod
    async def add_shortcoming(self, shortcoming: Shortcoming) -> None:
        pass

    @abstractmethod
    async def save_gap(self, gap: Gap) -> Gap:
        pass

    @abstractmethod
    async def list_gaps(
        self,
        status: str = "open",
        severity: str | None = None,
        season: int | None = None,
        limit: int = 20,
    ) -> list[Gap]:
        """Gaps by points value, then newest first."""
        pass
