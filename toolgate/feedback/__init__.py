"""Shortcomings reported by agents and gaps open for contributors."""

from toolgate.feedback.models import Gap, Shortcoming
from toolgate.feedback.store import FeedbackStore

__all__ = ["FeedbackStore", "Gap", "Shortcoming"]
