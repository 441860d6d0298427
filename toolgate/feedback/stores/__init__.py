"""FeedbackStore implementations."""

from toolgate.feedback.stores.inmemory import InMemoryFeedbackStore
from toolgate.feedback.stores.postgres import PostgresFeedbackStore

__all__ = ["InMemoryFeedbackStore", "PostgresFeedbackStore"]
