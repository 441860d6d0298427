"""Discovery: candidate scoring, luck shuffle and the three discovery surfaces."""

from toolgate.discovery.models import DiscoveryCandidate

__all__ = ["DiscoveryCandidate"]
