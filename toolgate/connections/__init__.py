"""Per-caller secrets (connections) for apps."""

from toolgate.connections.models import Secret
from toolgate.connections.store import SecretStore

__all__ = ["Secret", "SecretStore"]
