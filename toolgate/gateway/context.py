"""Per-call context and the service bundle capability handlers run against."""

from dataclasses import dataclass
from typing import Any

from toolgate.apps.lifecycle import AppLifecycle
from toolgate.apps.ratings import RatingService
from toolgate.apps.store import AppStore
from toolgate.apps.testing import SandboxTester
from toolgate.audit.service import AuditService
from toolgate.connections.service import ConnectionService
from toolgate.content.library import LibraryBuilder
from toolgate.content.memory import MemoryService
from toolgate.content.pages import PageService
from toolgate.discovery.engine import DiscoveryEngine
from toolgate.feedback.service import FeedbackService
from toolgate.grants.service import GrantService
from toolgate.sharing.service import SharingService
from toolgate.users.models import User


@dataclass
class GatewayServices:
    """Everything the capability handlers need, wired once per process."""

    apps: AppStore
    lifecycle: AppLifecycle
    grants: GrantService
    audit: AuditService
    discovery: DiscoveryEngine
    ratings: RatingService
    connections: ConnectionService
    memory: MemoryService
    pages: PageService
    sharing: SharingService
    feedback: FeedbackService
    library: LibraryBuilder
    sandbox: SandboxTester


@dataclass
class CallContext:
    """Who is calling and the metadata attached to the call."""

    user: User
    client_ip: str | None = None
    session_id: str | None = None
    user_query: str | None = None

    @property
    def user_id(self) -> str:
        return self.user.id

    @property
    def tier(self) -> str:
        return self.user.tier


def extract_call_meta(arguments: dict[str, Any]) -> tuple[dict[str, Any], str | None, str | None]:
    """Split _user_query and _session_id off the operation arguments."""
    clean = dict(arguments)
    user_query = clean.pop("_user_query", None)
    session_id = clean.pop("_session_id", None)
    return (
        clean,
        user_query if isinstance(user_query, str) else None,
        session_id if isinstance(session_id, str) else None,
    )
