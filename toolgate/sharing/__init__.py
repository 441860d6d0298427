"""Sharing of documents and key/value memory with other users."""

from toolgate.sharing.models import ContentShare, KeyShare
from toolgate.sharing.patterns import matches
from toolgate.sharing.store import ShareStore

__all__ = ["ContentShare", "KeyShare", "ShareStore", "matches"]
