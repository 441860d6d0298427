"""Blob storage for version artifacts and compiled documents."""

from toolgate.providers.blob.base import BlobStore
from toolgate.providers.blob.inmemory import InMemoryBlobStore

__all__ = ["BlobStore", "InMemoryBlobStore"]
