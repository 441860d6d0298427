"""Bundler port for compiling uploaded sources."""

from toolgate.providers.bundler.base import BundleResult, Bundler, SourceFile
from toolgate.providers.bundler.http import HttpBundler

__all__ = ["BundleResult", "Bundler", "HttpBundler", "SourceFile"]
