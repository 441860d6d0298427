"""Sandbox port for executing tenant code."""

from toolgate.providers.sandbox.base import SandboxLogEntry, SandboxResult, SandboxRunner
from toolgate.providers.sandbox.http import HttpSandboxRunner

__all__ = ["HttpSandboxRunner", "SandboxLogEntry", "SandboxResult", "SandboxRunner"]
