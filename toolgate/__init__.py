"""Toolgate: JSON-RPC tool gateway for a multi-tenant tool hosting platform."""

__version__ = "0.1.0"
