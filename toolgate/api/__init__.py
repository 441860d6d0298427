"""HTTP API: app factory, routes, middleware and dependencies."""
