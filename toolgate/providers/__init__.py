"""Ports to external collaborators: embedding, sandbox, bundler and blob storage."""
