"""Protocol gateway: envelope handling, capability dispatch and auditing."""
