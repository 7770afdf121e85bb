"""Web UI and CLI for updating docker compose stacks."""

__version__ = "0.1.0"
