"""Adapters connecting the core pipeline to HTTP, files, and SQLite."""
