"""Offline semantic retrieval and context assembly for private journals."""

__version__ = "0.1.0"
