"""Scrape serialized web fiction into one ordered document."""

__version__ = "0.1.0"
