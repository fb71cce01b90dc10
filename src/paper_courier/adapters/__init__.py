"""Adapters for content sources, mail delivery and record storage."""
