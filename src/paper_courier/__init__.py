"""Weekly keyword digest of new journal articles, delivered by email."""

__version__ = "0.1.0"
