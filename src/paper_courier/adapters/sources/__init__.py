"""Source adapters for fetching items."""

from paper_courier.adapters.sources.sciencedirect_source import ScienceDirectSource

__all__ = ["ScienceDirectSource"]
