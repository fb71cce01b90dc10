"""Delivery record stores."""

from paper_courier.adapters.store.memory_store import MemoryDeliveryStore
from paper_courier.adapters.store.yaml_store import YamlDeliveryStore

__all__ = ["MemoryDeliveryStore", "YamlDeliveryStore"]
