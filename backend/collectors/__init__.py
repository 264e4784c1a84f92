"""Device collectors — produce normalized CollectionMessages for the bus."""

from .gnmi_collector import GnmiCollector, normalize_response

__all__ = ["GnmiCollector", "normalize_response"]
