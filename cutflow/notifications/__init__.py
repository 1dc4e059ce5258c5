from .events import MarketplaceEvent
from .dispatcher import dispatch_marketplace_event

__all__ = [
    "MarketplaceEvent",
    "dispatch_marketplace_event",
]
