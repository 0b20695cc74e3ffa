"""
Offline agent caching package.

Two versioned tiers live in a tier store: a static tier seeded at install
time and a dynamic tier grown from successful network responses. Tier
contents are only touched through ``CacheTierManager``.
"""

from .tier_manager import CACHEABLE_EXTENSIONS, CacheTierManager
from .tier_store import InMemoryTierStore, RedisTierStore, TierStore

__all__ = [
    "CACHEABLE_EXTENSIONS",
    "CacheTierManager",
    "InMemoryTierStore",
    "RedisTierStore",
    "TierStore",
]
