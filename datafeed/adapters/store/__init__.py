"""TTL key-value store adapters.

The cache and the rate limiter only talk to ``AbstractTTLStore``. Two
backends ship: an in-process dictionary and a SQLite file that several
processes (API workers, the CLI) can share.
"""

from datafeed.adapters.store.base import AbstractTTLStore, CounterState
from datafeed.adapters.store.in_memory import InMemoryTTLStore
from datafeed.adapters.store.sqlite import SqliteTTLStore

__all__ = [
    "AbstractTTLStore",
    "CounterState",
    "InMemoryTTLStore",
    "SqliteTTLStore",
]
