"""Rate limiting adapters.

Limiters keep their counters in a TTL store, so switching the store backend
(memory or SQLite) changes where counters live without touching the API
layer.
"""
