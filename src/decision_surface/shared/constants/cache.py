"""
Cache Configuration Constants

TTL values and size limits for the memory and durable cache tiers.
"""

# Base time units for TTL calculations
BASE_SECOND = 1
BASE_MINUTE = 60 * BASE_SECOND
BASE_HOUR = 60 * BASE_MINUTE
BASE_DAY = 24 * BASE_HOUR


class CacheConfig:
    """Cache configuration constants."""

    # Durable store growth bound (entries across all sources)
    MAX_ENTRIES = 500

    # In-memory tier bound
    MEMORY_MAX_ENTRIES = 128

    # Freshness windows observed in the mobile client
    MEMORY_FRESH_FOR = BASE_MINUTE  # 1 minute
    REALTIME_FRESH_FOR = BASE_HOUR  # 1 hour
    DEFAULT_FRESH_FOR = 0  # always revalidate

    # SQLite
    DB_FILENAME = "decision_cache.db"
    TABLE_NAME = "source_cache"
