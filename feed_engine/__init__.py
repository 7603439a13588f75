"""Feed aggregation engine: concurrent fetching, dedup, tagging and cached queries."""

__version__ = "0.1.0"
