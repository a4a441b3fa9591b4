"""Search, store, and scan WordPress sites for security outreach."""

__version__ = "0.1.0"
