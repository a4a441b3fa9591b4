"""HTTP API for search cycles, stored results and scan callbacks."""

from wp_prospector.api.server import create_app

__all__ = ["create_app"]
