"""Search provider implementations."""

from wp_prospector.prospecting.sources.base import SearchProvider
from wp_prospector.prospecting.sources.serpapi import SerpApiConfig, SerpApiProvider

__all__ = [
    "SearchProvider",
    "SerpApiConfig",
    "SerpApiProvider",
]
