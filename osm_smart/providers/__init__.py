"""
Upstream API providers: Overpass, Gemini and Nominatim.
"""
from .base import (
    Provider,
    ProviderError,
    ProviderNotAvailableError,
    ProviderRateLimitError,
    ProviderTimeoutError,
    PayloadTooLargeError,
    UpstreamError,
)
from .overpass_provider import OverpassProvider
from .gemini_provider import GeminiProvider
from .nominatim_provider import NominatimProvider

__all__ = [
    "Provider",
    "ProviderError",
    "ProviderNotAvailableError",
    "ProviderRateLimitError",
    "ProviderTimeoutError",
    "PayloadTooLargeError",
    "UpstreamError",
    "OverpassProvider",
    "GeminiProvider",
    "NominatimProvider",
]
