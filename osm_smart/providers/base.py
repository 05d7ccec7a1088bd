"""
Provider base interfaces and the provider error hierarchy.

Providers wrap one upstream HTTP API each (Overpass, Gemini, Nominatim). They
share an aiohttp session handed in by the app, report their health the same
way and raise ProviderError subclasses whose ``status`` is the HTTP status the
route layer should answer with.
"""

import asyncio
from abc import ABC, abstractmethod
from typing import Optional, List, Dict, Any
from dataclasses import dataclass
from enum import Enum
import time
import logging

import aiohttp


class ProviderStatus(Enum):
    """Provider health status."""
    HEALTHY = "healthy"
    DEGRADED = "degraded"
    UNHEALTHY = "unhealthy"
    UNKNOWN = "unknown"


@dataclass
class HealthCheckResult:
    """Result of a provider health check."""
    status: ProviderStatus
    latency_ms: float
    message: str
    details: Optional[Dict[str, Any]] = None

    @property
    def is_healthy(self) -> bool:
        """Check if provider is healthy."""
        return self.status == ProviderStatus.HEALTHY

    def to_dict(self) -> Dict[str, Any]:
        return {
            "status": self.status.value,
            "healthy": self.is_healthy,
            "latency_ms": round(self.latency_ms, 1),
            "message": self.message,
            "details": self.details or {},
        }


@dataclass
class ProviderMetadata:
    """Metadata about a provider."""
    name: str
    version: str
    description: str
    capabilities: List[str]
    rate_limit: Optional[int] = None  # requests per minute


class Provider(ABC):
    """Base provider interface.

    Subclasses receive the shared aiohttp session at construction; when none
    is given a private session is opened per call through ``get_session``.
    """

    def __init__(self, session: Optional[aiohttp.ClientSession] = None):
        """Initialize the provider."""
        self.logger = logging.getLogger(self.__class__.__name__)
        self.session = session

    @abstractmethod
    def get_metadata(self) -> ProviderMetadata:
        """Get provider metadata.

        Returns:
            Provider metadata including name, version, capabilities
        """

    async def ping(self) -> None:
        """Cheapest request proving the upstream is reachable.

        Raises:
            ProviderError: If the upstream cannot be reached
        """

    async def health_check(self) -> HealthCheckResult:
        """Check provider health by timing ``ping``.

        Returns:
            Health check result
        """
        start_time = time.time()
        try:
            await self.ping()
            latency_ms = (time.time() - start_time) * 1000
            return HealthCheckResult(
                status=ProviderStatus.HEALTHY,
                latency_ms=latency_ms,
                message=f"Provider {self.get_metadata().name} is healthy",
                details={"latency_ms": latency_ms},
            )
        except ProviderNotAvailableError as e:
            latency_ms = (time.time() - start_time) * 1000
            return HealthCheckResult(
                status=ProviderStatus.UNKNOWN,
                latency_ms=latency_ms,
                message=str(e),
            )
        except (ProviderError, aiohttp.ClientError, asyncio.TimeoutError) as e:
            latency_ms = (time.time() - start_time) * 1000
            return HealthCheckResult(
                status=ProviderStatus.UNHEALTHY,
                latency_ms=latency_ms,
                message=f"Provider health check failed: {str(e) or e.__class__.__name__}",
                details={"error": str(e)},
            )


class ProviderError(Exception):
    """Base exception for provider errors."""

    status = 502

    def __init__(self, message: str, provider_name: Optional[str] = None, details: Optional[Dict] = None):
        """Initialize provider error.

        Args:
            message: Error message
            provider_name: Name of the provider that failed
            details: Additional error details
        """
        super().__init__(message)
        self.provider_name = provider_name
        self.details = details or {}


class ProviderNotAvailableError(ProviderError):
    """Raised when a provider is not configured (e.g. missing API key)."""
    status = 500


class ProviderRateLimitError(ProviderError):
    """Raised when provider rate limit is exceeded."""
    status = 429


class ProviderTimeoutError(ProviderError):
    """Raised when provider request times out."""
    status = 408


class PayloadTooLargeError(ProviderError):
    """Raised when a response exceeds the element-count or byte-size guards."""
    status = 413


class UpstreamError(ProviderError):
    """Raised for any other non-2xx answer or an unreadable body."""
    status = 502
