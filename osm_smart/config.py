"""
Centralized configuration management with validation and type conversion.

Every tunable of the service lives here: upstream URLs, per-query-shape
timeouts, the Overpass size guards, the client-side rate-limit delays and the
incremental search bounds. Values are read from the environment once per
process; services also accept an explicit Config so tests can inject one.
"""

import os
import logging
from typing import Optional, Dict, Any, List, Tuple
from dataclasses import dataclass
from enum import Enum


logger = logging.getLogger(__name__)


class Environment(Enum):
    """Application environment types."""
    DEVELOPMENT = "development"
    TESTING = "testing"
    PRODUCTION = "production"


@dataclass
class TimeoutConfig:
    """Timeout configuration for different operations (seconds)."""
    bbox: float = 15.0
    radius: float = 25.0
    ring: float = 35.0
    ai: float = 60.0
    geo: float = 10.0
    client: float = 45.0


@dataclass
class OverpassConfig:
    """Overpass endpoint and payload guards."""
    url: str = "https://overpass-api.de/api/interpreter"
    max_raw_elements: int = 50000
    max_payload_bytes: int = 10 * 1024 * 1024
    tile_delta: float = 0.002
    zoom: int = 17
    include_relations: bool = False


@dataclass
class RedisConfig:
    """Redis configuration."""
    url: str
    tiles_key: str = "tiles"
    socket_timeout: float = 5.0
    socket_connect_timeout: float = 5.0


@dataclass
class GeminiConfig:
    """Generative model configuration."""
    api_key: Optional[str] = None
    model: str = "gemini-1.5-pro-002"
    base_url: str = "https://generativelanguage.googleapis.com/v1"


@dataclass
class NominatimConfig:
    """Address search configuration."""
    url: str = "https://nominatim.openstreetmap.org/search"
    user_agent: str = "OSMSmart/1.0 (https://osmsmart.com)"
    limit: int = 5


@dataclass
class RateLimitConfig:
    """Client-side pacing towards the Overpass acceptable-use policy."""
    min_interval: float = 1.5
    ring_delay: float = 2.0
    radius_delay: float = 1.0
    fallback_cooldown: float = 5.0
    backoff_429: Tuple[float, ...] = (4.0, 8.0, 16.0)
    server_retry_base: float = 1.0


@dataclass
class SearchConfig:
    """Bounds of the incremental grid and ring searches."""
    initial_grid: int = 3
    grid_step: int = 2
    max_grid: int = 29
    min_elements: int = 20
    initial_radius: int = 25
    radius_step: int = 50
    sparse_step: int = 75
    sparse_radius: int = 100
    max_radius: int = 2000
    fallback_radius: int = 200
    max_retries: int = 3
    server_url: str = "http://localhost:5000"


@dataclass
class LoggingConfig:
    """Logging configuration."""
    level: str = "INFO"
    format: str = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
    file: Optional[str] = None
    max_bytes: int = 10485760  # 10MB
    backup_count: int = 5


class Config:
    """Centralized configuration with validation and type conversion."""

    def __init__(self):
        """Initialize configuration from environment variables."""
        self.environment = self._get_environment()
        self.debug = self._get_bool("DEBUG", False)

        self.timeout_config = TimeoutConfig(
            bbox=self._get_float("TIMEOUT_BBOX", 15.0),
            radius=self._get_float("TIMEOUT_RADIUS", 25.0),
            ring=self._get_float("TIMEOUT_RING", 35.0),
            ai=self._get_float("TIMEOUT_AI", 60.0),
            geo=self._get_float("TIMEOUT_GEO", 10.0),
            client=self._get_float("TIMEOUT_CLIENT", 45.0),
        )

        self.overpass_config = OverpassConfig(
            url=self._get_str("OVERPASS_URL", "https://overpass-api.de/api/interpreter"),
            max_raw_elements=self._get_int("OVERPASS_MAX_RAW_ELEMENTS", 50000),
            max_payload_bytes=self._get_int("OVERPASS_MAX_PAYLOAD_BYTES", 10 * 1024 * 1024),
            tile_delta=self._get_float("TILE_DELTA", 0.002),
            zoom=self._get_int("TILE_ZOOM", 17),
            include_relations=self._get_bool("OVERPASS_INCLUDE_RELATIONS", False),
        )

        self.redis_url: str = self._get_optional("REDIS_URL") or "redis://localhost:6379"
        self.redis_config = RedisConfig(
            url=self.redis_url,
            tiles_key=self._get_str("TILES_HASH_KEY", "tiles"),
            socket_timeout=self._get_float("REDIS_SOCKET_TIMEOUT", 5.0),
            socket_connect_timeout=self._get_float("REDIS_SOCKET_CONNECT_TIMEOUT", 5.0),
        )

        self.gemini_config = GeminiConfig(
            api_key=self._get_optional("GEMINI_API_KEY"),
            model=self._get_str("GEMINI_MODEL", "gemini-1.5-pro-002"),
            base_url=self._get_str("GEMINI_BASE_URL", "https://generativelanguage.googleapis.com/v1"),
        )

        self.nominatim_config = NominatimConfig(
            url=self._get_str("NOMINATIM_URL", "https://nominatim.openstreetmap.org/search"),
            user_agent=self._get_str("NOMINATIM_USER_AGENT", "OSMSmart/1.0 (https://osmsmart.com)"),
            limit=self._get_int("NOMINATIM_LIMIT", 5),
        )

        self.rate_limit_config = RateLimitConfig(
            min_interval=self._get_float("RATE_MIN_INTERVAL", 1.5),
            ring_delay=self._get_float("RATE_RING_DELAY", 2.0),
            radius_delay=self._get_float("RATE_RADIUS_DELAY", 1.0),
            fallback_cooldown=self._get_float("RATE_FALLBACK_COOLDOWN", 5.0),
            backoff_429=tuple(float(v) for v in self._get_list("RATE_BACKOFF_429", ["4", "8", "16"])),
            server_retry_base=self._get_float("RATE_SERVER_RETRY_BASE", 1.0),
        )

        self.search_config = SearchConfig(
            initial_grid=self._get_int("SEARCH_INITIAL_GRID", 3),
            grid_step=self._get_int("SEARCH_GRID_STEP", 2),
            max_grid=self._get_int("SEARCH_MAX_GRID", 29),
            min_elements=self._get_int("SEARCH_MIN_ELEMENTS", 20),
            initial_radius=self._get_int("SEARCH_INITIAL_RADIUS", 25),
            radius_step=self._get_int("SEARCH_RADIUS_STEP", 50),
            sparse_step=self._get_int("SEARCH_SPARSE_STEP", 75),
            sparse_radius=self._get_int("SEARCH_SPARSE_RADIUS", 100),
            max_radius=self._get_int("SEARCH_MAX_RADIUS", 2000),
            fallback_radius=self._get_int("SEARCH_FALLBACK_RADIUS", 200),
            max_retries=self._get_int("SEARCH_MAX_RETRIES", 3),
            server_url=self._get_str("OSM_SMART_SERVER_URL", "http://localhost:5000"),
        )

        self.logging_config = LoggingConfig(
            level=self._get_str("LOG_LEVEL", "INFO"),
            format=self._get_str("LOG_FORMAT", "%(asctime)s - %(name)s - %(levelname)s - %(message)s"),
            file=self._get_optional("LOG_FILE"),
            max_bytes=self._get_int("LOG_MAX_BYTES", 10485760),
            backup_count=self._get_int("LOG_BACKUP_COUNT", 5),
        )

        self.cors_origin = self._get_str("CORS_ORIGIN", "*")

        self._validate()

    def _get_environment(self) -> Environment:
        """Get application environment."""
        env_str = self._get_str("ENVIRONMENT", "development").lower()
        try:
            return Environment(env_str)
        except ValueError:
            raise ValueError(f"Invalid environment: {env_str}")

    def _get_optional(self, key: str, default: Optional[str] = None) -> Optional[str]:
        """Get optional environment variable.

        Args:
            key: Environment variable name
            default: Default value if not found

        Returns:
            Environment variable value or default
        """
        return os.getenv(key, default)

    def _get_str(self, key: str, default: str) -> str:
        return os.getenv(key, default)

    def _get_int(self, key: str, default: int) -> int:
        """Get integer environment variable with default.

        Raises:
            ValueError: If value cannot be converted to int
        """
        value = os.getenv(key)
        if value is None:
            return default
        try:
            return int(value)
        except ValueError:
            raise ValueError(f"Invalid integer for {key}: {value}")

    def _get_float(self, key: str, default: float) -> float:
        """Get float environment variable with default.

        Raises:
            ValueError: If value cannot be converted to float
        """
        value = os.getenv(key)
        if value is None:
            return default
        try:
            return float(value)
        except ValueError:
            raise ValueError(f"Invalid float for {key}: {value}")

    def _get_bool(self, key: str, default: bool) -> bool:
        value = os.getenv(key)
        if value is None:
            return default
        return value.lower() in ('1', 'true', 'yes', 'on')

    def _get_list(self, key: str, default: List[str]) -> List[str]:
        value = os.getenv(key)
        if value is None:
            return default
        return [item.strip() for item in value.split(',') if item.strip()]

    def _validate(self):
        """Validate configuration values."""
        for attr_name in ['bbox', 'radius', 'ring', 'ai', 'geo', 'client']:
            timeout = getattr(self.timeout_config, attr_name)
            if timeout <= 0:
                raise ValueError(f"Invalid timeout for {attr_name}: {timeout}")

        if self.redis_url and not self.redis_url.startswith(('redis://', 'rediss://', 'unix://')):
            raise ValueError(f"Invalid Redis URL: {self.redis_url}")

        # grids are centred on a tile, so sizes must stay odd
        if self.search_config.initial_grid % 2 == 0 or self.search_config.grid_step % 2 != 0:
            raise ValueError("Grid sizes must be odd and grow in even steps")

        if self.search_config.initial_radius <= 0 or self.search_config.max_radius < self.search_config.initial_radius:
            raise ValueError("Invalid ring search radius bounds")

        if not self.gemini_config.api_key:
            logger.warning("GEMINI_API_KEY not set - summaries will be disabled")

    def is_production(self) -> bool:
        """Check if running in production environment."""
        return self.environment == Environment.PRODUCTION

    def to_dict(self) -> Dict[str, Any]:
        """Convert configuration to dictionary for debugging.

        Secrets are reported as presence flags only.
        """
        return {
            'environment': self.environment.value,
            'debug': self.debug,
            'redis_url': self.redis_url,
            'overpass_url': self.overpass_config.url,
            'gemini_enabled': bool(self.gemini_config.api_key),
            'gemini_model': self.gemini_config.model,
            'timeout_config': {
                'bbox': self.timeout_config.bbox,
                'radius': self.timeout_config.radius,
                'ring': self.timeout_config.ring,
                'ai': self.timeout_config.ai,
                'client': self.timeout_config.client,
            },
            'guards': {
                'max_raw_elements': self.overpass_config.max_raw_elements,
                'max_payload_bytes': self.overpass_config.max_payload_bytes,
            },
        }


_config: Optional[Config] = None


def get_config() -> Config:
    """Get the process-wide configuration instance, building it on first use.

    Returns:
        Configuration instance
    """
    global _config
    if _config is None:
        _config = Config()
    return _config


def reset_config() -> None:
    """Drop the cached configuration so the next get_config() rereads the environment."""
    global _config
    _config = None


def setup_logging(config: Optional[Config] = None):
    """Set up logging based on configuration."""
    from logging.handlers import RotatingFileHandler

    config = config or get_config()

    logging.basicConfig(
        level=getattr(logging, config.logging_config.level.upper(), logging.INFO),
        format=config.logging_config.format,
    )

    if config.logging_config.file:
        file_handler = RotatingFileHandler(
            config.logging_config.file,
            maxBytes=config.logging_config.max_bytes,
            backupCount=config.logging_config.backup_count,
        )
        file_handler.setFormatter(logging.Formatter(config.logging_config.format))
        logging.getLogger().addHandler(file_handler)

    logging.getLogger('aiohttp').setLevel(logging.WARNING)
    logging.getLogger('asyncio').setLevel(logging.WARNING)

    if config.debug:
        logging.getLogger().setLevel(logging.DEBUG)
    elif config.is_production():
        logging.getLogger().setLevel(logging.INFO)
