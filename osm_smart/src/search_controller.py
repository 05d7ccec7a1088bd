"""
Incremental search controller.

Grows a spatial query around a point until enough relevant elements turn up.
Two variants share one state machine:

* grid search: fetch the bbox of an odd N x N block of zoom-17 tiles and grow
  N by 2 until 20 matches are found or the largest grid has been fetched;
* ring search: fetch a 25 m disc, then only the annulus between the previous
  and the next radius, until 20 matches are found or 2000 m is reached.

The ring variant paces itself towards the Overpass acceptable-use policy and
reacts to the status of every response: 429 backs off and finally falls back
to one fixed-radius query, 408/413 abort, 5xx is retried with linear backoff.

Every run belongs to a generation. Starting another run (or calling
``cancel``) bumps the generation, and a superseded run raises
``SearchCancelled`` at its next await instead of reporting stale results.
"""

import asyncio
import json
import logging
import time
from dataclasses import dataclass, replace, field
from enum import Enum
from typing import Any, Awaitable, Callable, Dict, FrozenSet, List, Optional, Protocol, Tuple

import aiohttp

from ..config import Config, get_config
from ..providers.utils import get_session
from ..utils.geometry import calculate_tile_bounds, get_way_center
from .allowed_tags import filter_elements

logger = logging.getLogger(__name__)


class SearchState(Enum):
    IDLE = "idle"
    SEARCHING_GRID = "searching_grid"
    SEARCHING_RADIUS = "searching_radius"
    RATE_LIMITED = "rate_limited"
    SUCCESS = "success"
    ERROR = "error"


class StatusClass(Enum):
    OK = "ok"
    RATE_LIMITED = "rate_limited"
    TERMINAL = "terminal"
    SERVER_ERROR = "server_error"
    CLIENT_ERROR = "client_error"


class SearchCancelled(Exception):
    """A newer search superseded this one."""


@dataclass(frozen=True)
class SearchProgress:
    """Snapshot reported to ``on_progress`` after every transition."""
    state: SearchState = SearchState.IDLE
    generation: int = 0
    grid_size: int = 0
    tiles_checked: int = 0
    radius: int = 0
    previous_radius: int = 0
    elements: int = 0
    last_error: Optional[str] = None

    def advance(self, **changes: Any) -> "SearchProgress":
        return replace(self, **changes)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "state": self.state.value,
            "generation": self.generation,
            "grid_size": self.grid_size,
            "tiles_checked": self.tiles_checked,
            "radius": self.radius,
            "previous_radius": self.previous_radius,
            "elements": self.elements,
            "last_error": self.last_error,
        }


@dataclass
class FetchResult:
    status: int
    data: Optional[Dict[str, Any]] = None
    error: Optional[str] = None
    cache: Optional[str] = None

    @property
    def ok(self) -> bool:
        return 200 <= self.status < 300


@dataclass
class SearchOutcome:
    elements: List[Dict[str, Any]] = field(default_factory=list)
    progress: SearchProgress = field(default_factory=SearchProgress)

    @property
    def ok(self) -> bool:
        return self.progress.state == SearchState.SUCCESS


class TileClient(Protocol):
    async def fetch(self, params: Dict[str, Any]) -> FetchResult:
        ...


def classify_status(status: int) -> StatusClass:
    """Map an HTTP status onto the controller's reaction to it."""
    if 200 <= status < 300:
        return StatusClass.OK
    if status == 429:
        return StatusClass.RATE_LIMITED
    if status in (408, 413):
        return StatusClass.TERMINAL
    if status >= 500:
        return StatusClass.SERVER_ERROR
    return StatusClass.CLIENT_ERROR


def next_grid_size(grid: int, found: int, config: Config) -> Optional[int]:
    """Next grid to fetch, or None when the search is over."""
    search = config.search_config
    if found >= search.min_elements:
        return None
    nxt = grid + search.grid_step
    if nxt > search.max_grid:
        return None
    return nxt


def next_radius(radius: int, found: int, config: Config) -> Optional[int]:
    """Next outer radius in meters, or None when the search is over.

    Sparse areas (nothing found yet, radius under 100 m) grow by 75 m, all
    others by 50 m. The last step is clamped to the maximum radius.
    """
    search = config.search_config
    if found >= search.min_elements or radius >= search.max_radius:
        return None
    step = search.sparse_step if found == 0 and radius < search.sparse_radius else search.radius_step
    return min(radius + step, search.max_radius)


def element_key(element: Dict[str, Any]) -> Tuple[Any, Any]:
    return element.get("type"), element.get("id")


def extract_elements(data: Optional[Dict[str, Any]], tag_set: Optional[FrozenSet[str]] = None) -> List[Dict[str, Any]]:
    """Relevant elements of a tile payload, with centres for ways that only carry ``nodeCoords``."""
    if not isinstance(data, dict) or not isinstance(data.get("elements"), list):
        return []
    out = []
    for element in filter_elements(data["elements"], tag_set):
        if element.get("type") == "way" and element.get("nodeCoords") and element.get("lat") is None:
            center = get_way_center(element["nodeCoords"])
            if center:
                element = {**element, "lat": center.lat, "lon": center.lon}
        out.append(element)
    return out


class HttpTileClient:
    """Fetches ``/api/tile`` from a running server.

    Never raises for transport problems: a timeout becomes status 408, an
    unreachable server 503 and an unreadable body 502.
    """

    def __init__(self, base_url: str, session: Optional[aiohttp.ClientSession] = None, timeout: float = 45.0):
        self.base_url = base_url.rstrip("/")
        self.session = session
        self.timeout = timeout

    async def fetch(self, params: Dict[str, Any]) -> FetchResult:
        url = f"{self.base_url}/api/tile"
        query = {k: str(v) for k, v in params.items()}
        try:
            async with get_session(self.session) as session:
                async with session.get(url, params=query, timeout=aiohttp.ClientTimeout(total=self.timeout)) as resp:
                    text = await resp.text()
                    cache = resp.headers.get("X-Cache")
                    status = resp.status
        except asyncio.TimeoutError:
            return FetchResult(408, error="Request timed out")
        except aiohttp.ClientError as e:
            logger.warning(f"[SEARCH] {url} unreachable: {e}")
            return FetchResult(503, error="Failed to fetch data from server. Please try again.")

        try:
            body = json.loads(text) if text else None
        except ValueError:
            body = None
            if 200 <= status < 300:
                return FetchResult(502, error="Invalid response from server. Please try again.")

        if 200 <= status < 300:
            if not isinstance(body, dict):
                return FetchResult(502, error="Invalid response from server. Please try again.")
            return FetchResult(status, data=body, cache=cache)

        error = body.get("error") if isinstance(body, dict) else None
        return FetchResult(status, error=error or f"HTTP {status}")


class SearchController:
    """Drives grid and ring searches against a tile client.

    Args:
        client: Anything with ``async fetch(params) -> FetchResult``
        config: Search bounds and rate-limit delays
        sleep: Awaitable sleep, replaced in tests
        clock: Monotonic clock in seconds, replaced in tests
        on_progress: Called with every new SearchProgress
    """

    def __init__(
        self,
        client: TileClient,
        config: Optional[Config] = None,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
        clock: Callable[[], float] = time.monotonic,
        on_progress: Optional[Callable[[SearchProgress], None]] = None,
    ):
        self.client = client
        self.config = config or get_config()
        self._sleep = sleep
        self._clock = clock
        self.on_progress = on_progress
        self.generation = 0
        self.progress = SearchProgress()
        self._last_request: Optional[float] = None

    def start(self) -> int:
        """Begin a new generation; any run of an older generation is now stale."""
        self.generation += 1
        self.progress = SearchProgress(generation=self.generation)
        return self.generation

    def cancel(self) -> None:
        self.generation += 1

    def _check(self, generation: int) -> None:
        if generation != self.generation:
            raise SearchCancelled(f"search {generation} superseded by {self.generation}")

    def _emit(self, progress: SearchProgress) -> SearchProgress:
        self._check(progress.generation)
        self.progress = progress
        if self.on_progress:
            self.on_progress(progress)
        return progress

    async def _wait(self, generation: int, seconds: float) -> None:
        if seconds > 0:
            await self._sleep(seconds)
        self._check(generation)

    async def _pace(self, generation: int, extra_delay: float) -> None:
        """Keep the minimum interval since the previous request, then add extra_delay."""
        wait = extra_delay
        if self._last_request is not None:
            elapsed = self._clock() - self._last_request
            wait += max(0.0, self.config.rate_limit_config.min_interval - elapsed)
        await self._wait(generation, wait)
        self._last_request = self._clock()

    async def _request(
        self,
        progress: SearchProgress,
        params: Dict[str, Any],
        extra_delay: float = 0.0,
        paced: bool = True,
        backoff: Tuple[float, ...] = (),
    ) -> Tuple[FetchResult, SearchProgress]:
        """One logical request with 429 backoff and 5xx retries.

        Returns the last result; the caller decides what a failure means.
        """
        generation = progress.generation
        rate = self.config.rate_limit_config
        searching = progress.state
        rate_attempts = 0
        server_attempts = 0
        delay = extra_delay

        while True:
            if paced:
                await self._pace(generation, delay)
            else:
                await self._wait(generation, delay)
            delay = 0.0

            result = await self.client.fetch(params)
            self._check(generation)
            kind = classify_status(result.status)

            if kind is StatusClass.RATE_LIMITED and rate_attempts < len(backoff):
                wait = backoff[rate_attempts]
                rate_attempts += 1
                logger.warning(f"[SEARCH] rate limited, backing off {wait}s ({rate_attempts}/{len(backoff)})")
                progress = self._emit(progress.advance(state=SearchState.RATE_LIMITED, last_error="Rate limited"))
                await self._wait(generation, wait)
                progress = self._emit(progress.advance(state=searching))
                continue

            if kind is StatusClass.SERVER_ERROR and server_attempts < self.config.search_config.max_retries:
                server_attempts += 1
                logger.warning(
                    f"[SEARCH] server error {result.status}, retrying "
                    f"({server_attempts}/{self.config.search_config.max_retries})"
                )
                await self._wait(generation, rate.server_retry_base * server_attempts)
                continue

            return result, progress

    async def run_grid_search(
        self, lat: float, lng: float, tag_set: Optional[FrozenSet[str]] = None
    ) -> SearchOutcome:
        """Grow a tile grid around (lat, lng) until enough relevant elements are found.

        The reported grid size is the last grid actually fetched.
        """
        self.start()
        search = self.config.search_config
        zoom = self.config.overpass_config.zoom
        progress = self._emit(self.progress.advance(state=SearchState.SEARCHING_GRID))

        grid = search.initial_grid
        elements: List[Dict[str, Any]] = []
        while True:
            bbox = calculate_tile_bounds(lat, lng, grid, zoom)
            progress = self._emit(progress.advance(grid_size=grid, tiles_checked=grid * grid, last_error=None))
            params = {"minLat": bbox.min_lat, "minLng": bbox.min_lng, "maxLat": bbox.max_lat, "maxLng": bbox.max_lng}

            result, progress = await self._request(progress, params, paced=False)
            if not result.ok:
                error = result.error or f"HTTP {result.status}"
                if classify_status(result.status) is StatusClass.SERVER_ERROR:
                    error = "Server error. Please try again later."
                logger.error(f"[SEARCH] grid {grid} failed with {result.status}: {error}")
                progress = self._emit(progress.advance(state=SearchState.ERROR, elements=0, last_error=error))
                return SearchOutcome([], progress)

            elements = extract_elements(result.data, tag_set)
            progress = self._emit(progress.advance(elements=len(elements)))
            logger.info(f"[SEARCH] grid {grid}x{grid}: {len(elements)} relevant elements")

            nxt = next_grid_size(grid, len(elements), self.config)
            if nxt is None:
                break
            grid = nxt

        progress = self._emit(progress.advance(state=SearchState.SUCCESS))
        return SearchOutcome(elements, progress)

    async def run_ring_search(
        self, lat: float, lng: float, tag_set: Optional[FrozenSet[str]] = None
    ) -> SearchOutcome:
        """Expand rings around (lat, lng), fetching only each new annulus.

        Elements accumulate across rings, deduplicated by ``(type, id)``.
        """
        self.start()
        search = self.config.search_config
        rate = self.config.rate_limit_config
        progress = self._emit(self.progress.advance(state=SearchState.SEARCHING_RADIUS))

        found: Dict[Tuple[Any, Any], Dict[str, Any]] = {}
        radius = search.initial_radius
        previous = 0
        rate_limited = False
        failure: Optional[FetchResult] = None

        while True:
            params: Dict[str, Any] = {"lat": lat, "lng": lng, "radius": radius}
            extra = 0.0
            if previous > 0:
                params["innerRadius"] = previous
                extra = rate.ring_delay

            progress = self._emit(progress.advance(radius=radius, previous_radius=previous))
            result, progress = await self._request(progress, params, extra_delay=extra, backoff=rate.backoff_429)

            if not result.ok:
                if classify_status(result.status) is StatusClass.RATE_LIMITED:
                    rate_limited = True
                else:
                    failure = result
                logger.warning(f"[SEARCH] ring {previous}-{radius}m stopped with {result.status}")
                break

            for element in extract_elements(result.data, tag_set):
                found.setdefault(element_key(element), element)
            progress = self._emit(progress.advance(elements=len(found), last_error=None))
            logger.info(f"[SEARCH] ring {previous}-{radius}m: {len(found)} relevant elements so far")

            nxt = next_radius(radius, len(found), self.config)
            if nxt is None:
                break
            previous, radius = radius, nxt

        if rate_limited:
            return await self._fallback(progress, lat, lng, tag_set, found)

        if failure is not None:
            error = failure.error or f"HTTP {failure.status}"
            progress = self._emit(progress.advance(state=SearchState.ERROR, last_error=error))
            return SearchOutcome(list(found.values()), progress)

        progress = self._emit(progress.advance(state=SearchState.SUCCESS))
        return SearchOutcome(list(found.values()), progress)

    async def _fallback(
        self,
        progress: SearchProgress,
        lat: float,
        lng: float,
        tag_set: Optional[FrozenSet[str]],
        found: Dict[Tuple[Any, Any], Dict[str, Any]],
    ) -> SearchOutcome:
        """One plain radius query after a cooldown, once backoff is exhausted."""
        generation = progress.generation
        radius = self.config.search_config.fallback_radius
        progress = self._emit(progress.advance(state=SearchState.RATE_LIMITED, last_error="Rate limited"))
        logger.warning(f"[SEARCH] backoff exhausted, falling back to a {radius}m query")
        await self._wait(generation, self.config.rate_limit_config.fallback_cooldown)

        progress = self._emit(progress.advance(state=SearchState.SEARCHING_RADIUS, radius=radius, previous_radius=0))
        result, progress = await self._request(
            progress,
            {"lat": lat, "lng": lng, "radius": radius},
            extra_delay=self.config.rate_limit_config.radius_delay,
        )
        if not result.ok:
            error = result.error or f"HTTP {result.status}"
            progress = self._emit(progress.advance(state=SearchState.ERROR, last_error=error))
            return SearchOutcome(list(found.values()), progress)

        for element in extract_elements(result.data, tag_set):
            found.setdefault(element_key(element), element)
        progress = self._emit(progress.advance(state=SearchState.SUCCESS, elements=len(found), last_error=None))
        return SearchOutcome(list(found.values()), progress)
