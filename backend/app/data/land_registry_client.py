"""
Land Registry gateway — read-through cached client for the Land Registry API.

Read operations consult the cache first and only hit the network on a miss.
Successful results are stored under a TTL tier:
  - short (5 min default): search/list results, which change as data syncs
  - long (30 min default): one title's own record or price history
Failures are never cached, so a retry always goes back to the network.

Write/command operations (bulk submit, sync, cache clear, batch lookup)
bypass the cache entirely; sync and cache clear also empty the local cache.

Known simplification: two concurrent misses for the same key both go to the
network and both store an equivalent result.
"""

import logging
from typing import Any, Mapping, Optional, TypeVar
from urllib.parse import quote, urlencode

from pydantic import BaseModel

from app.config import Settings, get_settings
from app.data.bulk_jobs import BulkJobTracker
from app.data.cache import CacheStats, TTLCache
from app.data.executor import RequestExecutor
from app.schemas.envelope import VALIDATION_ERROR, ResultEnvelope
from app.schemas.land_registry import (
    CacheClearResult,
    HealthStatus,
    LandRegistryStats,
    MarketTrends,
    OwnershipLookupParams,
    OwnershipRecord,
    PricePaidRecord,
    PricePaidSearchParams,
    Property,
    PropertySearchParams,
    PropertyValuation,
    SyncResult,
    format_postcode,
)

logger = logging.getLogger(__name__)

P = TypeVar("P", bound=BaseModel)

# Operation names double as cache-key prefixes.
OP_SEARCH_PROPERTIES = "searchProperties"
OP_GET_PROPERTY = "getPropertyByTitleNumber"
OP_LOOKUP_OWNERSHIP = "lookupOwnership"
OP_SEARCH_PRICE_PAID = "searchPricePaid"
OP_PRICE_HISTORY = "getPriceHistory"
OP_VALUATION = "getPropertyValuation"
OP_NEARBY = "getNearbyProperties"
OP_MARKET_TRENDS = "getMarketTrends"
OP_STATS = "getStats"

_TREND_PERIODS = {"1m", "3m", "6m", "1y", "2y"}


def build_cache_key(operation: str, params: Optional[Mapping[str, Any]] = None) -> str:
    """
    Canonical cache key: operation name + sorted, non-empty parameters.
    Parameter order never matters: op(a=1, b=2) and op(b=2, a=1) share a key.
    """
    items = []
    for name, value in (params or {}).items():
        if value is None or value == "":
            continue
        if isinstance(value, bool):
            value = "true" if value else "false"
        items.append((name, str(value)))
    if not items:
        return operation
    return f"{operation}:{urlencode(sorted(items))}"


def _coerce(model: type[P], params: P | Mapping[str, Any] | None) -> P:
    if isinstance(params, model):
        return params
    try:
        raw = dict(params or {})
    except (TypeError, ValueError) as e:
        raise ValueError(f"expected {model.__name__} or a mapping, got {type(params).__name__}") from e
    return model.model_validate(raw)


def _clean_title_number(title_number: str) -> str:
    cleaned = (title_number or "").strip().upper()
    if not cleaned:
        raise ValueError("title_number is required")
    return cleaned


def _invalid(operation: str, error: ValueError) -> ResultEnvelope:
    logger.warning(f"{operation}: rejected parameters — {error}")
    return ResultEnvelope.fail(
        VALIDATION_ERROR,
        f"Invalid parameters for {operation}",
        {"reason": str(error)},
    )


class LandRegistryGateway:
    def __init__(
        self,
        executor: RequestExecutor,
        cache: Optional[TTLCache] = None,
        *,
        short_ttl: float = 300,
        long_ttl: float = 1800,
        bulk_tracker: Optional[BulkJobTracker] = None,
        bulk_retention: float = 3600,
    ) -> None:
        self._executor = executor
        self._short_ttl = short_ttl
        self._long_ttl = long_ttl
        self._cache = cache if cache is not None else TTLCache(default_ttl=short_ttl)
        self._bulk = bulk_tracker or BulkJobTracker(executor, retention_seconds=bulk_retention)

    @classmethod
    def from_settings(
        cls,
        settings: Optional[Settings] = None,
        **executor_kwargs: Any,
    ) -> "LandRegistryGateway":
        """Build a gateway wired from Settings. Extra kwargs go to RequestExecutor (e.g. transport)."""
        settings = settings or get_settings()
        executor_kwargs.setdefault("timeout", settings.request_timeout_seconds)
        executor_kwargs.setdefault("header_provider", settings.auth_headers)
        executor = RequestExecutor(settings.land_registry_base_url, **executor_kwargs)
        return cls(
            executor,
            short_ttl=settings.cache_ttl_short_seconds,
            long_ttl=settings.cache_ttl_long_seconds,
            bulk_retention=settings.bulk_job_retention_seconds,
        )

    async def aclose(self) -> None:
        await self._executor.aclose()

    async def __aenter__(self) -> "LandRegistryGateway":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()

    @property
    def base_url(self) -> str:
        return self._executor.base_url

    @property
    def cache(self) -> TTLCache:
        return self._cache

    @property
    def bulk_jobs(self) -> BulkJobTracker:
        return self._bulk

    # ── Read-through core ──────────────────────────────────────────────────

    async def _read(
        self,
        operation: str,
        path: str,
        ttl: float,
        *,
        query: Optional[Mapping[str, str]] = None,
        key_params: Optional[Mapping[str, Any]] = None,
        response_model: Any = None,
    ) -> ResultEnvelope:
        key = build_cache_key(operation, key_params if key_params is not None else query)

        cached = self._cache.get(key)
        if cached is not None:
            logger.debug(f"Cache hit: {key}")
            return cached

        logger.debug(f"Cache miss: {key}")
        envelope = await self._executor.get(path, params=query, response_model=response_model)
        if envelope.success and envelope.data is not None:
            self._cache.set(key, envelope, ttl)
        return envelope

    # ── Properties ─────────────────────────────────────────────────────────

    async def search_properties(
        self, params: PropertySearchParams | Mapping[str, Any] | None = None
    ) -> ResultEnvelope:
        """Search properties by postcode, address, type or tenure."""
        try:
            query = _coerce(PropertySearchParams, params).to_query()
        except ValueError as e:
            return _invalid(OP_SEARCH_PROPERTIES, e)
        return await self._read(
            OP_SEARCH_PROPERTIES, "/properties/search", self._short_ttl,
            query=query, response_model=list[Property],
        )

    async def get_property_by_title_number(self, title_number: str) -> ResultEnvelope:
        try:
            title = _clean_title_number(title_number)
        except ValueError as e:
            return _invalid(OP_GET_PROPERTY, e)
        return await self._read(
            OP_GET_PROPERTY, f"/properties/{quote(title, safe='')}", self._long_ttl,
            key_params={"title_number": title}, response_model=Property,
        )

    async def get_nearby_properties(self, postcode: str, radius: int = 1000) -> ResultEnvelope:
        """Properties within `radius` metres of a postcode."""
        try:
            cleaned = format_postcode(postcode or "")
            if not cleaned:
                raise ValueError("postcode is required")
            if radius <= 0:
                raise ValueError("radius must be positive")
        except ValueError as e:
            return _invalid(OP_NEARBY, e)
        return await self._read(
            OP_NEARBY, "/properties/nearby", self._short_ttl,
            query={"postcode": cleaned, "radius": str(radius)}, response_model=list[Property],
        )

    async def batch_property_lookup(self, title_numbers: list[str]) -> ResultEnvelope:
        """Fetch many titles in one POST. Not cached."""
        cleaned = [t.strip().upper() for t in title_numbers if t and t.strip()]
        if not cleaned:
            return _invalid("batchPropertyLookup", ValueError("at least one title number is required"))
        return await self._executor.post(
            "/properties/batch", json={"title_numbers": cleaned}, response_model=list[Property]
        )

    # ── Ownership ──────────────────────────────────────────────────────────

    async def lookup_ownership(
        self, params: OwnershipLookupParams | Mapping[str, Any] | None = None
    ) -> ResultEnvelope:
        try:
            query = _coerce(OwnershipLookupParams, params).to_query()
        except ValueError as e:
            return _invalid(OP_LOOKUP_OWNERSHIP, e)
        return await self._read(
            OP_LOOKUP_OWNERSHIP, "/ownership/lookup", self._short_ttl,
            query=query, response_model=list[OwnershipRecord],
        )

    # ── Price paid ─────────────────────────────────────────────────────────

    async def search_price_paid(
        self, params: PricePaidSearchParams | Mapping[str, Any] | None = None
    ) -> ResultEnvelope:
        try:
            query = _coerce(PricePaidSearchParams, params).to_query()
        except ValueError as e:
            return _invalid(OP_SEARCH_PRICE_PAID, e)
        return await self._read(
            OP_SEARCH_PRICE_PAID, "/price-paid/search", self._short_ttl,
            query=query, response_model=list[PricePaidRecord],
        )

    async def get_price_history(self, title_number: str) -> ResultEnvelope:
        """Full transfer history for one title. Historical data, so long TTL."""
        try:
            title = _clean_title_number(title_number)
        except ValueError as e:
            return _invalid(OP_PRICE_HISTORY, e)
        return await self._read(
            OP_PRICE_HISTORY, f"/price-paid/history/{quote(title, safe='')}", self._long_ttl,
            key_params={"title_number": title}, response_model=list[PricePaidRecord],
        )

    # ── Market data ────────────────────────────────────────────────────────

    async def get_property_valuation(self, title_number: str) -> ResultEnvelope:
        try:
            title = _clean_title_number(title_number)
        except ValueError as e:
            return _invalid(OP_VALUATION, e)
        return await self._read(
            OP_VALUATION, f"/valuation/{quote(title, safe='')}", self._short_ttl,
            key_params={"title_number": title}, response_model=PropertyValuation,
        )

    async def get_market_trends(self, postcode: str, period: str = "1y") -> ResultEnvelope:
        try:
            cleaned = format_postcode(postcode or "")
            if not cleaned:
                raise ValueError("postcode is required")
            if period not in _TREND_PERIODS:
                raise ValueError(f"period must be one of {sorted(_TREND_PERIODS)}")
        except ValueError as e:
            return _invalid(OP_MARKET_TRENDS, e)
        return await self._read(
            OP_MARKET_TRENDS, "/market/trends", self._long_ttl,
            query={"postcode": cleaned, "period": period}, response_model=MarketTrends,
        )

    async def get_stats(self) -> ResultEnvelope:
        return await self._read(OP_STATS, "/stats", self._short_ttl, response_model=LandRegistryStats)

    # ── Bulk search ────────────────────────────────────────────────────────

    async def start_bulk_search(self, request: Any) -> ResultEnvelope:
        """Submit a bulk search; data is the job id to poll."""
        return await self._bulk.submit(request)

    async def get_bulk_search_status(self, request_id: str) -> ResultEnvelope:
        return await self._bulk.poll(request_id)

    async def download_bulk_results(self, request_id: str) -> Optional[bytes]:
        """CSV export bytes, or None when the job hasn't been seen completing."""
        return await self._bulk.download(request_id)

    # ── Admin / commands ───────────────────────────────────────────────────

    async def sync_data(self) -> ResultEnvelope:
        """Ask the server to resync from Land Registry. Local entries go stale, so drop them."""
        envelope = await self._executor.post("/sync", response_model=SyncResult)
        if envelope.success:
            self._cache.invalidate()
            logger.info("Land Registry sync complete — local cache cleared")
        return envelope

    async def clear_api_cache(self) -> ResultEnvelope:
        """Clear the server-side cache and the local one."""
        envelope = await self._executor.post("/cache/clear", response_model=CacheClearResult)
        self._cache.invalidate()
        logger.info("Local Land Registry cache cleared")
        return envelope

    async def get_health_status(self) -> ResultEnvelope:
        return await self._executor.get("/health", response_model=HealthStatus)

    # ── Local cache ────────────────────────────────────────────────────────

    def clear_cache(self, key: Optional[str] = None) -> None:
        self._cache.invalidate(key)

    def cache_stats(self) -> CacheStats:
        return self._cache.stats()
