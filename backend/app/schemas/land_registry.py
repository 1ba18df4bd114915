"""
Land Registry schemas — query parameter records and response payloads.

Parameter records are closed (unknown fields rejected) and each one renders
its own query string via ``to_query()``, which drops empty values so that
equivalent calls collapse onto one cache key. Response payloads are lenient:
the upstream API omits fields freely, so almost everything is optional.
"""

import re
from datetime import date
from typing import Annotated, Literal, Optional

from pydantic import AfterValidator, BaseModel, ConfigDict, Field, field_validator, model_validator

_POSTCODE_RE = re.compile(r"^[A-Z]{1,2}[0-9][A-Z0-9]?\s?[0-9][A-Z]{2}$", re.IGNORECASE)


def validate_postcode(postcode: str) -> bool:
    """True for a complete UK postcode, with or without the inner space."""
    return bool(_POSTCODE_RE.match(re.sub(r"\s", "", postcode)))


def format_postcode(postcode: str) -> str:
    """'sw1a1aa' / ' SW1A  1AA ' → 'SW1A 1AA'. Partial postcodes are only upper-cased."""
    cleaned = re.sub(r"\s", "", postcode).upper()
    if len(cleaned) >= 5:
        return f"{cleaned[:-3]} {cleaned[-3:]}"
    return cleaned


Postcode = Annotated[str, AfterValidator(format_postcode)]

PropertyTypeCode = Literal["D", "S", "T", "F", "O"]  # Detached, Semi, Terraced, Flat, Other
TenureType = Literal["Freehold", "Leasehold"]
TrendPeriod = Literal["1m", "3m", "6m", "1y", "2y"]


# ── Query parameter records ───────────────────────────────────────────────

class QueryParams(BaseModel):
    model_config = ConfigDict(extra="forbid", str_strip_whitespace=True, frozen=True)

    def to_query(self) -> dict[str, str]:
        """Render non-empty fields as query-string values."""
        query: dict[str, str] = {}
        for name, value in self.model_dump(exclude_none=True).items():
            if value == "":
                continue
            if isinstance(value, bool):
                query[name] = "true" if value else "false"
            else:
                query[name] = str(value)
        return query


class PropertySearchParams(QueryParams):
    postcode: Optional[Postcode] = None
    address: Optional[str] = None
    property_type: Optional[PropertyTypeCode] = None
    tenure: Optional[TenureType] = None
    page: Optional[int] = Field(default=None, ge=1)
    limit: Optional[int] = Field(default=None, ge=1, le=100)


class OwnershipLookupParams(QueryParams):
    title_number: Optional[str] = None
    postcode: Optional[Postcode] = None
    owner_name: Optional[str] = None
    company_number: Optional[str] = None
    include_historical: Optional[bool] = None
    page: Optional[int] = Field(default=None, ge=1)
    limit: Optional[int] = Field(default=None, ge=1, le=100)


class PricePaidSearchParams(QueryParams):
    postcode: Optional[Postcode] = None
    address: Optional[str] = None
    date_from: Optional[date] = None
    date_to: Optional[date] = None
    min_price: Optional[int] = Field(default=None, ge=0)
    max_price: Optional[int] = Field(default=None, ge=0)
    property_type: Optional[PropertyTypeCode] = None
    page: Optional[int] = Field(default=None, ge=1)
    limit: Optional[int] = Field(default=None, ge=1, le=100)

    @model_validator(mode="after")
    def _check_ranges(self) -> "PricePaidSearchParams":
        if self.date_from and self.date_to and self.date_from > self.date_to:
            raise ValueError("date_from must not be after date_to")
        if self.min_price is not None and self.max_price is not None and self.min_price > self.max_price:
            raise ValueError("min_price must not exceed max_price")
        return self


class BulkSearchRequest(BaseModel):
    model_config = ConfigDict(extra="forbid", str_strip_whitespace=True)

    postcodes: list[str] = Field(default_factory=list)
    title_numbers: list[str] = Field(default_factory=list)
    search_type: Literal["ownership", "price_paid", "both"] = "both"
    date_from: Optional[date] = None
    date_to: Optional[date] = None
    max_results: Optional[int] = Field(default=None, ge=1)

    @field_validator("postcodes")
    @classmethod
    def _normalize_postcodes(cls, v: list[str]) -> list[str]:
        bad = [p for p in v if not validate_postcode(p)]
        if bad:
            raise ValueError(f"invalid postcodes: {', '.join(bad)}")
        return [format_postcode(p) for p in v]

    @field_validator("title_numbers")
    @classmethod
    def _strip_titles(cls, v: list[str]) -> list[str]:
        return [t.strip().upper() for t in v if t.strip()]

    @model_validator(mode="after")
    def _check_targets(self) -> "BulkSearchRequest":
        if not self.postcodes and not self.title_numbers:
            raise ValueError("bulk search needs at least one postcode or title number")
        if self.date_from and self.date_to and self.date_from > self.date_to:
            raise ValueError("date_from must not be after date_to")
        return self

    def to_payload(self) -> dict:
        return self.model_dump(mode="json", exclude_none=True)


# ── Response payloads ─────────────────────────────────────────────────────

class Address(BaseModel):
    line1: Optional[str] = None
    line2: Optional[str] = None
    town: Optional[str] = None
    county: Optional[str] = None
    postcode: Optional[str] = None


class Coordinates(BaseModel):
    latitude: float
    longitude: float


class Property(BaseModel):
    id: Optional[str] = None
    title_number: Optional[str] = None
    property_description: Optional[str] = None
    tenure: Optional[str] = None
    address: Optional[Address] = None
    coordinates: Optional[Coordinates] = None
    created_at: Optional[str] = None
    updated_at: Optional[str] = None


class OwnershipRecord(BaseModel):
    id: Optional[str] = None
    property_id: Optional[str] = None
    title_number: Optional[str] = None
    proprietor_name: str
    proprietor_address: Optional[Address] = None
    ownership_type: Optional[str] = None     # Sole / Joint / Tenants in Common / Other
    date_proprietor_added: Optional[str] = None
    additional_proprietor_indicator: Optional[bool] = None
    created_at: Optional[str] = None
    updated_at: Optional[str] = None


class PricePaidRecord(BaseModel):
    id: Optional[str] = None
    property_id: Optional[str] = None
    price: float
    date_of_transfer: str
    postcode: Optional[str] = None
    property_type: Optional[str] = None
    old_new: Optional[str] = None            # Y = new build
    duration: Optional[str] = None           # F / L
    paon: Optional[str] = None
    saon: Optional[str] = None
    street: Optional[str] = None
    locality: Optional[str] = None
    town_city: Optional[str] = None
    district: Optional[str] = None
    county: Optional[str] = None
    ppd_category_type: Optional[str] = None
    record_status: Optional[str] = None


class ComparableSale(BaseModel):
    property_id: Optional[str] = None
    price: float
    date_of_sale: Optional[str] = None
    distance_meters: Optional[float] = None


class AreaMarketSummary(BaseModel):
    area_average_price: Optional[float] = None
    price_change_12_months: Optional[float] = None
    market_activity_level: Optional[str] = None


class PropertyValuation(BaseModel):
    property_id: Optional[str] = None
    estimated_value: float
    confidence_level: Optional[str] = None
    valuation_date: Optional[str] = None
    comparable_properties: list[ComparableSale] = Field(default_factory=list)
    market_trends: Optional[AreaMarketSummary] = None


class TrendPoint(BaseModel):
    date: str
    average_price: float
    transaction_count: int = 0


class MarketTrends(BaseModel):
    average_price: Optional[float] = None
    median_price: Optional[float] = None
    price_change_percent: Optional[float] = None
    transaction_count: Optional[int] = None
    trends: list[TrendPoint] = Field(default_factory=list)


class LandRegistryStats(BaseModel):
    total_requests: int = 0
    successful_requests: int = 0
    failed_requests: int = 0
    average_response_time: Optional[float] = None
    requests_by_endpoint: dict[str, int] = Field(default_factory=dict)
    cache_hit_rate: Optional[float] = None
    last_updated: Optional[str] = None


class HealthStatus(BaseModel):
    status: str
    timestamp: Optional[str] = None
    api_available: Optional[bool] = None
    database_connected: Optional[bool] = None
    cache_available: Optional[bool] = None


class CacheClearResult(BaseModel):
    message: str = ""


class SyncResult(BaseModel):
    message: str = ""
    synced_records: int = 0
