"""
Land Registry API — thin pass-through over LandRegistryGateway.

Every route returns the gateway's envelope as-is (HTTP 200 with a
`success` flag), so the frontend handles one error shape everywhere.
The export download is the only binary route.
"""

import logging
from typing import Any, Optional

from fastapi import APIRouter, Body, Depends, Query, Request
from fastapi.responses import JSONResponse, Response

from app.data.land_registry_client import LandRegistryGateway
from app.dependencies import get_gateway
from app.schemas.envelope import ResultEnvelope

logger = logging.getLogger(__name__)
router = APIRouter()


def _out(envelope: ResultEnvelope) -> dict[str, Any]:
    return envelope.model_dump(mode="json", exclude_none=True)


# ── Search / lookup ───────────────────────────────────────────────────────

@router.get("/properties/search")
async def search_properties(request: Request, gateway: LandRegistryGateway = Depends(get_gateway)):
    return _out(await gateway.search_properties(dict(request.query_params)))


@router.get("/properties/nearby")
async def nearby_properties(
    postcode: str,
    radius: int = Query(default=1000, gt=0),
    gateway: LandRegistryGateway = Depends(get_gateway),
):
    return _out(await gateway.get_nearby_properties(postcode, radius))


@router.post("/properties/batch")
async def batch_lookup(
    title_numbers: list[str] = Body(embed=True),
    gateway: LandRegistryGateway = Depends(get_gateway),
):
    return _out(await gateway.batch_property_lookup(title_numbers))


@router.get("/properties/{title_number}")
async def get_property(title_number: str, gateway: LandRegistryGateway = Depends(get_gateway)):
    return _out(await gateway.get_property_by_title_number(title_number))


@router.get("/ownership/lookup")
async def lookup_ownership(request: Request, gateway: LandRegistryGateway = Depends(get_gateway)):
    return _out(await gateway.lookup_ownership(dict(request.query_params)))


@router.get("/price-paid/search")
async def search_price_paid(request: Request, gateway: LandRegistryGateway = Depends(get_gateway)):
    return _out(await gateway.search_price_paid(dict(request.query_params)))


@router.get("/price-paid/history/{title_number}")
async def price_history(title_number: str, gateway: LandRegistryGateway = Depends(get_gateway)):
    return _out(await gateway.get_price_history(title_number))


@router.get("/valuation/{title_number}")
async def valuation(title_number: str, gateway: LandRegistryGateway = Depends(get_gateway)):
    return _out(await gateway.get_property_valuation(title_number))


@router.get("/market/trends")
async def market_trends(
    postcode: str,
    period: str = "1y",
    gateway: LandRegistryGateway = Depends(get_gateway),
):
    return _out(await gateway.get_market_trends(postcode, period))


@router.get("/stats")
async def stats(gateway: LandRegistryGateway = Depends(get_gateway)):
    return _out(await gateway.get_stats())


# ── Bulk search ───────────────────────────────────────────────────────────

@router.post("/bulk-search")
async def start_bulk_search(
    body: dict[str, Any] = Body(...),
    gateway: LandRegistryGateway = Depends(get_gateway),
):
    return _out(await gateway.start_bulk_search(body))


@router.get("/bulk-search/{request_id}")
async def bulk_search_status(request_id: str, gateway: LandRegistryGateway = Depends(get_gateway)):
    return _out(await gateway.get_bulk_search_status(request_id))


@router.get("/bulk-export/{request_id}")
async def download_bulk_results(request_id: str, gateway: LandRegistryGateway = Depends(get_gateway)):
    """CSV export. 404 with an envelope until the job has been polled to completion."""
    content = await gateway.download_bulk_results(request_id)
    if content is None:
        return JSONResponse(
            status_code=404,
            content=_out(ResultEnvelope.fail(
                "EXPORT_NOT_READY",
                f"Bulk search {request_id} has no completed export yet",
            )),
        )
    return Response(
        content=content,
        media_type="text/csv",
        headers={"Content-Disposition": f'attachment; filename="bulk-search-{request_id}.csv"'},
    )


# ── Admin ─────────────────────────────────────────────────────────────────

@router.post("/sync")
async def sync_data(gateway: LandRegistryGateway = Depends(get_gateway)):
    return _out(await gateway.sync_data())


@router.post("/cache/clear")
async def clear_api_cache(gateway: LandRegistryGateway = Depends(get_gateway)):
    return _out(await gateway.clear_api_cache())


@router.get("/health")
async def upstream_health(gateway: LandRegistryGateway = Depends(get_gateway)):
    return _out(await gateway.get_health_status())


# ── Local cache ───────────────────────────────────────────────────────────

@router.get("/cache")
async def cache_stats(gateway: LandRegistryGateway = Depends(get_gateway)):
    stats = gateway.cache_stats()
    return {
        "size": stats.size,
        "keys": stats.keys,
        "approx_memory_bytes": stats.approx_memory_bytes,
    }


@router.delete("/cache")
async def clear_local_cache(
    key: Optional[str] = None,
    gateway: LandRegistryGateway = Depends(get_gateway),
):
    """Drop one local cache entry, or all of them without `key`."""
    gateway.clear_cache(key)
    return {"status": "ok", "cleared": key or "all"}
