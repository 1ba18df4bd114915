"""
Gateway lifecycle and the FastAPI dependency that hands it to routes.
One gateway per application instance; no module-level singleton.
"""

from fastapi import FastAPI, Request

from app.config import Settings
from app.data.land_registry_client import LandRegistryGateway


def init_gateway(app: FastAPI, settings: Settings) -> LandRegistryGateway:
    """Create the gateway and attach it to the app. Called at startup."""
    gateway = LandRegistryGateway.from_settings(settings)
    app.state.gateway = gateway
    return gateway


async def close_gateway(app: FastAPI) -> None:
    gateway: LandRegistryGateway | None = getattr(app.state, "gateway", None)
    if gateway is not None:
        await gateway.aclose()
        app.state.gateway = None


def get_gateway(request: Request) -> LandRegistryGateway:
    """FastAPI dependency — the app's LandRegistryGateway."""
    return request.app.state.gateway
