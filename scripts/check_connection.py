"""
Connection verification script.
Checks the Land Registry API behind the gateway before deployment.

Usage:
    python scripts/check_connection.py

Reads LAND_REGISTRY_* settings from the environment or .env in the
current directory.
"""

import asyncio
import sys
from pathlib import Path

# Allow running from the project root or scripts/ directory
sys.path.insert(0, str(Path(__file__).parent.parent / "backend"))

from app.config import get_settings  # noqa: E402
from app.data.land_registry_client import LandRegistryGateway  # noqa: E402


async def check_land_registry() -> bool:
    settings = get_settings()
    print(f"\n[1/2] Land Registry health ({settings.land_registry_base_url})...", end=" ")
    async with LandRegistryGateway.from_settings(settings) as gateway:
        result = await gateway.get_health_status()
        if not result.success:
            print(f"❌ {result.error.code}: {result.error.message}")
            return False
        health = result.data
        print(f"✅ {health.status} (api: {health.api_available}, db: {health.database_connected})")

        print("[2/2] Land Registry stats...", end=" ")
        stats = await gateway.get_stats()
        if not stats.success:
            print(f"⚠️  {stats.error.code}: {stats.error.message}")
            return True  # Health is fine; stats is optional on some deployments
        print(f"✅ {stats.data.total_requests} requests served upstream")
        return True


if __name__ == "__main__":
    print("=" * 50)
    print("LAND REGISTRY GATEWAY — Connection Test")
    print("=" * 50)

    ok = asyncio.run(check_land_registry())

    print("\n" + "=" * 50)
    if ok:
        print("🚀 Land Registry reachable!")
    else:
        print("⚠️  Connection failed. Check LAND_REGISTRY_BASE_URL / LAND_REGISTRY_API_TOKEN.")
        sys.exit(1)
