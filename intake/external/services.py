"""
ExternalServices — the bundle of collaborators handed to the pipeline and routes.

build_external_services() picks HTTP clients for every provider whose URL is
configured and falls back to the static in-process providers otherwise.
"""
from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Any, Dict

from intake.config import Settings
from intake.external.address import HttpAddressLookup, StaticAddressLookup
from intake.external.inventory import HttpInventoryProvider, StaticInventoryProvider
from intake.external.protocols import (
    AddressLookup,
    InventoryProvider,
    MasterDataCatalog,
    RegionRestrictionProvider,
)
from intake.external.region import HttpRegionRestrictionProvider, StaticRegionRestrictionProvider
from intake.registration.catalog import StaticMasterDataCatalog

logger = logging.getLogger(__name__)


@dataclass
class ExternalServices:
    catalog: MasterDataCatalog = field(default_factory=StaticMasterDataCatalog)
    inventory: InventoryProvider = field(default_factory=StaticInventoryProvider)
    region: RegionRestrictionProvider = field(default_factory=StaticRegionRestrictionProvider)
    address: AddressLookup = field(default_factory=StaticAddressLookup)

    def _named(self) -> Dict[str, Any]:
        return {
            "master_data": self.catalog,
            "inventory": self.inventory,
            "region": self.region,
            "address": self.address,
        }

    async def health_check(self) -> Dict[str, Any]:
        """
        Ping every collaborator concurrently.

        Returns {"status": "healthy"|"degraded", "services": {name: "healthy"|"unhealthy"}}.
        A collaborator without a ping() is reported healthy.
        """
        named = self._named()

        async def probe(provider: Any) -> bool:
            ping = getattr(provider, "ping", None)
            if ping is None:
                return True
            try:
                return bool(await ping())
            except Exception:
                logger.warning("Health probe failed for %s", type(provider).__name__, exc_info=True)
                return False

        results = await asyncio.gather(*(probe(p) for p in named.values()))
        services = {
            name: "healthy" if ok else "unhealthy"
            for name, ok in zip(named.keys(), results)
        }
        status = "healthy" if all(results) else "degraded"
        return {"status": status, "services": services}

    async def aclose(self) -> None:
        for provider in self._named().values():
            close = getattr(provider, "aclose", None)
            if close is not None:
                await close()


def build_external_services(settings: Settings) -> ExternalServices:
    timeout = settings.external_timeout_seconds
    services = ExternalServices(
        inventory=(
            HttpInventoryProvider(settings.inventory_api_url, timeout)
            if settings.inventory_api_url else StaticInventoryProvider()
        ),
        region=(
            HttpRegionRestrictionProvider(settings.region_api_url, timeout)
            if settings.region_api_url else StaticRegionRestrictionProvider()
        ),
        address=(
            HttpAddressLookup(settings.address_api_url, timeout)
            if settings.address_api_url else StaticAddressLookup()
        ),
    )
    logger.info(
        "External services: inventory=%s region=%s address=%s",
        type(services.inventory).__name__,
        type(services.region).__name__,
        type(services.address).__name__,
    )
    return services
