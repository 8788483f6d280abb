"""
Inventory providers.

HttpInventoryProvider     POST /api/inventory/check {option_ids} → {code: count}
StaticInventoryProvider   fixed levels for development and tests

A code absent from the provider's answer has no stock.
"""
from __future__ import annotations

from typing import Dict, Mapping, Optional, Sequence

import httpx

from intake.errors import ExternalCollaboratorError
from intake.external.client import JsonApiClient

INVENTORY_CHECK_PATH = "/api/inventory/check"

DEFAULT_LEVELS: Dict[str, int] = {"AA": 10, "BB": 5, "AB": 25}


class HttpInventoryProvider:
    name = "inventory"

    def __init__(
        self,
        base_url: str,
        timeout_seconds: float = 0.5,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self.client = JsonApiClient(self.name, base_url, timeout_seconds, transport)

    async def check_levels(self, codes: Sequence[str]) -> Dict[str, int]:
        if not codes:
            return {}
        data = await self.client.post_json(INVENTORY_CHECK_PATH, {"option_ids": list(codes)})
        if not isinstance(data, dict):
            raise ExternalCollaboratorError(self.name, "malformed inventory data")
        levels: Dict[str, int] = {}
        for code in codes:
            value = data.get(code, 0)
            if isinstance(value, bool) or not isinstance(value, int):
                raise ExternalCollaboratorError(self.name, f"non-integer level for {code}")
            levels[code] = value
        return levels

    async def ping(self) -> bool:
        return await self.client.ping()

    async def aclose(self) -> None:
        await self.client.aclose()


class StaticInventoryProvider:
    name = "inventory"

    def __init__(self, levels: Optional[Mapping[str, int]] = None) -> None:
        self.levels: Dict[str, int] = dict(DEFAULT_LEVELS if levels is None else levels)

    async def check_levels(self, codes: Sequence[str]) -> Dict[str, int]:
        return {code: self.levels.get(code, 0) for code in codes}

    async def ping(self) -> bool:
        return True
