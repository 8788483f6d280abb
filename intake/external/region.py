"""
Region restriction providers.

HttpRegionRestrictionProvider    POST /api/region/check {prefecture, city, option_ids} → {code: bool}
StaticRegionRestrictionProvider  rule table keyed by option code

A code absent from the provider's answer is not allowed.
"""
from __future__ import annotations

from typing import Dict, FrozenSet, Mapping, Optional, Sequence

import httpx

from intake.errors import ExternalCollaboratorError
from intake.external.client import JsonApiClient

REGION_CHECK_PATH = "/api/region/check"

# option code → prefectures where it cannot be offered
DEFAULT_RESTRICTIONS: Dict[str, FrozenSet[str]] = {
    "AA": frozenset({"北海道"}),
    "BB": frozenset({"東京都", "大阪府", "愛知県"}),
    "AB": frozenset(),
}


class HttpRegionRestrictionProvider:
    name = "region"

    def __init__(
        self,
        base_url: str,
        timeout_seconds: float = 0.5,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self.client = JsonApiClient(self.name, base_url, timeout_seconds, transport)

    async def check(self, prefecture: str, city: str, codes: Sequence[str]) -> Dict[str, bool]:
        if not codes:
            return {}
        data = await self.client.post_json(
            REGION_CHECK_PATH,
            {"prefecture": prefecture, "city": city, "option_ids": list(codes)},
        )
        if not isinstance(data, dict):
            raise ExternalCollaboratorError(self.name, "malformed region data")
        return {code: data.get(code) is True for code in codes}

    async def ping(self) -> bool:
        return await self.client.ping()

    async def aclose(self) -> None:
        await self.client.aclose()


class StaticRegionRestrictionProvider:
    name = "region"

    def __init__(self, restrictions: Optional[Mapping[str, FrozenSet[str]]] = None) -> None:
        self.restrictions = dict(DEFAULT_RESTRICTIONS if restrictions is None else restrictions)

    async def check(self, prefecture: str, city: str, codes: Sequence[str]) -> Dict[str, bool]:
        # Unknown codes have no rule and are never allowed.
        return {
            code: code in self.restrictions and prefecture not in self.restrictions[code]
            for code in codes
        }

    async def ping(self) -> bool:
        return True
