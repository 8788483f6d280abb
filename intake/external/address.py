"""
Postal-code address lookup.

Accepts "1000001" or "100-0001"; anything that is not seven digits after
removing the hyphen is rejected before any lookup.
"""
from __future__ import annotations

import re
from typing import Dict, Mapping, Optional

import httpx

from intake.errors import AddressNotFoundError, ExternalCollaboratorError
from intake.external.client import JsonApiClient
from intake.external.protocols import AddressInfo

ADDRESS_SEARCH_PATH = "/api/address/search"

_POSTAL_CODE_RE = re.compile(r"^[0-9]{7}$")

DEFAULT_ADDRESSES: Dict[str, AddressInfo] = {
    "1000001": AddressInfo(postal_code="100-0001", prefecture="東京都", city="千代田区", town="千代田"),
    "1500002": AddressInfo(postal_code="150-0002", prefecture="東京都", city="渋谷区", town="渋谷"),
    "5410041": AddressInfo(postal_code="541-0041", prefecture="大阪府", city="大阪市中央区", town="北浜"),
    "2310023": AddressInfo(postal_code="231-0023", prefecture="神奈川県", city="横浜市中区", town="山下町"),
    "4600008": AddressInfo(postal_code="460-0008", prefecture="愛知県", city="名古屋市中区", town="栄"),
}


def normalize_postal_code(postal_code: str) -> str:
    """Return the seven-digit form or raise ValueError."""
    digits = postal_code.strip().replace("-", "")
    if not _POSTAL_CODE_RE.match(digits):
        raise ValueError("Postal code must be 7 digits (e.g. 1000001 or 100-0001)")
    return digits


def _formatted(digits: str) -> str:
    return f"{digits[:3]}-{digits[3:]}"


class HttpAddressLookup:
    name = "address"

    def __init__(
        self,
        base_url: str,
        timeout_seconds: float = 0.5,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self.client = JsonApiClient(self.name, base_url, timeout_seconds, transport)

    async def search_by_postal_code(self, postal_code: str) -> AddressInfo:
        digits = normalize_postal_code(postal_code)
        data = await self.client.post_json(ADDRESS_SEARCH_PATH, {"postal_code": digits})
        if data is None:
            raise AddressNotFoundError()
        if not isinstance(data, dict) or not data.get("prefecture"):
            raise ExternalCollaboratorError(self.name, "malformed address data")
        return AddressInfo(
            postal_code=_formatted(digits),
            prefecture=data["prefecture"],
            city=data.get("city", ""),
            town=data.get("town", ""),
        )

    async def ping(self) -> bool:
        return await self.client.ping()

    async def aclose(self) -> None:
        await self.client.aclose()


class StaticAddressLookup:
    name = "address"

    def __init__(self, addresses: Optional[Mapping[str, AddressInfo]] = None) -> None:
        self.addresses = dict(DEFAULT_ADDRESSES if addresses is None else addresses)

    async def search_by_postal_code(self, postal_code: str) -> AddressInfo:
        digits = normalize_postal_code(postal_code)
        address = self.addresses.get(digits)
        if address is None:
            raise AddressNotFoundError()
        return address

    async def ping(self) -> bool:
        return True
