"""
Collaborator interfaces consumed by the validation pipeline and the API.

Every provider is async. Implementations raise ExternalCollaboratorError on
transport failure or a malformed answer; callers decide what a failure means.
"""
from __future__ import annotations

from typing import Dict, List, Optional, Protocol, Sequence, runtime_checkable

from pydantic import BaseModel, Field


class PlanInfo(BaseModel):
    code: str
    name: str
    description: str = ""


class OptionInfo(BaseModel):
    code: str
    name: str
    description: str = ""
    active: bool = True
    allowed_plans: List[str] = Field(default_factory=list)


class AddressInfo(BaseModel):
    postal_code: str
    prefecture: str
    city: str
    town: str = ""


@runtime_checkable
class MasterDataCatalog(Protocol):
    async def get_option(self, code: str) -> Optional[OptionInfo]:
        ...

    async def list_plans(self) -> List[PlanInfo]:
        ...

    async def list_options(self, plan_type: Optional[str] = None) -> List[OptionInfo]:
        ...


@runtime_checkable
class InventoryProvider(Protocol):
    async def check_levels(self, codes: Sequence[str]) -> Dict[str, int]:
        ...


@runtime_checkable
class RegionRestrictionProvider(Protocol):
    async def check(self, prefecture: str, city: str, codes: Sequence[str]) -> Dict[str, bool]:
        ...


@runtime_checkable
class AddressLookup(Protocol):
    async def search_by_postal_code(self, postal_code: str) -> AddressInfo:
        """Raises AddressNotFoundError when the code is unknown."""
        ...
