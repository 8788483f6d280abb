"""
Business-rule stage (stage 3) — checks that depend on mutable external state.

For the selected option codes, three collaborators are queried concurrently:
  master data   option exists and is active
  inventory     stock level > 0
  region        option may be offered at the submitted prefecture/city

Fail-closed: a collaborator that times out, errors or answers malformed data
marks every requested code as failing its check. Each call gets one attempt
bounded by the configured timeout.

Errors are keyed "option_types.<CODE>"; a code reports the first failing check
in the order above.
"""
from __future__ import annotations

import asyncio
import logging
from typing import Awaitable, Callable, Dict, List, Optional, Sequence, TypeVar

from intake.errors import ExternalCollaboratorError
from intake.external.protocols import (
    InventoryProvider,
    MasterDataCatalog,
    OptionInfo,
    RegionRestrictionProvider,
)
from intake.registration.schemas import OPTION_TYPES, DraftSubmission

logger = logging.getLogger(__name__)

T = TypeVar("T")

DEFAULT_TIMEOUT_SECONDS = 0.5

MSG_OPTION_WITHDRAWN = "This option is no longer offered"
MSG_OUT_OF_STOCK = "This option is currently out of stock"
MSG_REGION_RESTRICTED = "This option is not available in your area"
MSG_MASTER_DATA_UNAVAILABLE = "Option availability could not be confirmed"
MSG_INVENTORY_UNAVAILABLE = "Stock could not be confirmed; the option is treated as unavailable"
MSG_REGION_UNAVAILABLE = "Area availability could not be confirmed; the option is treated as unavailable"


def option_error_key(code: str) -> str:
    return f"{OPTION_TYPES}.{code}"


class BusinessRuleChecker:
    def __init__(
        self,
        catalog: MasterDataCatalog,
        inventory: InventoryProvider,
        region: RegionRestrictionProvider,
        timeout_seconds: float = DEFAULT_TIMEOUT_SECONDS,
    ) -> None:
        self.catalog = catalog
        self.inventory = inventory
        self.region = region
        self.timeout_seconds = timeout_seconds

    async def _call(self, name: str, make_call: Callable[[], Awaitable[T]]) -> Optional[T]:
        """One bounded attempt. Returns None on any failure."""
        try:
            return await asyncio.wait_for(make_call(), timeout=self.timeout_seconds)
        except asyncio.TimeoutError:
            logger.warning("External check timed out collaborator=%s timeout=%.3fs", name, self.timeout_seconds)
        except ExternalCollaboratorError as exc:
            logger.warning("External check failed collaborator=%s reason=%s", name, exc.reason)
        except Exception:
            logger.warning("External check raised collaborator=%s", name, exc_info=True)
        return None

    async def _lookup_options(self, codes: Sequence[str]) -> List[Optional[OptionInfo]]:
        return list(await asyncio.gather(*(self.catalog.get_option(code) for code in codes)))

    async def check(self, draft: DraftSubmission) -> Dict[str, str]:
        codes = list(dict.fromkeys(draft.plan.option_types))
        if not codes:
            return {}

        prefecture = draft.address.prefecture.strip()
        city = draft.address.city.strip()

        options, levels, allowed = await asyncio.gather(
            self._call("master_data", lambda: self._lookup_options(codes)),
            self._call("inventory", lambda: self.inventory.check_levels(codes)),
            self._call("region", lambda: self.region.check(prefecture, city, codes)),
        )

        errors: Dict[str, str] = {}

        if options is None:
            for code in codes:
                errors.setdefault(option_error_key(code), MSG_MASTER_DATA_UNAVAILABLE)
        else:
            for code, option in zip(codes, options):
                if option is None or not option.active:
                    errors.setdefault(option_error_key(code), MSG_OPTION_WITHDRAWN)

        if levels is None:
            for code in codes:
                errors.setdefault(option_error_key(code), MSG_INVENTORY_UNAVAILABLE)
        else:
            for code in codes:
                if levels.get(code, 0) <= 0:
                    errors.setdefault(option_error_key(code), MSG_OUT_OF_STOCK)

        if allowed is None:
            for code in codes:
                errors.setdefault(option_error_key(code), MSG_REGION_UNAVAILABLE)
        else:
            for code in codes:
                if allowed.get(code) is not True:
                    errors.setdefault(option_error_key(code), MSG_REGION_RESTRICTED)

        if errors:
            logger.info("Business-rule stage rejected codes=%s", sorted(errors))
        return errors
