"""
Plan / option master data.

PLAN_OPTION_COMPATIBILITY is the fixed table the cross-field stage checks
against. StaticMasterDataCatalog serves the same data through the
MasterDataCatalog interface; the business-rule stage asks it whether an
option still exists and is active.
"""
from __future__ import annotations

from typing import Dict, FrozenSet, Iterable, List, Optional

from intake.external.protocols import OptionInfo, PlanInfo

PLAN_A = "A"
PLAN_B = "B"
VALID_PLANS: FrozenSet[str] = frozenset({PLAN_A, PLAN_B})

OPTION_AA = "AA"
OPTION_BB = "BB"
OPTION_AB = "AB"
KNOWN_OPTIONS: FrozenSet[str] = frozenset({OPTION_AA, OPTION_BB, OPTION_AB})

PLAN_OPTION_COMPATIBILITY: Dict[str, FrozenSet[str]] = {
    PLAN_A: frozenset({OPTION_AA, OPTION_AB}),
    PLAN_B: frozenset({OPTION_BB, OPTION_AB}),
}

DEFAULT_PLANS: List[PlanInfo] = [
    PlanInfo(code=PLAN_A, name="Aプラン", description="基本プランです。標準的なサービスをご利用いただけます。"),
    PlanInfo(code=PLAN_B, name="Bプラン", description="プレミアムプランです。より充実したサービスをご利用いただけます。"),
]

DEFAULT_OPTIONS: List[OptionInfo] = [
    OptionInfo(code=OPTION_AA, name="AAオプション", description="Aプラン専用のオプションサービス", allowed_plans=[PLAN_A]),
    OptionInfo(code=OPTION_BB, name="BBオプション", description="Bプラン専用のオプションサービス", allowed_plans=[PLAN_B]),
    OptionInfo(code=OPTION_AB, name="ABオプション", description="A・B両プラン共通のオプションサービス", allowed_plans=[PLAN_A, PLAN_B]),
]


def is_compatible(plan_type: str, option_code: str) -> bool:
    return option_code in PLAN_OPTION_COMPATIBILITY.get(plan_type, frozenset())


class StaticMasterDataCatalog:
    """In-process catalog. Options can be deactivated at runtime to model master-data changes."""

    name = "master_data"

    def __init__(
        self,
        plans: Optional[Iterable[PlanInfo]] = None,
        options: Optional[Iterable[OptionInfo]] = None,
    ) -> None:
        self._plans = list(DEFAULT_PLANS if plans is None else plans)
        self._options: Dict[str, OptionInfo] = {
            o.code: o for o in (DEFAULT_OPTIONS if options is None else options)
        }

    async def get_option(self, code: str) -> Optional[OptionInfo]:
        return self._options.get(code)

    async def list_plans(self) -> List[PlanInfo]:
        return list(self._plans)

    async def list_options(self, plan_type: Optional[str] = None) -> List[OptionInfo]:
        options = [o for o in self._options.values() if o.active]
        if plan_type is not None:
            options = [o for o in options if plan_type in o.allowed_plans]
        return options

    def set_active(self, code: str, active: bool) -> None:
        option = self._options[code]
        self._options[code] = option.model_copy(update={"active": active})

    async def ping(self) -> bool:
        return True
