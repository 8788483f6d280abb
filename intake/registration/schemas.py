"""
schemas.py — Registration data contracts (pydantic v2).

Defines:
  - Field-name constants for the flat wire form of a draft
  - DraftSubmission and its nested groups (name, phone, postal code, address, plan)
  - SubmissionState enum (the orchestrator state machine)
  - ValidateRequest / FinalizeRequest request bodies

The wizard sends and stores a FLAT mapping (field name → string, plus the
option_types list). DraftSubmission is the grouped view of the same data.
from_flat() / to_flat() are exact inverses over the known field set, so a
draft can be parsed, stored and re-parsed without drift.
"""
from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Mapping

from pydantic import BaseModel, ConfigDict, Field


# ---------------------------------------------------------------------------
# Flat field names, shared with the wizard frontend
# ---------------------------------------------------------------------------
LAST_NAME = "last_name"
FIRST_NAME = "first_name"
LAST_NAME_KANA = "last_name_kana"
FIRST_NAME_KANA = "first_name_kana"
PHONE1 = "phone1"
PHONE2 = "phone2"
PHONE3 = "phone3"
POSTAL_CODE1 = "postal_code1"
POSTAL_CODE2 = "postal_code2"
PREFECTURE = "prefecture"
CITY = "city"
TOWN = "town"
CHOME = "chome"
BANCHI = "banchi"
GO = "go"
BUILDING = "building"
ROOM = "room"
EMAIL = "email"
EMAIL_CONFIRMATION = "email_confirmation"
PLAN_TYPE = "plan_type"
OPTION_TYPES = "option_types"


class SubmissionState(str, Enum):
    draft = "draft"
    pending_confirmation = "pending_confirmation"
    finalized = "finalized"


# ---------------------------------------------------------------------------
# Grouped view of a draft
# ---------------------------------------------------------------------------

class PersonName(BaseModel):
    last_name: str = ""
    first_name: str = ""
    last_name_kana: str = ""
    first_name_kana: str = ""


class PhoneNumber(BaseModel):
    """Three-part phone number: area code, exchange, subscriber number."""

    area: str = ""
    exchange: str = ""
    subscriber: str = ""

    @property
    def digits(self) -> str:
        return f"{self.area}{self.exchange}{self.subscriber}"

    def formatted(self) -> str:
        return f"{self.area}-{self.exchange}-{self.subscriber}"


class PostalCode(BaseModel):
    """Two-part postal code: 3 digits + 4 digits."""

    first: str = ""
    second: str = ""

    @property
    def digits(self) -> str:
        return f"{self.first}{self.second}"

    def formatted(self) -> str:
        return f"{self.first}-{self.second}"


class Address(BaseModel):
    prefecture: str = ""
    city: str = ""
    town: str = ""
    chome: str = ""
    banchi: str = ""
    go: str = ""
    building: str = ""
    room: str = ""

    def full_address(self) -> str:
        """Single-line address in the order it is written on an envelope."""
        address = self.prefecture + self.city + self.town + self.chome + self.banchi
        if self.go:
            address += "-" + self.go
        if self.building:
            address += " " + self.building
        if self.room:
            address += " " + self.room
        return address


class PlanSelection(BaseModel):
    plan_type: str = ""
    option_types: List[str] = Field(default_factory=list)


class DraftSubmission(BaseModel):
    """
    In-progress registration payload held in a session.

    Values are kept exactly as typed (no trimming, no case folding) so a
    resumed wizard shows the user what they entered.
    """
    model_config = ConfigDict(frozen=True)

    name: PersonName = Field(default_factory=PersonName)
    phone: PhoneNumber = Field(default_factory=PhoneNumber)
    postal_code: PostalCode = Field(default_factory=PostalCode)
    address: Address = Field(default_factory=Address)
    email: str = ""
    email_confirmation: str = ""
    plan: PlanSelection = Field(default_factory=PlanSelection)

    @classmethod
    def from_flat(cls, fields: Mapping[str, Any]) -> "DraftSubmission":
        """Build the grouped view from the flat wire mapping. Unknown keys are dropped."""
        get = lambda key: _as_text(fields.get(key))  # noqa: E731
        return cls(
            name=PersonName(
                last_name=get(LAST_NAME),
                first_name=get(FIRST_NAME),
                last_name_kana=get(LAST_NAME_KANA),
                first_name_kana=get(FIRST_NAME_KANA),
            ),
            phone=PhoneNumber(area=get(PHONE1), exchange=get(PHONE2), subscriber=get(PHONE3)),
            postal_code=PostalCode(first=get(POSTAL_CODE1), second=get(POSTAL_CODE2)),
            address=Address(
                prefecture=get(PREFECTURE),
                city=get(CITY),
                town=get(TOWN),
                chome=get(CHOME),
                banchi=get(BANCHI),
                go=get(GO),
                building=get(BUILDING),
                room=get(ROOM),
            ),
            email=get(EMAIL),
            email_confirmation=get(EMAIL_CONFIRMATION),
            plan=PlanSelection(
                plan_type=get(PLAN_TYPE),
                option_types=_as_code_list(fields.get(OPTION_TYPES)),
            ),
        )

    def to_flat(self) -> Dict[str, Any]:
        """Flat wire mapping containing every known field."""
        return {
            LAST_NAME: self.name.last_name,
            FIRST_NAME: self.name.first_name,
            LAST_NAME_KANA: self.name.last_name_kana,
            FIRST_NAME_KANA: self.name.first_name_kana,
            PHONE1: self.phone.area,
            PHONE2: self.phone.exchange,
            PHONE3: self.phone.subscriber,
            POSTAL_CODE1: self.postal_code.first,
            POSTAL_CODE2: self.postal_code.second,
            PREFECTURE: self.address.prefecture,
            CITY: self.address.city,
            TOWN: self.address.town,
            CHOME: self.address.chome,
            BANCHI: self.address.banchi,
            GO: self.address.go,
            BUILDING: self.address.building,
            ROOM: self.address.room,
            EMAIL: self.email,
            EMAIL_CONFIRMATION: self.email_confirmation,
            PLAN_TYPE: self.plan.plan_type,
            OPTION_TYPES: list(self.plan.option_types),
        }


def _as_text(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, str):
        return value
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return str(value)
    # Structured values are not representable in a text field; the syntactic
    # stage reports them against the raw payload.
    return ""


def _as_code_list(value: Any) -> List[str]:
    if value is None:
        return []
    if isinstance(value, str):
        return [part.strip() for part in value.split(",") if part.strip()]
    if isinstance(value, (list, tuple)):
        return [item for item in value if isinstance(item, str)]
    return []


# ---------------------------------------------------------------------------
# Request bodies
# ---------------------------------------------------------------------------

class ValidateRequest(BaseModel):
    """Body of POST /api/v1/registrations/validate."""
    model_config = ConfigDict(extra="forbid")

    user_data: Dict[str, Any] = Field(..., description="Flat draft mapping to validate")
    include_business_rules: bool = Field(
        default=False,
        description="Also run the external business-rule stage (inventory, region, master data).",
    )


class FinalizeRequest(BaseModel):
    """Body of POST /api/v1/registrations."""
    model_config = ConfigDict(extra="forbid")

    session_id: str = Field(..., min_length=1, max_length=255)


class Registration(BaseModel):
    """A finalized registration. submission_key is the session id it was finalized from."""
    model_config = ConfigDict(frozen=True)

    registration_id: str
    submission_key: str
    submission: DraftSubmission
    created_at: datetime

    def to_public(self) -> Dict[str, Any]:
        return {
            "registration_id": self.registration_id,
            "state": SubmissionState.finalized.value,
            "plan_type": self.submission.plan.plan_type,
            "option_types": list(self.submission.plan.option_types),
            "created_at": self.created_at.isoformat(),
        }
