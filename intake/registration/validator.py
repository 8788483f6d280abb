"""
Registration validator — syntactic (stage 1) and cross-field (stage 2) checks.

Both stages are pure functions of the submitted mapping: no I/O, no clock.
Each returns a {field: message} dict that is empty when the stage passes.

Stage 1 looks at one field at a time:
  type (text), required, max length in characters, forbidden markup,
  character class and digit-count structure.
  Every field is checked; a field reports only its first failure.

Stage 2 correlates fields of the same submission:
  1. email == email_confirmation        → error on email_confirmation
  2. phone1+phone2+phone3 shape          → error on phone
       toll-free prefixes are rejected before the shape is looked at
       11 digits: 0[789]0 + 8 digits (mobile)
       10 digits: 0[1-9] + 8 digits   (landline)
  3. every option code is offered for the selected plan → error on option_types

Stage 2 assumes stage 1 passed (values are text, digit fields are digits).
"""
from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from typing import Any, Dict, List, Mapping, Optional, Pattern, Tuple

from intake.registration import schemas as f
from intake.registration.catalog import KNOWN_OPTIONS, VALID_PLANS, is_compatible
from intake.registration.schemas import DraftSubmission

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Patterns
# ---------------------------------------------------------------------------
KATAKANA_RE = re.compile(r"^[ァ-ヶー\s　]+$")
DIGITS_RE = re.compile(r"^[0-9]+$")
EMAIL_RE = re.compile(r"^[a-zA-Z0-9._%+-]+@[a-zA-Z0-9.-]+\.[a-zA-Z]{2,}$")

SUSPICIOUS_CHARS_RE = re.compile(r"[<>&\"'\\]")
SUSPICIOUS_PATTERNS: Tuple[Pattern[str], ...] = tuple(
    re.compile(p, re.IGNORECASE)
    for p in (
        r"<script",
        r"javascript:",
        r"on\w+\s*=",
        r"data:\s*text/html",
        r"vbscript:",
        r"<iframe",
        r"<object",
        r"<embed",
        r"<link",
        r"<meta",
        r"eval\s*\(",
        r"expression\s*\(",
    )
)

TOLL_FREE_PREFIXES: Tuple[str, ...] = ("0120", "0800", "0570", "0990")
MOBILE_RE = re.compile(r"^0[789]0[0-9]{8}$")
LANDLINE_RE = re.compile(r"^0[1-9][0-9]{8}$")

# ---------------------------------------------------------------------------
# Per-field rules
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class FieldRule:
    label: str
    required: bool = True
    max_length: Optional[int] = None
    free_text: bool = True              # subject to the markup check
    pattern: Optional[Pattern[str]] = None
    pattern_message: str = ""
    digit_count: Optional[Tuple[int, int]] = None   # inclusive (min, max) for digit-only fields


def _digits(label: str, low: int, high: int) -> FieldRule:
    return FieldRule(
        label=label,
        free_text=False,
        pattern=DIGITS_RE,
        pattern_message=f"{label} must contain digits only",
        digit_count=(low, high),
    )


_KANA_MESSAGE = "must be written in full-width katakana"

FIELD_RULES: Dict[str, FieldRule] = {
    f.LAST_NAME: FieldRule("Last name", max_length=15),
    f.FIRST_NAME: FieldRule("First name", max_length=15),
    f.LAST_NAME_KANA: FieldRule(
        "Last name (kana)", max_length=15, pattern=KATAKANA_RE,
        pattern_message=f"Last name (kana) {_KANA_MESSAGE}",
    ),
    f.FIRST_NAME_KANA: FieldRule(
        "First name (kana)", max_length=15, pattern=KATAKANA_RE,
        pattern_message=f"First name (kana) {_KANA_MESSAGE}",
    ),
    f.PHONE1: _digits("Area code", 2, 5),
    f.PHONE2: _digits("Exchange", 1, 4),
    f.PHONE3: _digits("Subscriber number", 4, 4),
    f.POSTAL_CODE1: _digits("Postal code (first part)", 3, 3),
    f.POSTAL_CODE2: _digits("Postal code (second part)", 4, 4),
    f.PREFECTURE: FieldRule("Prefecture", max_length=10),
    f.CITY: FieldRule("City", max_length=50),
    f.TOWN: FieldRule("Town", required=False, max_length=50),
    f.CHOME: FieldRule("Chome", required=False, max_length=10),
    f.BANCHI: FieldRule("Banchi", max_length=10),
    f.GO: FieldRule("Go", required=False, max_length=10),
    f.BUILDING: FieldRule("Building", required=False, max_length=100),
    f.ROOM: FieldRule("Room", required=False, max_length=20),
    f.EMAIL: FieldRule(
        "Email address", max_length=256, free_text=False, pattern=EMAIL_RE,
        pattern_message="Email address format is invalid",
    ),
    f.EMAIL_CONFIRMATION: FieldRule("Email confirmation", max_length=256, free_text=False),
    f.PLAN_TYPE: FieldRule("Plan", free_text=False),
}

REQUIRED_FIELDS: Tuple[str, ...] = tuple(name for name, rule in FIELD_RULES.items() if rule.required)
OPTIONAL_FIELDS: Tuple[str, ...] = tuple(name for name, rule in FIELD_RULES.items() if not rule.required)


def contains_suspicious_content(value: str) -> bool:
    if SUSPICIOUS_CHARS_RE.search(value):
        return True
    return any(p.search(value) for p in SUSPICIOUS_PATTERNS)


def _check_field(rule: FieldRule, raw: Any) -> Optional[str]:
    """First failing check for one scalar field, or None."""
    if raw is None:
        raw = ""
    if not isinstance(raw, str):
        return f"{rule.label} must be text"

    value = raw.strip()
    if not value:
        return f"{rule.label} is required" if rule.required else None

    if rule.max_length is not None and len(value) > rule.max_length:
        return f"{rule.label} must be at most {rule.max_length} characters"

    if rule.free_text and contains_suspicious_content(value):
        return f"{rule.label} contains characters that are not allowed"

    if rule.pattern is not None and not rule.pattern.match(value):
        return rule.pattern_message

    if rule.digit_count is not None:
        low, high = rule.digit_count
        if not low <= len(value) <= high:
            if low == high:
                return f"{rule.label} must be exactly {low} digits"
            return f"{rule.label} must be {low}-{high} digits"

    return None


def _check_plan(raw: Any) -> Optional[str]:
    if isinstance(raw, str) and raw.strip() and raw.strip() not in VALID_PLANS:
        return "Selected plan is not valid"
    return None


def _check_options(raw: Any) -> Optional[str]:
    if raw is None:
        return None
    if isinstance(raw, str):
        codes: List[Any] = [c.strip() for c in raw.split(",") if c.strip()]
    elif isinstance(raw, (list, tuple)):
        codes = list(raw)
    else:
        return "Options must be a list of option codes"

    if any(not isinstance(code, str) for code in codes):
        return "Options must be a list of option codes"
    unknown = sorted({code for code in codes if code not in KNOWN_OPTIONS})
    if unknown:
        return f"Unknown option(s): {', '.join(unknown)}"
    if len(set(codes)) != len(codes):
        return "Each option may be selected only once"
    return None


def validate_syntax(fields: Mapping[str, Any]) -> Dict[str, str]:
    """Stage 1. Runs every field rule and returns all field errors."""
    errors: Dict[str, str] = {}
    for name, rule in FIELD_RULES.items():
        message = _check_field(rule, fields.get(name))
        if message is not None:
            errors[name] = message

    if f.PLAN_TYPE not in errors:
        message = _check_plan(fields.get(f.PLAN_TYPE))
        if message is not None:
            errors[f.PLAN_TYPE] = message

    message = _check_options(fields.get(f.OPTION_TYPES))
    if message is not None:
        errors[f.OPTION_TYPES] = message

    if errors:
        logger.debug("Syntax stage failed fields=%s", sorted(errors))
    return errors


# ---------------------------------------------------------------------------
# Stage 2
# ---------------------------------------------------------------------------

def check_phone_number(area: str, exchange: str, subscriber: str) -> Optional[str]:
    number = f"{area.strip()}{exchange.strip()}{subscriber.strip()}"
    if number.startswith(TOLL_FREE_PREFIXES):
        return "Toll-free numbers cannot be registered"
    if len(number) == 11:
        if not MOBILE_RE.match(number):
            return "Mobile phone number format is invalid"
    elif len(number) == 10:
        if not LANDLINE_RE.match(number):
            return "Landline phone number format is invalid"
    else:
        return "Phone number must be 10 or 11 digits"
    return None


def validate_cross_field(draft: DraftSubmission) -> Dict[str, str]:
    """Stage 2. Every cross-field rule runs; all failures are returned."""
    errors: Dict[str, str] = {}

    if draft.email != draft.email_confirmation:
        errors[f.EMAIL_CONFIRMATION] = "Email addresses do not match"

    phone_error = check_phone_number(draft.phone.area, draft.phone.exchange, draft.phone.subscriber)
    if phone_error is not None:
        errors["phone"] = phone_error

    plan_type = draft.plan.plan_type.strip()
    incompatible = [code for code in draft.plan.option_types if not is_compatible(plan_type, code)]
    if incompatible:
        errors[f.OPTION_TYPES] = (
            f"Option(s) {', '.join(incompatible)} are not available with plan {plan_type}"
        )

    if errors:
        logger.debug("Cross-field stage failed fields=%s", sorted(errors))
    return errors
