"""
Syntactic (stage 1) and cross-field (stage 2) validation tests.

Groups:
  1. Draft Submission flat ↔ grouped conversion
  2. Stage 1 — required / length / character class / structure
  3. Stage 2 — email confirmation, phone shape, plan/option compatibility
"""
from __future__ import annotations

import pytest

from intake.registration.schemas import DraftSubmission
from intake.registration.validator import (
    OPTIONAL_FIELDS,
    REQUIRED_FIELDS,
    check_phone_number,
    contains_suspicious_content,
    validate_cross_field,
    validate_syntax,
)
from intake.tests.demo_drafts import VALID_DRAFT, VALID_PLAN_B_DRAFT, draft, draft_without


# ===========================================================================
# GROUP 1: Draft Submission
# ===========================================================================

def test_grouped_view_round_trips_to_flat() -> None:
    submission = DraftSubmission.from_flat(VALID_DRAFT)
    assert submission.to_flat() == VALID_DRAFT
    assert DraftSubmission.from_flat(submission.to_flat()) == submission


def test_grouped_view_exposes_nested_groups() -> None:
    submission = DraftSubmission.from_flat(VALID_DRAFT)
    assert submission.phone.digits == "09012345678"
    assert submission.phone.formatted() == "090-1234-5678"
    assert submission.postal_code.formatted() == "100-0001"
    assert submission.address.full_address() == "東京都千代田区千代田1丁目1-1"
    assert submission.plan.option_types == ["AA", "AB"]


def test_partial_draft_fills_missing_fields_with_empty_strings() -> None:
    flat = DraftSubmission.from_flat({"last_name": "山田", "wizard_step": 2}).to_flat()
    assert flat["last_name"] == "山田"
    assert flat["city"] == ""
    assert flat["option_types"] == []
    assert "wizard_step" not in flat


def test_comma_separated_option_string_is_accepted() -> None:
    submission = DraftSubmission.from_flat(draft(option_types="AA, AB"))
    assert submission.plan.option_types == ["AA", "AB"]


# ===========================================================================
# GROUP 2: Stage 1, syntactic
# ===========================================================================

def test_valid_draft_has_no_syntax_errors() -> None:
    assert validate_syntax(VALID_DRAFT) == {}
    assert validate_syntax(VALID_PLAN_B_DRAFT) == {}


@pytest.mark.parametrize("field", REQUIRED_FIELDS)
def test_omitting_one_required_field_yields_exactly_that_error(field: str) -> None:
    errors = validate_syntax(draft_without(field))
    assert list(errors) == [field]


@pytest.mark.parametrize("field", REQUIRED_FIELDS)
def test_blank_required_field_is_missing(field: str) -> None:
    errors = validate_syntax(draft(**{field: "   "}))
    assert list(errors) == [field]
    assert "required" in errors[field]


@pytest.mark.parametrize("field", OPTIONAL_FIELDS)
def test_optional_fields_may_be_absent(field: str) -> None:
    assert validate_syntax(draft_without(field)) == {}


def test_optional_field_is_still_length_checked() -> None:
    errors = validate_syntax(draft(building="ビ" * 101))
    assert list(errors) == ["building"]


def test_optional_field_is_still_checked_for_markup() -> None:
    errors = validate_syntax(draft(room="<script>alert(1)</script>"))
    assert list(errors) == ["room"]


def test_length_is_counted_in_characters_not_bytes() -> None:
    # 15 multi-byte characters (45 bytes in UTF-8) are within the limit.
    assert validate_syntax(draft(last_name="山" * 15)) == {}
    errors = validate_syntax(draft(last_name="山" * 16))
    assert list(errors) == ["last_name"]


@pytest.mark.parametrize("value", ["やまだ", "yamada", "ﾔﾏﾀﾞ", "山田"])
def test_kana_fields_require_full_width_katakana(value: str) -> None:
    errors = validate_syntax(draft(last_name_kana=value))
    assert list(errors) == ["last_name_kana"]


def test_kana_allows_long_vowel_mark_and_spaces() -> None:
    assert validate_syntax(draft(first_name_kana="ジョー ジ")) == {}


@pytest.mark.parametrize(
    "first, second, ok",
    [
        ("100", "0001", True),
        ("10", "0001", False),
        ("1000", "0001", False),
        ("100", "001", False),
        ("1a0", "0001", False),
        ("100", "000x", False),
        ("１００", "０００１", False),     # full-width digits
        ("١٠٠", "٠٠٠١", False),           # Arabic-Indic digits
    ],
)
def test_postal_code_structure(first: str, second: str, ok: bool) -> None:
    errors = validate_syntax(draft(postal_code1=first, postal_code2=second))
    assert (errors == {}) is ok


@pytest.mark.parametrize(
    "phone1, phone2, phone3, bad_field",
    [
        ("0", "1234", "5678", "phone1"),
        ("012345", "1234", "5678", "phone1"),
        ("090", "12345", "5678", "phone2"),
        ("090", "1234", "567", "phone3"),
        ("09a", "1234", "5678", "phone1"),
        ("090", "１２３４", "5678", "phone2"),
    ],
)
def test_phone_part_structure(phone1: str, phone2: str, phone3: str, bad_field: str) -> None:
    errors = validate_syntax(draft(phone1=phone1, phone2=phone2, phone3=phone3))
    assert list(errors) == [bad_field]


@pytest.mark.parametrize("email", ["taro", "taro@", "taro@example", "ta ro@example.com"])
def test_email_format(email: str) -> None:
    errors = validate_syntax(draft(email=email, email_confirmation=email))
    assert list(errors) == ["email"]


@pytest.mark.parametrize(
    "value",
    ["<b>", "Tom & Jerry", 'say "hi"', "javascript:alert(1)", "onload = x", "eval (x)", "a\\b"],
)
def test_markup_and_script_patterns_are_rejected(value: str) -> None:
    assert contains_suspicious_content(value)
    errors = validate_syntax(draft(city=value))
    assert list(errors) == ["city"]


def test_non_text_value_is_reported_against_its_field() -> None:
    errors = validate_syntax(draft(banchi={"nested": "object"}))
    assert list(errors) == ["banchi"]


def test_unknown_plan_is_rejected() -> None:
    errors = validate_syntax(draft(plan_type="C"))
    assert list(errors) == ["plan_type"]


def test_unknown_or_duplicate_option_codes_are_rejected() -> None:
    assert list(validate_syntax(draft(option_types=["AA", "ZZ"]))) == ["option_types"]
    assert list(validate_syntax(draft(option_types=["AA", "AA"]))) == ["option_types"]
    assert list(validate_syntax(draft(option_types=[1, 2]))) == ["option_types"]


def test_empty_option_list_is_valid() -> None:
    assert validate_syntax(draft(option_types=[])) == {}
    assert validate_syntax(draft_without("option_types")) == {}


def test_every_field_error_is_collected() -> None:
    errors = validate_syntax({})
    assert set(errors) == set(REQUIRED_FIELDS)


# ===========================================================================
# GROUP 3: Stage 2, cross-field
# ===========================================================================

def _cross(**overrides) -> dict:
    return validate_cross_field(DraftSubmission.from_flat(draft(**overrides)))


def test_valid_draft_has_no_cross_field_errors() -> None:
    assert _cross() == {}


def test_identical_email_and_confirmation_pass() -> None:
    assert "email_confirmation" not in _cross(email="a@example.com", email_confirmation="a@example.com")


def test_mismatched_confirmation_is_keyed_only_to_confirmation_field() -> None:
    errors = _cross(email="a@example.com", email_confirmation="b@example.com")
    assert list(errors) == ["email_confirmation"]


@pytest.mark.parametrize("confirmation", ["a@example.com ", " a@example.com", "A@example.com"])
def test_confirmation_must_match_character_for_character(confirmation: str) -> None:
    errors = _cross(email="a@example.com", email_confirmation=confirmation)
    assert list(errors) == ["email_confirmation"]


@pytest.mark.parametrize(
    "parts, ok",
    [
        (("090", "1234", "5678"), True),    # mobile
        (("080", "1234", "5678"), True),
        (("070", "1234", "5678"), True),
        (("03", "1234", "5678"), True),     # 10-digit landline
        (("0120", "123", "4567"), False),   # toll-free
        (("0800", "123", "4567"), False),
        (("0570", "123", "4567"), False),
        (("0990", "123", "4567"), False),
        (("050", "1234", "5678"), False),   # 11 digits outside the mobile set
        (("00", "1234", "5678"), False),    # landline cannot start 00
        (("03", "123", "5678"), False),     # 9 digits
        (("090", "１２３４", "５６７８"), False),  # full-width digits
        (("٠٩٠", "١٢٣٤", "٥٦٧٨"), False),  # Arabic-Indic digits
    ],
)
def test_phone_number_shape(parts: tuple, ok: bool) -> None:
    assert (check_phone_number(*parts) is None) is ok
    errors = _cross(phone1=parts[0], phone2=parts[1], phone3=parts[2])
    assert ("phone" not in errors) is ok


def test_toll_free_prefix_wins_over_otherwise_valid_shape() -> None:
    # 0120 + 6 digits is a valid 10-digit landline shape, still rejected.
    assert check_phone_number("0120", "12", "3456") == "Toll-free numbers cannot be registered"


@pytest.mark.parametrize(
    "plan, options, ok",
    [
        ("A", ["AA"], True),
        ("A", ["AA", "AB"], True),
        ("B", ["BB", "AB"], True),
        ("A", ["BB"], False),
        ("B", ["AA", "AB"], False),
        ("A", [], True),
    ],
)
def test_plan_option_compatibility(plan: str, options: list, ok: bool) -> None:
    errors = _cross(plan_type=plan, option_types=options)
    assert ("option_types" not in errors) is ok


def test_cross_field_errors_are_all_collected() -> None:
    errors = _cross(email_confirmation="other@example.com", phone1="0120", phone2="123", option_types=["BB"])
    assert set(errors) == {"email_confirmation", "phone", "option_types"}
