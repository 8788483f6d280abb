"""
Demo drafts for intake tests.

VALID_DRAFT passes all three stages against the default static collaborators:
plan A with AA + AB in Tokyo (AA and AB are both in stock and allowed there).
"""
from __future__ import annotations

from typing import Any

VALID_DRAFT: dict[str, Any] = dict(
    last_name="山田",
    first_name="太郎",
    last_name_kana="ヤマダ",
    first_name_kana="タロウ",
    phone1="090",
    phone2="1234",
    phone3="5678",
    postal_code1="100",
    postal_code2="0001",
    prefecture="東京都",
    city="千代田区",
    town="千代田",
    chome="1丁目",
    banchi="1",
    go="1",
    building="",
    room="",
    email="taro.yamada@example.com",
    email_confirmation="taro.yamada@example.com",
    plan_type="A",
    option_types=["AA", "AB"],
)

# Plan B with its own option, in a prefecture where BB may be offered.
VALID_PLAN_B_DRAFT: dict[str, Any] = dict(
    VALID_DRAFT,
    plan_type="B",
    option_types=["BB", "AB"],
    postal_code1="231",
    postal_code2="0023",
    prefecture="神奈川県",
    city="横浜市中区",
    town="山下町",
)


def draft(**overrides: Any) -> dict[str, Any]:
    """Copy of VALID_DRAFT with overrides applied."""
    data = dict(VALID_DRAFT)
    data["option_types"] = list(VALID_DRAFT["option_types"])
    data.update(overrides)
    return data


def draft_without(field: str) -> dict[str, Any]:
    data = draft()
    del data[field]
    return data
