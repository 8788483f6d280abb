"""
SubmissionOrchestrator tests — autosave, confirmation and idempotent finalization.

Groups:
  1. Draft loop (save / get / discard)
  2. Confirm
  3. Finalize — success, replay, concurrency
  4. Finalize — rejections keep the draft
  5. Autosave racing a finalize in flight
"""
from __future__ import annotations

import asyncio
from typing import Dict, Sequence

import pytest

from intake.container import build_in_memory_container
from intake.errors import SessionNotFoundError
from intake.external.inventory import StaticInventoryProvider
from intake.external.services import ExternalServices
from intake.registration.business_rules import option_error_key
from intake.registration.pipeline import ValidationStage
from intake.registration.schemas import SubmissionState
from intake.tests.demo_drafts import VALID_DRAFT, draft, draft_without


class GatedInventory:
    """Holds every stock lookup until the test releases it."""

    def __init__(self, levels: Dict[str, int]) -> None:
        self.levels = levels
        self.entered = asyncio.Event()
        self.release = asyncio.Event()

    async def check_levels(self, codes: Sequence[str]) -> Dict[str, int]:
        self.entered.set()
        await self.release.wait()
        return {code: self.levels.get(code, 0) for code in codes}


@pytest.fixture
def orchestrator(container):
    return container.orchestrator


@pytest.fixture
def registrations(container):
    return container.orchestrator.registrations


# ===========================================================================
# GROUP 1: Draft loop
# ===========================================================================

@pytest.mark.asyncio
async def test_save_draft_creates_session_even_when_invalid(orchestrator) -> None:
    outcome = await orchestrator.save_draft(None, {"last_name": "山田"})
    assert outcome.created
    assert outcome.session.state is SubmissionState.draft
    assert not outcome.validation.valid
    assert outcome.session.payload["last_name"] == "山田"


@pytest.mark.asyncio
async def test_save_draft_normalizes_to_known_fields(orchestrator) -> None:
    outcome = await orchestrator.save_draft(None, {"last_name": "山田", "unexpected": "x"})
    assert "unexpected" not in outcome.session.payload
    assert outcome.session.payload["option_types"] == []


@pytest.mark.asyncio
async def test_save_draft_overwrites_existing(orchestrator) -> None:
    created = await orchestrator.save_draft(None, draft_without("city"))
    sid = created.session.session_id

    outcome = await orchestrator.save_draft(sid, VALID_DRAFT)

    assert not outcome.created
    assert outcome.validation.valid
    assert (await orchestrator.get_draft(sid)).payload == VALID_DRAFT


@pytest.mark.asyncio
async def test_save_draft_to_unknown_session_raises(orchestrator) -> None:
    with pytest.raises(SessionNotFoundError):
        await orchestrator.save_draft("missing", VALID_DRAFT)


@pytest.mark.asyncio
async def test_discard_removes_session(orchestrator) -> None:
    sid = (await orchestrator.save_draft(None, VALID_DRAFT)).session.session_id
    await orchestrator.discard(sid)
    with pytest.raises(SessionNotFoundError):
        await orchestrator.get_draft(sid)


@pytest.mark.asyncio
async def test_validate_persists_nothing(orchestrator, container) -> None:
    result = await orchestrator.validate(VALID_DRAFT, include_business_rules=True)
    assert result.valid
    assert len(container.sessions) == 0


# ===========================================================================
# GROUP 2: Confirm
# ===========================================================================

@pytest.mark.asyncio
async def test_confirm_clean_draft_moves_to_pending(orchestrator) -> None:
    sid = (await orchestrator.save_draft(None, VALID_DRAFT)).session.session_id
    outcome = await orchestrator.confirm(sid)
    assert outcome.session.state is SubmissionState.pending_confirmation
    assert (await orchestrator.get_draft(sid)).state is SubmissionState.pending_confirmation


@pytest.mark.asyncio
async def test_confirm_invalid_draft_stays_draft(orchestrator) -> None:
    sid = (await orchestrator.save_draft(None, draft(email_confirmation="x@example.com"))).session.session_id
    outcome = await orchestrator.confirm(sid)
    assert outcome.session.state is SubmissionState.draft
    assert outcome.validation.failed_stage is ValidationStage.cross_field


@pytest.mark.asyncio
async def test_editing_after_confirm_returns_to_draft(orchestrator) -> None:
    sid = (await orchestrator.save_draft(None, VALID_DRAFT)).session.session_id
    await orchestrator.confirm(sid)
    outcome = await orchestrator.save_draft(sid, draft(city="港区"))
    assert outcome.session.state is SubmissionState.draft


# ===========================================================================
# GROUP 3: Finalize success, replay and concurrency
# ===========================================================================

@pytest.mark.asyncio
async def test_finalize_creates_registration_and_deletes_session(orchestrator, registrations) -> None:
    sid = (await orchestrator.save_draft(None, VALID_DRAFT)).session.session_id

    outcome = await orchestrator.finalize(sid)

    assert outcome.finalized
    assert not outcome.replayed
    assert outcome.registration.submission_key == sid
    assert outcome.registration.submission.plan.option_types == ["AA", "AB"]
    assert len(registrations) == 1
    with pytest.raises(SessionNotFoundError):
        await orchestrator.get_draft(sid)


@pytest.mark.asyncio
async def test_finalize_retry_returns_same_registration(orchestrator, registrations) -> None:
    sid = (await orchestrator.save_draft(None, VALID_DRAFT)).session.session_id
    first = await orchestrator.finalize(sid)

    second = await orchestrator.finalize(sid)

    assert second.finalized
    assert second.replayed
    assert second.registration.registration_id == first.registration.registration_id
    assert len(registrations) == 1


@pytest.mark.asyncio
async def test_concurrent_finalize_creates_one_registration(orchestrator, registrations) -> None:
    sid = (await orchestrator.save_draft(None, VALID_DRAFT)).session.session_id

    outcomes = await asyncio.gather(*(orchestrator.finalize(sid) for _ in range(5)))

    assert all(o.finalized for o in outcomes)
    assert len({o.registration.registration_id for o in outcomes}) == 1
    assert sum(not o.replayed for o in outcomes) == 1
    assert len(registrations) == 1
    assert orchestrator._locks == {}


@pytest.mark.asyncio
async def test_finalize_unknown_session_raises(orchestrator) -> None:
    with pytest.raises(SessionNotFoundError):
        await orchestrator.finalize("missing")
    assert orchestrator._locks == {}


@pytest.mark.asyncio
async def test_finalize_expired_session_raises(orchestrator, clock, container) -> None:
    sid = (await orchestrator.save_draft(None, VALID_DRAFT)).session.session_id
    clock.advance(container.settings.session_ttl_seconds)
    with pytest.raises(SessionNotFoundError):
        await orchestrator.finalize(sid)


# ===========================================================================
# GROUP 4: Finalize rejections keep the draft
# ===========================================================================

@pytest.mark.asyncio
async def test_finalize_invalid_draft_returns_validation_errors(orchestrator, registrations) -> None:
    sid = (await orchestrator.save_draft(None, draft_without("banchi"))).session.session_id

    outcome = await orchestrator.finalize(sid)

    assert not outcome.finalized
    assert outcome.state is SubmissionState.draft
    assert outcome.validation.failed_stage is ValidationStage.syntax
    assert list(outcome.validation.field_errors) == ["banchi"]
    assert len(registrations) == 0
    assert (await orchestrator.get_draft(sid)).state is SubmissionState.draft


@pytest.mark.asyncio
async def test_business_rule_failure_reverts_to_draft_and_keeps_values(test_settings, clock) -> None:
    external = ExternalServices(inventory=StaticInventoryProvider({"AA": 0, "AB": 5}))
    container = build_in_memory_container(test_settings, clock, external=external)
    orchestrator = container.orchestrator
    sid = (await orchestrator.save_draft(None, VALID_DRAFT)).session.session_id
    await orchestrator.confirm(sid)

    outcome = await orchestrator.finalize(sid)

    assert not outcome.finalized
    assert outcome.validation.failed_stage is ValidationStage.business_rules
    assert list(outcome.validation.field_errors) == [option_error_key("AA")]
    stored = await orchestrator.get_draft(sid)
    assert stored.state is SubmissionState.draft
    assert stored.payload == VALID_DRAFT
    assert len(orchestrator.registrations) == 0


@pytest.mark.asyncio
async def test_finalize_succeeds_after_fixing_rejected_options(test_settings, clock) -> None:
    external = ExternalServices(inventory=StaticInventoryProvider({"AA": 0, "AB": 5}))
    container = build_in_memory_container(test_settings, clock, external=external)
    orchestrator = container.orchestrator
    sid = (await orchestrator.save_draft(None, VALID_DRAFT)).session.session_id
    assert not (await orchestrator.finalize(sid)).finalized

    await orchestrator.save_draft(sid, draft(option_types=["AB"]))
    outcome = await orchestrator.finalize(sid)

    assert outcome.finalized
    assert outcome.registration.submission.plan.option_types == ["AB"]


# ===========================================================================
# GROUP 5: Autosave racing a finalize in flight
# ===========================================================================

async def _start_finalize_and_autosave(orchestrator, inventory: GatedInventory):
    sid = (await orchestrator.save_draft(None, VALID_DRAFT)).session.session_id
    finalize_task = asyncio.create_task(orchestrator.finalize(sid))
    await inventory.entered.wait()
    save_task = asyncio.create_task(orchestrator.save_draft(sid, draft(building="NEW BUILDING")))
    await asyncio.sleep(0)
    assert not save_task.done()
    inventory.release.set()
    return sid, finalize_task, save_task


@pytest.mark.asyncio
async def test_autosave_during_rejected_finalize_keeps_newer_values(test_settings, clock) -> None:
    inventory = GatedInventory({"AA": 0, "AB": 5})
    container = build_in_memory_container(test_settings, clock, external=ExternalServices(inventory=inventory))
    orchestrator = container.orchestrator

    sid, finalize_task, save_task = await _start_finalize_and_autosave(orchestrator, inventory)
    outcome = await finalize_task
    await save_task

    assert not outcome.finalized
    stored = await orchestrator.get_draft(sid)
    assert stored.payload["building"] == "NEW BUILDING"
    assert stored.state is SubmissionState.draft
    assert orchestrator._locks == {}


@pytest.mark.asyncio
async def test_autosave_after_successful_finalize_finds_no_session(test_settings, clock) -> None:
    inventory = GatedInventory({"AA": 5, "AB": 5})
    container = build_in_memory_container(test_settings, clock, external=ExternalServices(inventory=inventory))
    orchestrator = container.orchestrator

    sid, finalize_task, save_task = await _start_finalize_and_autosave(orchestrator, inventory)
    outcome = await finalize_task

    assert outcome.finalized
    assert outcome.registration.submission.address.building == ""
    with pytest.raises(SessionNotFoundError):
        await save_task
    assert len(orchestrator.registrations) == 1
