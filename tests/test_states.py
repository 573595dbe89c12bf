from __future__ import annotations

from datetime import datetime, timezone

from salonbot.models import Awaiting, ConversationState
from salonbot.states import (
    AwaitingDetails,
    AwaitingName,
    AwaitingSalon,
    AwaitingSlot,
    Initial,
    stage_of,
)


WHEN = datetime(2030, 5, 10, 9, 30, tzinfo=timezone.utc)


def test_no_record_or_no_location_is_initial():
    assert isinstance(stage_of(None), Initial)
    assert isinstance(stage_of(ConversationState(name="Alex")), Initial)


def test_location_only_awaits_details():
    stage = stage_of(ConversationState(latitude=1.0, longitude=2.0, awaiting=Awaiting.DETAILS))
    assert stage == AwaitingDetails(1.0, 2.0)


def test_missing_name_awaits_name():
    state = ConversationState(
        latitude=1.0, longitude=2.0, awaiting=Awaiting.NAME, service="shave", date=WHEN
    )
    assert stage_of(state) == AwaitingName(1.0, 2.0, "shave", WHEN)


def test_complete_draft_awaits_salon_then_slot():
    state = ConversationState(
        latitude=1.0, longitude=2.0, awaiting=Awaiting.DETAILS, service="shave", date=WHEN, name="Alex"
    )
    assert stage_of(state) == AwaitingSalon(1.0, 2.0, "shave", WHEN, "Alex")

    chosen = state.model_copy(update={"salon_id": 3})
    assert stage_of(chosen) == AwaitingSlot(1.0, 2.0, "shave", WHEN, "Alex", 3)
