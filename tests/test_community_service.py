"""Unit tests for endorsements and event RSVPs."""
import pytest
import uuid
from datetime import datetime, timedelta, timezone
from types import SimpleNamespace
from unittest.mock import MagicMock, AsyncMock

from redplad.errors import BadRequestError, ConflictError, NotFoundError
from redplad.models.community import CulturalEvent
from redplad.services.community_service import (
    attendance_delta,
    create_endorsement,
    event_detail,
    my_events,
    set_attendance,
    visible_to,
)

NOW = datetime(2025, 6, 15, 12, 0, tzinfo=timezone.utc)


def _result(value):
    result = MagicMock()
    result.scalar_one_or_none.return_value = value
    return result


def _rows(values):
    result = MagicMock()
    result.scalars.return_value.all.return_value = values
    return result


def _event(organizer_id=None, **overrides):
    data = {
        "id": uuid.uuid4(),
        "organizer_id": organizer_id or uuid.uuid4(),
        "title": "Owambe in Peckham",
        "description": "Aso-ebi optional, dancing compulsory",
        "event_type": "cultural",
        "event_date": NOW + timedelta(days=7),
        "location_name": "Community hall",
        "max_attendees": 2,
        "current_attendees": 0,
        "is_public": True,
    }
    data.update(overrides)
    return CulturalEvent(**data)


@pytest.fixture
def db():
    session = AsyncMock()
    session.add = MagicMock()
    session.info = {}
    return session


class TestAttendanceDelta:
    """Only ``going`` RSVPs count toward current_attendees."""

    @pytest.mark.parametrize(
        "previous, new, expected",
        [
            (None, "going", 1),
            (None, "maybe", 0),
            ("maybe", "going", 1),
            ("not_going", "going", 1),
            ("going", "going", 0),
            ("going", "maybe", -1),
            ("going", "not_going", -1),
            ("maybe", "not_going", 0),
        ],
    )
    def test_delta(self, previous, new, expected):
        assert attendance_delta(previous, new) == expected


class TestSetAttendance:
    """RSVP transitions, capacity and visibility."""

    @pytest.mark.asyncio
    async def test_first_going_rsvp_adds_attendee(self, db, sample_user_id):
        event = _event(current_attendees=1)
        db.execute.side_effect = [_result(event), _result(None)]

        result = await set_attendance(sample_user_id, event.id, "going", db, now=NOW)

        assert result.current_attendees == 2
        added = [type(call.args[0]).__name__ for call in db.add.call_args_list]
        assert added == ["EventAttendee", "UserActivity"]

    @pytest.mark.asyncio
    async def test_switch_to_going_on_full_event(self, db, sample_user_id):
        event = _event(current_attendees=2)
        attendee = SimpleNamespace(attendance_status="maybe")
        db.execute.side_effect = [_result(event), _result(attendee)]

        with pytest.raises(ConflictError) as exc_info:
            await set_attendance(sample_user_id, event.id, "going", db, now=NOW)

        assert exc_info.value.code == "EVENT_FULL"
        assert exc_info.value.status_code == 409
        assert attendee.attendance_status == "maybe"
        assert event.current_attendees == 2

    @pytest.mark.asyncio
    async def test_going_to_maybe_frees_a_place(self, db, sample_user_id):
        event = _event(current_attendees=2)
        attendee = SimpleNamespace(attendance_status="going")
        db.execute.side_effect = [_result(event), _result(attendee)]

        result = await set_attendance(sample_user_id, event.id, "maybe", db, now=NOW)

        assert result.current_attendees == 1
        assert attendee.attendance_status == "maybe"

    @pytest.mark.asyncio
    async def test_repeat_going_on_full_event_is_allowed(self, db, sample_user_id):
        event = _event(current_attendees=2)
        attendee = SimpleNamespace(attendance_status="going")
        db.execute.side_effect = [_result(event), _result(attendee)]

        result = await set_attendance(sample_user_id, event.id, "going", db, now=NOW)

        assert result.current_attendees == 2

    @pytest.mark.asyncio
    async def test_maybe_on_full_event_is_allowed(self, db, sample_user_id):
        event = _event(current_attendees=2)
        db.execute.side_effect = [_result(event), _result(None)]

        result = await set_attendance(sample_user_id, event.id, "maybe", db, now=NOW)

        assert result.current_attendees == 2

    @pytest.mark.asyncio
    async def test_counter_never_negative(self, db, sample_user_id):
        event = _event(current_attendees=0)
        attendee = SimpleNamespace(attendance_status="going")
        db.execute.side_effect = [_result(event), _result(attendee)]

        result = await set_attendance(sample_user_id, event.id, "not_going", db, now=NOW)

        assert result.current_attendees == 0

    @pytest.mark.asyncio
    async def test_private_event_hidden_from_others(self, db, sample_user_id):
        event = _event(is_public=False)
        db.execute.side_effect = [_result(event)]

        with pytest.raises(NotFoundError) as exc_info:
            await set_attendance(sample_user_id, event.id, "going", db, now=NOW)

        assert exc_info.value.code == "EVENT_NOT_FOUND"
        assert exc_info.value.status_code == 404
        db.add.assert_not_called()

    @pytest.mark.asyncio
    async def test_organizer_can_rsvp_to_private_event(self, db, sample_user_id):
        event = _event(organizer_id=sample_user_id, is_public=False)
        db.execute.side_effect = [_result(event), _result(None)]

        result = await set_attendance(sample_user_id, event.id, "going", db, now=NOW)

        assert result.current_attendees == 1

    @pytest.mark.asyncio
    async def test_past_event_rejected(self, db, sample_user_id):
        event = _event(event_date=NOW - timedelta(hours=1))
        db.execute.side_effect = [_result(event)]

        with pytest.raises(BadRequestError) as exc_info:
            await set_attendance(sample_user_id, event.id, "going", db, now=NOW)

        assert exc_info.value.code == "EVENT_PAST"

    @pytest.mark.asyncio
    async def test_missing_event(self, db, sample_user_id):
        db.execute.side_effect = [_result(None)]
        with pytest.raises(NotFoundError):
            await set_attendance(sample_user_id, uuid.uuid4(), "going", db, now=NOW)


class TestEndorsements:
    """Self and duplicate endorsements are refused."""

    @pytest.mark.asyncio
    async def test_self_endorsement(self, db, sample_user_id):
        with pytest.raises(BadRequestError) as exc_info:
            await create_endorsement(
                sample_user_id, sample_user_id, "character", "Always shows up for people", db
            )
        assert exc_info.value.code == "SELF_ENDORSEMENT"
        assert exc_info.value.status_code == 400
        db.execute.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_unknown_member(self, db, sample_user_id, sample_user_id_b):
        db.execute.side_effect = [_result(None)]
        with pytest.raises(NotFoundError) as exc_info:
            await create_endorsement(
                sample_user_id, sample_user_id_b, "character", "Always shows up for people", db
            )
        assert exc_info.value.code == "USER_NOT_FOUND"

    @pytest.mark.asyncio
    async def test_duplicate_endorsement(self, db, sample_user_id, sample_user_id_b):
        db.execute.side_effect = [_result(sample_user_id_b), _result(uuid.uuid4())]

        with pytest.raises(ConflictError) as exc_info:
            await create_endorsement(
                sample_user_id, sample_user_id_b, "family_values", "Respects the elders", db
            )

        assert exc_info.value.code == "DUPLICATE_ENDORSEMENT"
        assert exc_info.value.status_code == 409
        db.add.assert_not_called()

    @pytest.mark.asyncio
    async def test_endorsement_recorded(self, db, sample_user_id, sample_user_id_b):
        db.execute.side_effect = [_result(sample_user_id_b), _result(None)]

        endorsement = await create_endorsement(
            sample_user_id, sample_user_id_b, "cultural_knowledge", "Knows every Ewe proverb", db
        )

        assert endorsement.endorser_id == sample_user_id
        assert endorsement.endorsed_id == sample_user_id_b
        added = [type(call.args[0]).__name__ for call in db.add.call_args_list]
        assert added == ["Endorsement", "UserActivity"]
        db.refresh.assert_awaited_once()


class TestEventViews:
    """Event detail and the caller's own events."""

    def test_visibility(self, sample_user_id):
        assert visible_to(_event(), sample_user_id)
        assert not visible_to(_event(is_public=False), sample_user_id)
        assert visible_to(_event(organizer_id=sample_user_id, is_public=False), sample_user_id)

    @pytest.mark.asyncio
    async def test_detail_counts_going_and_own_status(self, db, sample_user_id):
        event = _event()
        attendees = [
            SimpleNamespace(user_id=uuid.uuid4(), attendance_status="going"),
            SimpleNamespace(user_id=sample_user_id, attendance_status="maybe"),
            SimpleNamespace(user_id=uuid.uuid4(), attendance_status="going"),
            SimpleNamespace(user_id=uuid.uuid4(), attendance_status="not_going"),
        ]
        db.execute.side_effect = [_result(event), _rows(attendees)]

        detail = await event_detail(sample_user_id, event.id, db)

        assert detail.event is event
        assert detail.attendee_count == 2
        assert detail.user_attendance == "maybe"

    @pytest.mark.asyncio
    async def test_detail_without_rsvp(self, db, sample_user_id):
        db.execute.side_effect = [_result(_event()), _rows([])]
        detail = await event_detail(sample_user_id, uuid.uuid4(), db)
        assert detail.user_attendance is None
        assert detail.attendee_count == 0

    @pytest.mark.asyncio
    async def test_private_detail_hidden(self, db, sample_user_id):
        db.execute.side_effect = [_result(_event(is_public=False))]
        with pytest.raises(NotFoundError):
            await event_detail(sample_user_id, uuid.uuid4(), db)

    @pytest.mark.asyncio
    async def test_my_events_all(self, db, sample_user_id):
        organized = [_event(organizer_id=sample_user_id)]
        attending = [SimpleNamespace(attendance_status="going", event=_event())]
        db.execute.side_effect = [_rows(organized), _rows(attending)]

        mine = await my_events(sample_user_id, db, now=NOW)

        assert mine.organized == organized
        assert mine.attending == attending

    @pytest.mark.asyncio
    async def test_my_events_single_kind(self, db, sample_user_id):
        db.execute.side_effect = [_rows([])]

        mine = await my_events(sample_user_id, db, kind="attending", upcoming=False, now=NOW)

        assert mine.organized == []
        assert db.execute.await_count == 1

    @pytest.mark.asyncio
    async def test_my_events_unknown_kind(self, db, sample_user_id):
        with pytest.raises(BadRequestError):
            await my_events(sample_user_id, db, kind="everything")
