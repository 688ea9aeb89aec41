"""Tests for nomadic custody changes and location propagation."""

import pytest

from toolshare.errors import InvalidTransitionError, ValidationError
from toolshare.models import BookingStatus, ToolHistoryEntry
from toolshare.services import bookings as booking_service
from toolshare.services import tools as tool_service
from toolshare.services import users as user_service

S = BookingStatus

HOME = (41695384, 2492793)
AWAY = (41400000, 2170000)
ELSEWHERE = (42000000, 3000000)


@pytest.fixture
def nomadic_setup(make_user, make_tool, make_booking):
    owner = make_user(name="Owner", location=HOME)
    requester = make_user(name="Requester", location=AWAY)
    tool = make_tool(owner, is_nomadic=True)
    booking = make_booking(tool, requester, status=S.ACCEPTED)
    return owner, requester, tool, booking


class TestPickupAndReturn:

    def test_pickup_hands_tool_to_requester(self, db, nomadic_setup):
        owner, requester, tool, booking = nomadic_setup

        booking_service.transition_booking(db, owner, booking.id, S.PICKED)
        db.refresh(tool)

        assert tool.actual_holder_id == requester.id
        assert tool.location == AWAY
        assert tool.is_available is False

        entries = db.query(ToolHistoryEntry).filter(ToolHistoryEntry.tool_id == tool.id).all()
        assert len(entries) == 1
        assert entries[0].booking_id == booking.id
        assert entries[0].user_id == requester.id
        assert (entries[0].latitude_micro, entries[0].longitude_micro) == AWAY

    def test_return_keeps_location(self, db, nomadic_setup):
        owner, _, tool, booking = nomadic_setup

        booking_service.transition_booking(db, owner, booking.id, S.PICKED)
        booking_service.transition_booking(db, owner, booking.id, S.RETURNED)
        db.refresh(tool)

        assert tool.actual_holder_id is None
        assert tool.is_available is True
        assert tool.location == AWAY

    def test_stationary_tool_never_moves(self, db, make_user, make_tool, make_booking):
        owner = make_user(location=HOME)
        requester = make_user(location=AWAY)
        tool = make_tool(owner)
        booking = make_booking(tool, requester, status=S.ACCEPTED)

        booking_service.transition_booking(db, owner, booking.id, S.PICKED)
        db.refresh(tool)

        assert tool.actual_holder_id is None
        assert tool.location == HOME
        assert tool.is_available is True
        assert db.query(ToolHistoryEntry).count() == 0

    def test_cancel_leaves_tool_untouched(self, db, nomadic_setup):
        _, requester, tool, booking = nomadic_setup

        booking_service.transition_booking(db, requester, booking.id, S.CANCELLED)
        db.refresh(tool)

        assert tool.is_available is True
        assert tool.actual_holder_id is None
        assert tool.location == HOME

    @pytest.mark.parametrize("target", [S.REJECTED, S.CANCELLED])
    def test_release_keeps_owner_switched_off(self, db, make_user, make_tool, make_booking, target):
        owner = make_user(location=HOME)
        requester = make_user(location=AWAY)
        tool = make_tool(owner, is_nomadic=True)
        booking = make_booking(tool, requester)

        tool_service.update_tool(db, owner, tool.id, {"is_available": False})
        actor = owner if target == S.REJECTED else requester
        booking_service.transition_booking(db, actor, booking.id, target)
        db.refresh(tool)

        assert tool.is_available is False
        assert tool.location == HOME

    def test_pickup_requires_requester_location(self, db, make_user, make_tool, make_booking):
        owner = make_user(location=HOME)
        requester = make_user(location=None)
        tool = make_tool(owner, is_nomadic=True)
        booking = make_booking(tool, requester, status=S.ACCEPTED)

        with pytest.raises(ValidationError):
            booking_service.transition_booking(db, owner, booking.id, S.PICKED)

        db.refresh(booking)
        db.refresh(tool)
        assert booking.status == "ACCEPTED"
        assert tool.actual_holder_id is None
        assert tool.location == HOME
        assert db.query(ToolHistoryEntry).count() == 0

    def test_holder_flag_in_payload(self, db, nomadic_setup, make_user):
        owner, requester, tool, booking = nomadic_setup
        booking_service.transition_booking(db, owner, booking.id, S.PICKED)

        payload = tool_service.get_tool(db, owner, tool.id)
        assert payload["actualUserId"] == requester.id
        assert payload["actualUserActive"] is True

        requester.is_active = False
        db.commit()
        assert tool_service.get_tool(db, owner, tool.id)["actualUserActive"] is False

    def test_history_visible_with_masked_locations(self, db, nomadic_setup, make_user):
        owner, _, tool, booking = nomadic_setup
        booking_service.transition_booking(db, owner, booking.id, S.PICKED)

        own_view = tool_service.get_tool_history(db, owner, tool.id)
        assert own_view[0]["location"] == {"latitude": AWAY[0], "longitude": AWAY[1]}

        third_party = tool_service.get_tool_history(db, make_user(), tool.id)
        assert third_party[0]["bookingId"] == booking.id
        assert third_party[0]["location"] != own_view[0]["location"]


class TestNomadicFlag:

    def test_change_blocked_while_active(self, db, nomadic_setup):
        owner, _, tool, _ = nomadic_setup

        with pytest.raises(InvalidTransitionError):
            tool_service.update_tool(db, owner, tool.id, {"is_nomadic": False})

    def test_change_allowed_after_resolution(self, db, nomadic_setup):
        owner, requester, tool, booking = nomadic_setup

        booking_service.transition_booking(db, requester, booking.id, S.CANCELLED)

        result = tool_service.update_tool(db, owner, tool.id, {"is_nomadic": False})
        assert result["isNomadic"] is False

    def test_change_blocked_while_picked(self, db, nomadic_setup):
        owner, _, tool, booking = nomadic_setup
        booking_service.transition_booking(db, owner, booking.id, S.PICKED)

        with pytest.raises(InvalidTransitionError):
            tool_service.update_tool(db, owner, tool.id, {"is_nomadic": False})

        booking_service.transition_booking(db, owner, booking.id, S.RETURNED)
        assert tool_service.update_tool(db, owner, tool.id, {"is_nomadic": False})["isNomadic"] is False

    def test_same_value_is_not_a_change(self, db, nomadic_setup):
        owner, _, tool, _ = nomadic_setup

        result = tool_service.update_tool(db, owner, tool.id, {"is_nomadic": True, "title": "Saw"})
        assert result["title"] == "Saw"


class TestLocationPropagation:

    def test_owner_move_carries_home_tools(self, db, make_user, make_tool):
        owner = make_user(location=HOME)
        at_home = make_tool(owner, title="Ladder")
        relocated = make_tool(owner, title="Trailer", location=ELSEWHERE)

        user_service.update_profile(db, owner, location=AWAY)
        db.refresh(at_home)
        db.refresh(relocated)

        assert at_home.location == AWAY
        assert relocated.location == ELSEWHERE

    def test_owner_move_leaves_borrowed_tool(self, db, nomadic_setup):
        owner, requester, tool, booking = nomadic_setup
        booking_service.transition_booking(db, owner, booking.id, S.PICKED)

        user_service.update_profile(db, owner, location=ELSEWHERE)
        db.refresh(tool)

        assert tool.location == AWAY
        assert tool.actual_holder_id == requester.id

    def test_holder_move_carries_tool(self, db, nomadic_setup):
        owner, requester, tool, booking = nomadic_setup
        booking_service.transition_booking(db, owner, booking.id, S.PICKED)

        user_service.update_profile(db, requester, location=ELSEWHERE)
        db.refresh(tool)

        assert tool.location == ELSEWHERE

    def test_first_location_moves_nothing(self, db, make_user, make_tool):
        owner = make_user(location=None)
        tool = make_tool(owner, location=HOME)

        user_service.update_profile(db, owner, location=AWAY)
        db.refresh(tool)

        assert tool.location == HOME
