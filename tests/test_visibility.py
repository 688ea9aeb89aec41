"""Tests for the tool and user visibility rules."""

import pytest

from toolshare.errors import NotFoundError
from toolshare.models import BookingStatus
from toolshare.services import tools as tool_service
from toolshare.services import users as user_service
from toolshare.services.visibility import ViewerContext, can_view_tool, tool_visible

OWNER = 1
VIEWER = 2


class TestPredicate:

    @pytest.mark.parametrize(
        "owner_active,tool_communities,viewer_communities,has_booking,expected",
        [
            # public tool of an active owner
            (True, [], set(), False, True),
            # community tool, viewer is a member
            (True, [10], {10}, False, True),
            # community tool, viewer in one of several
            (True, [10, 11], {11, 12}, False, True),
            # community tool, viewer outside
            (True, [10], {12}, False, False),
            # inactive owner hides everything
            (False, [], set(), False, False),
            (False, [10], {10}, False, False),
            # booking history always grants access
            (False, [], set(), True, True),
            (True, [10], set(), True, True),
        ],
    )
    def test_rules(self, owner_active, tool_communities, viewer_communities, has_booking, expected):
        assert tool_visible(
            viewer_id=VIEWER,
            owner_id=OWNER,
            owner_active=owner_active,
            tool_community_ids=tool_communities,
            viewer_community_ids=viewer_communities,
            viewer_has_booking=has_booking,
        ) is expected

    def test_owner_always_sees_own_tool(self):
        assert tool_visible(OWNER, OWNER, False, [10], set(), False)


class TestToolAccess:

    def test_community_tool_hidden_from_outsider(self, db, make_user, make_community, make_tool):
        owner = make_user()
        outsider = make_user()
        community = make_community(owner)
        tool = make_tool(owner, communities=[community])

        with pytest.raises(NotFoundError):
            tool_service.get_tool(db, outsider, tool.id)

    def test_invited_member_does_not_count(self, db, make_user, make_community, make_tool):
        owner = make_user()
        invited = make_user()
        community = make_community(owner, members=[(invited, "invited")])
        tool = make_tool(owner, communities=[community])

        with pytest.raises(NotFoundError):
            tool_service.get_tool(db, invited, tool.id)

    def test_accepted_member_sees_tool(self, db, make_user, make_community, make_tool):
        owner = make_user()
        member = make_user()
        community = make_community(owner, members=[(member, "accepted")])
        tool = make_tool(owner, communities=[community])

        assert tool_service.get_tool(db, member, tool.id)["id"] == tool.id

    def test_community_owner_sees_members_tool(self, db, make_user, make_community, make_tool):
        community_owner = make_user()
        member = make_user()
        community = make_community(community_owner, members=[(member, "accepted")])
        tool = make_tool(member, communities=[community])

        assert tool_service.get_tool(db, community_owner, tool.id)["id"] == tool.id

    def test_inactive_owner_hides_tool(self, db, make_user, make_tool):
        owner = make_user(active=False)
        viewer = make_user()
        tool = make_tool(owner)

        with pytest.raises(NotFoundError):
            tool_service.get_tool(db, viewer, tool.id)

        assert tool_service.get_tool(db, owner, tool.id)["userActive"] is False

    def test_rejected_booking_keeps_access(self, db, make_user, make_tool, make_booking):
        owner = make_user()
        viewer = make_user()
        tool = make_tool(owner)
        make_booking(tool, viewer, status=BookingStatus.REJECTED)

        owner.is_active = False
        db.commit()

        payload = tool_service.get_tool(db, viewer, tool.id)
        assert payload["userActive"] is False

    def test_deleted_tool_hidden_from_everyone(self, db, make_user, make_tool):
        owner = make_user()
        tool = make_tool(owner)
        tool_service.delete_tool(db, owner, tool.id)

        ctx = ViewerContext.load(db, owner)
        assert can_view_tool(ctx, tool) is False
        with pytest.raises(NotFoundError):
            tool_service.get_tool(db, owner, tool.id)


class TestLocationMasking:

    def test_owner_sees_precise_location(self, db, make_user, make_tool):
        owner = make_user()
        tool = make_tool(owner)

        location = tool_service.get_tool(db, owner, tool.id)["location"]
        assert (location["latitude"], location["longitude"]) == tool.location

    def test_others_see_stable_offset(self, db, make_user, make_tool):
        owner = make_user()
        viewer = make_user()
        tool = make_tool(owner)

        first = tool_service.get_tool(db, viewer, tool.id)["location"]
        second = tool_service.get_tool(db, viewer, tool.id)["location"]
        assert first == second
        assert (first["latitude"], first["longitude"]) != tool.location


class TestUserAccess:

    def test_inactive_user_hidden_from_stranger(self, db, make_user):
        hidden = make_user(active=False)
        stranger = make_user()

        with pytest.raises(NotFoundError):
            user_service.get_user(db, stranger, hidden.id)

    def test_inactive_user_sees_self(self, db, make_user):
        hidden = make_user(active=False)

        assert user_service.get_user(db, hidden, hidden.id)["id"] == hidden.id

    def test_shared_booking_reveals_inactive_user(self, db, make_user, make_tool, make_booking):
        owner = make_user()
        requester = make_user()
        make_booking(make_tool(owner), requester, status=BookingStatus.RETURNED)
        owner.is_active = False
        db.commit()

        assert user_service.get_user(db, requester, owner.id)["active"] is False
