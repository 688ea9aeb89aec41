"""Tests for the tool catalogue and search."""

import pytest

from toolshare.errors import ConflictError, ForbiddenError, NotFoundError, ValidationError
from toolshare.models import BookingStatus
from toolshare.services import tools as tool_service
from toolshare.services.tools import ToolSearch

CENTER = (41695384, 2492793)

FIVE_KM_NORTH = (CENTER[0] + 44966, CENTER[1])
FIFTEEN_KM_NORTH = (CENTER[0] + 134897, CENTER[1])


def _tool_data(**overrides):
    data = {
        "title": "Circular saw",
        "description": "Makita 1200W",
        "tool_category": 2,
        "tool_valuation": 3000,
        "cost": 50,
        "transport_options": [1, 2],
    }
    data.update(overrides)
    return data


class TestCreateTool:

    def test_defaults_to_profile_location(self, db, make_user):
        owner = make_user()
        result = tool_service.create_tool(db, owner, _tool_data())

        assert result["location"] == {"latitude": CENTER[0], "longitude": CENTER[1]}
        assert result["userId"] == owner.id
        assert result["transportOptions"] == [1, 2]
        assert result["estimatedDailyCost"] == 100

    def test_explicit_location(self, db, make_user):
        owner = make_user()
        result = tool_service.create_tool(
            db, owner, _tool_data(location={"latitude": 1000000, "longitude": 2000000})
        )
        assert result["location"] == {"latitude": 1000000, "longitude": 2000000}

    def test_location_required_without_profile_location(self, db, make_user):
        owner = make_user(location=None)
        with pytest.raises(ValidationError):
            tool_service.create_tool(db, owner, _tool_data())

    def test_cost_is_clamped(self, db, make_user):
        owner = make_user()
        result = tool_service.create_tool(db, owner, _tool_data(cost=500))
        assert result["cost"] == 100

    @pytest.mark.parametrize("valuation", [0, -10])
    def test_valuation_must_be_positive(self, db, make_user, valuation):
        with pytest.raises(ValidationError):
            tool_service.create_tool(db, make_user(), _tool_data(tool_valuation=valuation))

    def test_community_membership_required(self, db, make_user, make_community):
        owner = make_user()
        foreign = make_community(make_user())

        with pytest.raises(ValidationError):
            tool_service.create_tool(db, owner, _tool_data(communities=[foreign.id]))

    def test_member_can_scope_tool(self, db, make_user, make_community):
        owner = make_user()
        community = make_community(make_user(), members=[(owner, "accepted")])

        result = tool_service.create_tool(db, owner, _tool_data(communities=[community.id]))
        assert result["communities"] == [community.id]

    def test_max_distance(self, db, make_user):
        result = tool_service.create_tool(db, make_user(), _tool_data(max_distance=25))
        assert result["maxDistance"] == 25

        with pytest.raises(ValidationError):
            tool_service.create_tool(db, make_user(), _tool_data(max_distance=-1))


class TestUpdateTool:

    def test_lower_valuation_reclamps_cost(self, db, make_user, make_tool):
        owner = make_user()
        tool = make_tool(owner, tool_valuation=3000, cost=100)

        result = tool_service.update_tool(db, owner, tool.id, {"tool_valuation": 900})
        assert result["cost"] == 30
        assert result["estimatedDailyCost"] == 30

    def test_cost_above_ceiling_is_clamped(self, db, make_user, make_tool):
        owner = make_user()
        tool = make_tool(owner, tool_valuation=3000, cost=10)

        result = tool_service.update_tool(db, owner, tool.id, {"cost": 1000})
        assert result["cost"] == 100

    def test_non_owner_is_forbidden(self, db, make_user, make_tool):
        tool = make_tool(make_user())
        with pytest.raises(ForbiddenError):
            tool_service.update_tool(db, make_user(), tool.id, {"title": "Mine now"})

    def test_replace_communities_and_transport(self, db, make_user, make_community, make_tool):
        owner = make_user()
        first = make_community(owner, name="First")
        second = make_community(owner, name="Second")
        tool = make_tool(owner, communities=[first], transport=[1])

        result = tool_service.update_tool(
            db, owner, tool.id, {"communities": [second.id], "transport_options": [1, 3]}
        )
        assert result["communities"] == [second.id]
        assert result["transportOptions"] == [1, 3]

    def test_version_bumps_on_edit(self, db, make_user, make_tool):
        owner = make_user()
        tool = make_tool(owner)
        assert tool.version == 1

        tool_service.update_tool(db, owner, tool.id, {"title": "Hammer drill"})
        db.refresh(tool)
        assert tool.version == 2

    def test_set_and_clear_max_distance(self, db, make_user, make_tool):
        owner = make_user()
        tool = make_tool(owner)
        assert tool_service.get_tool(db, owner, tool.id)["maxDistance"] == 0

        assert tool_service.update_tool(db, owner, tool.id, {"max_distance": 10})["maxDistance"] == 10
        assert tool_service.update_tool(db, owner, tool.id, {"max_distance": 0})["maxDistance"] == 0


class TestDeleteTool:

    def test_blocked_by_active_booking(self, db, make_user, make_tool, make_booking):
        owner = make_user()
        tool = make_tool(owner)
        make_booking(tool, make_user(), status=BookingStatus.ACCEPTED)

        with pytest.raises(ConflictError):
            tool_service.delete_tool(db, owner, tool.id)

    def test_soft_delete(self, db, make_user, make_tool, make_booking):
        owner = make_user()
        tool = make_tool(owner)
        make_booking(tool, make_user(), status=BookingStatus.RETURNED)

        tool_service.delete_tool(db, owner, tool.id)
        db.refresh(tool)

        assert tool.deleted_at is not None
        with pytest.raises(NotFoundError):
            tool_service.get_tool(db, owner, tool.id)
        assert tool_service.list_own_tools(db, owner)["tools"] == []


class TestSearch:

    @pytest.fixture
    def three_tools(self, make_user, make_tool):
        owner = make_user()
        viewer = make_user()
        tools = [
            make_tool(owner, title="Near", location=CENTER),
            make_tool(owner, title="Five", location=FIVE_KM_NORTH),
            make_tool(owner, title="Fifteen", location=FIFTEEN_KM_NORTH),
        ]
        return viewer, tools

    @pytest.mark.parametrize("distance,expected", [(10000, ["Near", "Five"]), (20000, ["Near", "Five", "Fifteen"])])
    def test_distance_example(self, db, three_tools, distance, expected):
        viewer, _ = three_tools
        result = tool_service.search_tools(db, viewer, ToolSearch(distance=distance))
        assert [t["title"] for t in result["tools"]] == expected

    def test_repeated_query_is_identical(self, db, three_tools):
        viewer, _ = three_tools
        search = ToolSearch(distance=20000)
        first = tool_service.search_tools(db, viewer, search)
        second = tool_service.search_tools(db, viewer, search)
        assert first == second

    def test_explicit_center(self, db, three_tools):
        viewer, _ = three_tools
        search = ToolSearch(distance=1000, latitude=FIFTEEN_KM_NORTH[0], longitude=FIFTEEN_KM_NORTH[1])
        result = tool_service.search_tools(db, viewer, search)
        assert [t["title"] for t in result["tools"]] == ["Fifteen"]

    def test_distance_without_center(self, db, make_user):
        viewer = make_user(location=None)
        with pytest.raises(ValidationError):
            tool_service.search_tools(db, viewer, ToolSearch(distance=1000))

    def test_negative_page(self, db, make_user):
        with pytest.raises(ValidationError):
            tool_service.search_tools(db, make_user(), ToolSearch(page=-1))

    def test_filters(self, db, make_user, make_tool):
        owner = make_user()
        viewer = make_user()
        make_tool(owner, title="Cheap ladder", tool_category=1, cost=5, may_be_free=True, transport=[1])
        make_tool(owner, title="Pricey ladder", tool_category=1, cost=90, transport=[2])
        make_tool(owner, title="Wheelbarrow", tool_category=3, cost=5, description="Garden ladder rack")
        make_tool(owner, title="Hidden ladder", is_available=False)

        def titles(**kwargs):
            return [t["title"] for t in tool_service.search_tools(db, viewer, ToolSearch(**kwargs))["tools"]]

        assert titles(term="LADDER") == ["Cheap ladder", "Pricey ladder", "Wheelbarrow"]
        assert titles(categories=[1]) == ["Cheap ladder", "Pricey ladder"]
        assert titles(max_cost=10) == ["Cheap ladder", "Wheelbarrow"]
        assert titles(may_be_free=True) == ["Cheap ladder"]
        assert titles(transport_options=[2]) == ["Pricey ladder"]

    def test_wildcards_match_literally(self, db, make_user, make_tool):
        owner = make_user()
        viewer = make_user()
        make_tool(owner, title="50% off sander")
        make_tool(owner, title="Sander")
        make_tool(owner, title="Belt_sander")

        def titles(term):
            return [t["title"] for t in tool_service.search_tools(db, viewer, ToolSearch(term=term))["tools"]]

        assert titles("%") == ["50% off sander"]
        assert titles("_") == ["Belt_sander"]
        assert titles("%sander") == []
        assert titles("sander") == ["50% off sander", "Sander", "Belt_sander"]

    def test_community_filter_and_visibility(self, db, make_user, make_community, make_tool):
        owner = make_user()
        member = make_user()
        outsider = make_user()
        community = make_community(owner, members=[(member, "accepted")])
        make_tool(owner, title="Public")
        make_tool(owner, title="Members only", communities=[community])

        def titles(viewer, **kwargs):
            return [t["title"] for t in tool_service.search_tools(db, viewer, ToolSearch(**kwargs))["tools"]]

        assert titles(member) == ["Public", "Members only"]
        assert titles(outsider) == ["Public"]
        assert titles(member, community_id=community.id) == ["Members only"]

    def test_pagination_after_filtering(self, db, make_user, make_tool):
        owner = make_user()
        viewer = make_user()
        for i in range(20):
            make_tool(owner, title=f"Tool {i}")

        first = tool_service.search_tools(db, viewer, ToolSearch(page=0))
        second = tool_service.search_tools(db, viewer, ToolSearch(page=1))

        assert len(first["tools"]) == 16
        assert len(second["tools"]) == 4
        assert first["pagination"] == {"current": 0, "pageSize": 16, "total": 20, "pages": 2}
        ids = [t["id"] for t in first["tools"] + second["tools"]]
        assert ids == sorted(ids)


class TestUserTools:

    def test_lists_only_visible_tools(self, db, make_user, make_community, make_tool):
        owner = make_user()
        viewer = make_user()
        make_tool(owner, title="Public")
        make_tool(owner, title="Private", communities=[make_community(owner)])

        result = tool_service.list_user_tools(db, viewer, owner.id)
        assert [t["title"] for t in result["tools"]] == ["Public"]
        assert len(tool_service.list_own_tools(db, owner)["tools"]) == 2

    def test_unknown_user(self, db, make_user):
        with pytest.raises(NotFoundError):
            tool_service.list_user_tools(db, make_user(), 9999)
