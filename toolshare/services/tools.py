# ToolShare - Community Tool Lending Service
# Copyright (C) 2025 Oleg Tokmakov
#
# This program is free software: you can redistribute it and/or modify
# it under the terms of the GNU Affero General Public License as published by
# the Free Software Foundation, either version 3 of the License, or
# (at your option) any later version.
#
# This program is distributed in the hope that it will be useful,
# but WITHOUT ANY WARRANTY; without even the implied warranty of
# MERCHANTABILITY or FITNESS FOR A PARTICULAR PURPOSE.  See the
# GNU Affero General Public License for more details.
#
# You should have received a copy of the GNU Affero General Public License
# along with this program.  If not, see <https://www.gnu.org/licenses/>.

"""Tool catalogue: create, edit, delete, lookup, search and history."""

import logging
from dataclasses import dataclass, field
from typing import Iterable, List, Optional

from sqlalchemy import and_, or_
from sqlalchemy.orm import Session

from toolshare.config import get_settings
from toolshare.database import unit_of_work
from toolshare.errors import (
    ConflictError,
    ForbiddenError,
    InvalidTransitionError,
    NotFoundError,
    ValidationError,
)
from toolshare.models.booking import ACTIVE_STATUS_VALUES, Booking
from toolshare.models.tool import Tool, ToolCommunity, ToolTransport
from toolshare.models.user import User
from toolshare.services import directory, geo
from toolshare.services.visibility import (
    ViewerContext,
    can_view_tool,
    tool_location_for,
    user_location_for,
)
from toolshare.utils.helpers import paginate, sanitize_input, utcnow

logger = logging.getLogger(__name__)

# Fields the owner may edit directly
EDITABLE_FIELDS = (
    "description",
    "tool_category",
    "may_be_free",
    "ask_with_fee",
    "height",
    "weight",
)


@dataclass
class ToolSearch:
    """Search filters. Zero values disable the numeric filters."""

    term: str = ""
    categories: List[int] = field(default_factory=list)
    transport_options: List[int] = field(default_factory=list)
    distance: int = 0
    latitude: Optional[int] = None
    longitude: Optional[int] = None
    max_cost: int = 0
    may_be_free: bool = False
    community_id: Optional[int] = None
    page: int = 0


def escape_like(term: str) -> str:
    """Make LIKE wildcards in a user term match literally."""
    return term.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


def estimated_daily_cost(valuation: int) -> int:
    factor = get_settings().tools.valuation_factor
    if factor <= 0:
        return valuation
    return valuation // factor


def clamp_cost(cost: int, valuation: int) -> int:
    """Cap the cost at the estimated daily cost instead of rejecting it."""
    return min(cost, estimated_daily_cost(valuation))


def serialize_tool(viewer_id: int, tool: Tool) -> dict:
    """Tool payload with fresh account flags and the location the viewer may see."""
    return tool.to_dict(
        location=tool_location_for(viewer_id, tool),
        estimated_daily_cost=estimated_daily_cost(tool.tool_valuation),
        user_active=bool(tool.owner.is_active),
        actual_user_active=bool(tool.holder.is_active) if tool.holder is not None else None,
    )


def has_active_bookings(db: Session, tool_id: int) -> bool:
    return db.query(Booking.id).filter(
        Booking.tool_id == tool_id,
        Booking.status.in_(ACTIVE_STATUS_VALUES),
    ).first() is not None


def load_visible_tool(db: Session, viewer: User, tool_id: int) -> Tool:
    """Tool the viewer may see. Hidden and deleted tools are not found."""
    tool = db.query(Tool).filter(Tool.id == tool_id, Tool.deleted_at.is_(None)).first()
    if not tool or not can_view_tool(ViewerContext.load(db, viewer), tool):
        raise NotFoundError("Tool not found")
    return tool


def load_owned_tool(db: Session, actor: User, tool_id: int) -> Tool:
    tool = load_visible_tool(db, actor, tool_id)
    if tool.owner_id != actor.id:
        raise ForbiddenError("Only the owner can modify this tool")
    return tool


def _check_communities(db: Session, owner_id: int, community_ids: Iterable[int]) -> None:
    for community_id in community_ids:
        if not directory.community_exists(db, community_id):
            raise ValidationError(f"Community {community_id} does not exist")
        if not (
            directory.is_community_owner(db, owner_id, community_id)
            or directory.is_member(db, owner_id, community_id)
        ):
            raise ValidationError(f"You are not a member of community {community_id}")


def _sync_links(collection, attr: str, wanted: Iterable[int], factory) -> None:
    """Make a link collection hold exactly ``wanted``."""
    wanted = set(wanted)
    for link in list(collection):
        if getattr(link, attr) not in wanted:
            collection.remove(link)
    existing = {getattr(link, attr) for link in collection}
    for value in sorted(wanted - existing):
        collection.append(factory(value))


def _parse_location(data: dict) -> Optional[geo.Location]:
    location = data.get("location")
    if location is None:
        return None
    parsed = (int(location["latitude"]), int(location["longitude"]))
    if not geo.validate_location(parsed):
        raise ValidationError("Location is out of range")
    return parsed


def create_tool(db: Session, owner: User, data: dict) -> dict:
    """Create a tool. The location defaults to the owner's profile location."""
    title = sanitize_input(data.get("title"), 255)
    if not title:
        raise ValidationError("Title is required")

    valuation = data.get("tool_valuation") or 0
    if valuation <= 0:
        raise ValidationError("Tool valuation must be positive")

    cost = data.get("cost") or 0
    if cost < 0:
        raise ValidationError("Cost cannot be negative")

    max_distance = data.get("max_distance") or 0
    if max_distance < 0:
        raise ValidationError("Maximum distance cannot be negative")

    location = _parse_location(data) or owner.location
    if location is None:
        raise ValidationError("Tool location is required when the profile has no location")

    communities = data.get("communities") or []

    with unit_of_work(db):
        _check_communities(db, owner.id, communities)

        tool = Tool(
            owner_id=owner.id,
            title=title,
            description=sanitize_input(data.get("description"), 10000),
            tool_category=data["tool_category"],
            is_nomadic=bool(data.get("is_nomadic", False)),
            is_available=bool(data.get("is_available", True)),
            may_be_free=bool(data.get("may_be_free", False)),
            ask_with_fee=bool(data.get("ask_with_fee", False)),
            latitude_micro=location[0],
            longitude_micro=location[1],
            tool_valuation=valuation,
            cost=clamp_cost(cost, valuation),
            height=data.get("height"),
            weight=data.get("weight"),
            max_distance=max_distance,
        )
        _sync_links(tool.community_links, "community_id", communities,
                    lambda c: ToolCommunity(community_id=c))
        _sync_links(tool.transport_links, "transport_option", data.get("transport_options") or [],
                    lambda t: ToolTransport(transport_option=t))
        db.add(tool)
        db.flush()
        result = serialize_tool(owner.id, tool)

    logger.info("Tool %s created by user %s", result["id"], owner.id)
    return result


def update_tool(db: Session, actor: User, tool_id: int, data: dict) -> dict:
    """Partial update by the owner. Cost is re-clamped on every write."""
    with unit_of_work(db):
        tool = load_owned_tool(db, actor, tool_id)

        nomadic = data.get("is_nomadic")
        if nomadic is not None and bool(nomadic) != tool.is_nomadic:
            if has_active_bookings(db, tool.id):
                raise InvalidTransitionError(
                    "Cannot change nomadic mode while the tool has active bookings"
                )
            tool.is_nomadic = bool(nomadic)

        available = data.get("is_available")
        if available is not None and bool(available) != tool.is_available:
            if tool.actual_holder_id is not None:
                raise InvalidTransitionError("Tool is currently picked up")
            tool.is_available = bool(available)

        if data.get("title") is not None:
            title = sanitize_input(data["title"], 255)
            if not title:
                raise ValidationError("Title is required")
            tool.title = title

        for name in EDITABLE_FIELDS:
            if data.get(name) is not None:
                value = data[name]
                if name == "description":
                    value = sanitize_input(value, 10000)
                setattr(tool, name, value)

        if data.get("max_distance") is not None:
            if data["max_distance"] < 0:
                raise ValidationError("Maximum distance cannot be negative")
            tool.max_distance = data["max_distance"]

        if data.get("tool_valuation") is not None:
            if data["tool_valuation"] <= 0:
                raise ValidationError("Tool valuation must be positive")
            tool.tool_valuation = data["tool_valuation"]

        if data.get("cost") is not None or data.get("tool_valuation") is not None:
            cost = data.get("cost") if data.get("cost") is not None else tool.cost
            if cost < 0:
                raise ValidationError("Cost cannot be negative")
            tool.cost = clamp_cost(cost, tool.tool_valuation)

        location = _parse_location(data)
        if location is not None:
            tool.latitude_micro, tool.longitude_micro = location

        if data.get("communities") is not None:
            _check_communities(db, actor.id, data["communities"])
            _sync_links(tool.community_links, "community_id", data["communities"],
                        lambda c: ToolCommunity(community_id=c))

        if data.get("transport_options") is not None:
            _sync_links(tool.transport_links, "transport_option", data["transport_options"],
                        lambda t: ToolTransport(transport_option=t))

        db.flush()
        result = serialize_tool(actor.id, tool)

    logger.info("Tool %s updated by user %s", tool_id, actor.id)
    return result


def delete_tool(db: Session, actor: User, tool_id: int) -> None:
    """Soft delete. Refused while any booking on the tool is active."""
    with unit_of_work(db):
        tool = load_owned_tool(db, actor, tool_id)

        if has_active_bookings(db, tool.id):
            raise ConflictError("Cannot delete a tool with active bookings")

        tool.deleted_at = utcnow()
        tool.is_available = False

    logger.info("Tool %s deleted by user %s", tool_id, actor.id)


def get_tool(db: Session, viewer: User, tool_id: int) -> dict:
    return serialize_tool(viewer.id, load_visible_tool(db, viewer, tool_id))


def list_own_tools(db: Session, user: User) -> dict:
    tools = db.query(Tool).filter(
        Tool.owner_id == user.id,
        Tool.deleted_at.is_(None),
    ).order_by(Tool.id).all()
    return {"tools": [serialize_tool(user.id, t) for t in tools]}


def list_user_tools(db: Session, viewer: User, owner_id: int) -> dict:
    """Tools of another user that the viewer may see."""
    if directory.get_user(db, owner_id) is None:
        raise NotFoundError("User not found")

    ctx = ViewerContext.load(db, viewer)
    tools = db.query(Tool).filter(
        Tool.owner_id == owner_id,
        Tool.deleted_at.is_(None),
    ).order_by(Tool.id).all()
    return {"tools": [serialize_tool(viewer.id, t) for t in tools if can_view_tool(ctx, t)]}


def get_tool_history(db: Session, viewer: User, tool_id: int) -> list:
    """Pickup history. Holder locations are masked for third parties."""
    tool = load_visible_tool(db, viewer, tool_id)

    entries = []
    for entry in tool.history:
        location = (entry.latitude_micro, entry.longitude_micro)
        if viewer.id != tool.owner_id:
            location = user_location_for(viewer.id, entry.user_id, location)
        entries.append(entry.to_dict(location=location))
    return entries


def search_tools(db: Session, viewer: User, search: ToolSearch) -> dict:
    """Filter, then check exact distance, then visibility, then paginate.

    Ordering is by distance and then id when a distance is given, by id
    otherwise, so identical queries always return identical pages.
    """
    settings = get_settings()

    if search.page < 0:
        raise ValidationError("Page must be zero or positive")
    if search.distance < 0:
        raise ValidationError("Distance cannot be negative")

    query = db.query(Tool).filter(
        Tool.deleted_at.is_(None),
        Tool.is_available.is_(True),
    )

    if search.term:
        pattern = f"%{escape_like(search.term)}%"
        query = query.filter(or_(
            Tool.title.ilike(pattern, escape="\\"),
            Tool.description.ilike(pattern, escape="\\"),
        ))

    if search.categories:
        query = query.filter(Tool.tool_category.in_(search.categories))

    if search.transport_options:
        query = query.filter(
            Tool.transport_links.any(ToolTransport.transport_option.in_(search.transport_options))
        )

    if search.max_cost > 0:
        query = query.filter(Tool.cost <= search.max_cost)

    if search.may_be_free:
        query = query.filter(Tool.may_be_free.is_(True))

    if search.community_id:
        query = query.filter(
            Tool.community_links.any(ToolCommunity.community_id == search.community_id)
        )

    center = None
    if search.distance > 0:
        explicit = None
        if search.latitude is not None and search.longitude is not None:
            explicit = (search.latitude, search.longitude)
        center = geo.resolve_center(explicit, viewer.location)
        if center is None:
            raise ValidationError("A search center is required to filter by distance")

        box = geo.bounding_box(center, search.distance, settings.search.earth_radius_meters)
        query = query.filter(
            Tool.latitude_micro.between(box.min_latitude, box.max_latitude),
            or_(*[
                and_(Tool.longitude_micro >= low, Tool.longitude_micro <= high)
                for low, high in box.longitude_ranges
            ]),
        )

    ctx = ViewerContext.load(db, viewer)
    matches = []
    for tool in query.all():
        distance = 0.0
        if center is not None:
            distance = geo.distance_meters(center, tool.location, settings.search.earth_radius_meters)
            if distance > search.distance:
                continue
        if not can_view_tool(ctx, tool):
            continue
        matches.append((distance, tool.id, tool))

    matches.sort(key=lambda m: (m[0], m[1]))

    page_items, pagination = paginate(matches, search.page, settings.search.page_size)
    return {
        "tools": [serialize_tool(viewer.id, tool) for _, _, tool in page_items],
        "pagination": pagination,
    }
