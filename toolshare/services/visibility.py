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

"""Who may see which tool, user and location.

All read paths (get, search, history, ratings, booking creation) decide
access through :func:`can_view_tool`. A failed check is reported as not
found so that hidden tools cannot be told apart from missing ones.
"""

from dataclasses import dataclass, field
from typing import Iterable, Optional, Set

from sqlalchemy.orm import Session

from toolshare.config import get_settings
from toolshare.models.tool import Tool
from toolshare.models.user import User
from toolshare.services import directory, geo


@dataclass(frozen=True)
class ViewerContext:
    """Facts about the viewer needed to evaluate visibility."""

    user_id: int
    community_ids: Set[int] = field(default_factory=set)
    booked_tool_ids: Set[int] = field(default_factory=set)

    @classmethod
    def load(cls, db: Session, viewer: User) -> "ViewerContext":
        return cls(
            user_id=viewer.id,
            community_ids=directory.accessible_community_ids(db, viewer.id),
            booked_tool_ids=directory.booked_tool_ids(db, viewer.id),
        )


def tool_visible(
    viewer_id: int,
    owner_id: int,
    owner_active: bool,
    tool_community_ids: Iterable[int],
    viewer_community_ids: Set[int],
    viewer_has_booking: bool,
) -> bool:
    """Visibility predicate. Any branch grants access."""
    if viewer_id == owner_id:
        return True

    if owner_active:
        scoped = set(tool_community_ids)
        if not scoped or scoped & viewer_community_ids:
            return True

    # Booking history grants permanent access, whatever the outcome
    return viewer_has_booking


def can_view_tool(ctx: ViewerContext, tool: Tool) -> bool:
    if tool.is_deleted:
        return False
    return tool_visible(
        viewer_id=ctx.user_id,
        owner_id=tool.owner_id,
        owner_active=bool(tool.owner.is_active),
        tool_community_ids=tool.community_ids,
        viewer_community_ids=ctx.community_ids,
        viewer_has_booking=tool.id in ctx.booked_tool_ids,
    )


def can_view_user(db: Session, viewer: User, user: User) -> bool:
    """Self, any active user, or someone the viewer shares a booking with."""
    if viewer.id == user.id or user.is_active:
        return True
    return directory.share_booking(db, viewer.id, user.id)


def tool_location_for(viewer_id: int, tool: Tool) -> geo.Location:
    """Precise location for the owner and the holder, obfuscated otherwise."""
    if viewer_id in (tool.owner_id, tool.actual_holder_id):
        return tool.location
    settings = get_settings()
    return geo.obfuscate(
        tool.location,
        f"tool:{tool.id}",
        settings.security.location_salt,
        settings.tools.obfuscation_radius_meters,
        settings.search.earth_radius_meters,
    )


def user_location_for(viewer_id: int, user_id: int, location: Optional[geo.Location]) -> Optional[geo.Location]:
    """Precise location for the user themselves, obfuscated otherwise."""
    if location is None or viewer_id == user_id:
        return location
    settings = get_settings()
    return geo.obfuscate(
        location,
        f"user:{user_id}",
        settings.security.location_salt,
        settings.tools.obfuscation_radius_meters,
        settings.search.earth_radius_meters,
    )
