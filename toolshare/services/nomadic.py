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

"""Nomadic tool custody and location tracking.

A nomadic tool travels with whoever holds it. Pickup hands it to the
requester and moves it to their profile location; return clears the holder
and leaves the tool where it is. Profile moves drag along the tools that
live with the user.
"""

import logging
from datetime import datetime
from typing import Optional

from sqlalchemy.orm import Session

from toolshare.errors import ValidationError
from toolshare.models.booking import Booking
from toolshare.models.tool import Tool, ToolHistoryEntry
from toolshare.models.user import User
from toolshare.services.geo import Location

logger = logging.getLogger(__name__)


def on_picked(db: Session, tool: Tool, booking: Booking, now: datetime) -> None:
    """Hand a nomadic tool over to the requester."""
    requester = db.query(User).filter(User.id == booking.requester_id).first()
    if requester is None or requester.location is None:
        raise ValidationError("The requester needs a profile location to pick up a nomadic tool")

    tool.actual_holder_id = booking.requester_id
    tool.is_available = False
    tool.latitude_micro, tool.longitude_micro = requester.location

    db.add(ToolHistoryEntry(
        tool_id=tool.id,
        user_id=booking.requester_id,
        booking_id=booking.id,
        pickup_date=now,
        latitude_micro=tool.latitude_micro,
        longitude_micro=tool.longitude_micro,
    ))
    logger.info("Tool %s picked by user %s (booking %s)", tool.id, booking.requester_id, booking.id)


def on_returned(db: Session, tool: Tool, booking: Booking, now: datetime) -> None:
    """Release the holder. The tool stays where it was returned."""
    tool.actual_holder_id = None
    tool.is_available = True
    logger.info("Tool %s returned by user %s (booking %s)", tool.id, booking.requester_id, booking.id)


def on_released(db: Session, tool: Tool, booking: Booking, now: datetime) -> None:
    """Rejection or cancellation before pickup.

    Availability was never withdrawn for this booking, so the owner's own
    setting is kept. Holder and location are untouched.
    """
    logger.info(
        "Tool %s released from booking %s (available=%s)", tool.id, booking.id, tool.is_available
    )


def propagate_location_change(
    db: Session,
    user_id: int,
    old_location: Optional[Location],
    new_location: Location,
) -> int:
    """Move the tools that live with a user whose profile location changed.

    - Tools the user owns that nobody holds and that sit exactly at the old
      location follow the user.
    - Tools the user currently holds always follow the user.

    Tools held by someone else, and tools already relocated elsewhere, are
    left alone. Returns the number of tools moved.
    """
    moved = {}

    if old_location is not None:
        owned = db.query(Tool).filter(
            Tool.owner_id == user_id,
            Tool.actual_holder_id.is_(None),
            Tool.latitude_micro == old_location[0],
            Tool.longitude_micro == old_location[1],
            Tool.deleted_at.is_(None),
        ).all()
        for tool in owned:
            moved[tool.id] = tool

    held = db.query(Tool).filter(Tool.actual_holder_id == user_id).all()
    for tool in held:
        moved[tool.id] = tool

    for tool in moved.values():
        tool.latitude_micro, tool.longitude_micro = new_location

    if moved:
        logger.info("Moved %d tool(s) with user %s", len(moved), user_id)

    return len(moved)
