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

"""Booking creation, transitions and listings."""

import logging
from datetime import datetime, timedelta
from typing import List, Optional

from sqlalchemy import select
from sqlalchemy.orm import Session

from toolshare.config import get_settings
from toolshare.database import unit_of_work
from toolshare.errors import ConflictError, ForbiddenError, NotFoundError, ValidationError
from toolshare.models.booking import (
    ACTIVE_STATUS_VALUES,
    TRANSITION_TIMESTAMPS,
    Booking,
    BookingStatus,
)
from toolshare.models.rating import BookingRating
from toolshare.models.tool import Tool
from toolshare.models.user import User
from toolshare.services import geo
from toolshare.services import tools as tool_service
from toolshare.services.booking_machine import BookingRole, BookingStateMachine
from toolshare.utils.helpers import paginate, sanitize_input, start_of_day, utcnow

logger = logging.getLogger(__name__)

state_machine = BookingStateMachine()


def find_conflicts(
    db: Session,
    tool_id: int,
    start: datetime,
    end: datetime,
    exclude_booking_id: Optional[int] = None,
) -> List[Booking]:
    """Active bookings of a tool whose [start, end) range overlaps the given one."""
    query = db.query(Booking).filter(
        Booking.tool_id == tool_id,
        Booking.status.in_(ACTIVE_STATUS_VALUES),
        Booking.start_date < end,
        Booking.end_date > start,
    )

    if exclude_booking_id:
        query = query.filter(Booking.id != exclude_booking_id)

    return query.all()


def validate_dates(start: datetime, end: datetime, now: Optional[datetime] = None) -> None:
    settings = get_settings()
    now = now or utcnow()

    if end <= start:
        raise ValidationError("End date must be after start date")

    if start < start_of_day(now):
        raise ValidationError("Cannot create bookings in the past")

    if end - start > timedelta(days=settings.booking.max_duration_days):
        raise ValidationError(
            f"Booking duration cannot exceed {settings.booking.max_duration_days} days"
        )


def _check_distance(requester: User, tool: Tool) -> None:
    """Enforce the tool's maximum distance (kilometres) from the requester."""
    if not tool.max_distance:
        return

    if requester.location is None:
        raise ValidationError("Set a profile location to book this tool")

    earth_radius = get_settings().search.earth_radius_meters
    if not geo.within_radius(tool.location, requester.location, tool.max_distance * 1000, earth_radius):
        raise ValidationError(f"Tool is too far away (max distance: {tool.max_distance} km)")


def create_booking(
    db: Session,
    requester: User,
    tool_id: int,
    start: datetime,
    end: datetime,
    contact: Optional[str] = None,
    comments: Optional[str] = None,
) -> dict:
    """Create a PENDING booking for a visible, available tool."""
    settings = get_settings()
    validate_dates(start, end)

    with unit_of_work(db):
        tool = tool_service.load_visible_tool(db, requester, tool_id)

        if tool.owner_id == requester.id:
            raise ValidationError("Cannot book your own tool")

        if not requester.is_active:
            raise ForbiddenError("Inactive accounts cannot request bookings")

        if not tool.owner.is_active:
            raise ForbiddenError("The tool owner's account is inactive")

        if not tool.is_available:
            raise ConflictError("Tool is not available")

        _check_distance(requester, tool)

        if tool.is_nomadic:
            if requester.location is None:
                raise ValidationError("Set a profile location before booking a nomadic tool")
            if tool_service.has_active_bookings(db, tool.id):
                raise ConflictError("Nomadic tool already has a booking planned or in progress")

        if find_conflicts(db, tool.id, start, end):
            raise ConflictError("Booking dates overlap an existing booking")

        booking = Booking(
            tool_id=tool.id,
            requester_id=requester.id,
            owner_id=tool.owner_id,
            start_date=start,
            end_date=end,
            contact=sanitize_input(contact, settings.booking.max_comment_length),
            comments=sanitize_input(comments, settings.booking.max_comment_length),
            status=BookingStatus.PENDING.value,
        )
        db.add(booking)

        # Writing the tool row serializes concurrent creations on it
        tool.last_booked_at = utcnow()
        db.flush()

        result = booking.to_dict(viewer_id=requester.id)

    logger.info("Booking %s created for tool %s by user %s", result["id"], tool_id, requester.id)
    return result


def load_party_booking(db: Session, viewer: User, booking_id: int) -> Booking:
    """Booking visible to one of its two parties, not found for anyone else."""
    booking = db.query(Booking).filter(Booking.id == booking_id).first()
    if not booking or not booking.is_party(viewer.id):
        raise NotFoundError("Booking not found")
    return booking


def get_booking(db: Session, viewer: User, booking_id: int) -> dict:
    return load_party_booking(db, viewer, booking_id).to_dict(viewer_id=viewer.id)


def transition_booking(db: Session, actor: User, booking_id: int, target: BookingStatus) -> dict:
    """Move a booking to ``target`` and apply the tool side effect atomically.

    A concurrent writer on the same booking or tool makes the commit fail
    with ConflictError; nothing is applied in that case.
    """
    with unit_of_work(db):
        booking = load_party_booking(db, actor, booking_id)
        role = BookingRole.OWNER if actor.id == booking.owner_id else BookingRole.REQUESTER
        current = booking.booking_status

        state_machine.validate_transition(current, target, role)

        now = utcnow()
        booking.status = target.value
        setattr(booking, TRANSITION_TIMESTAMPS[target], now)

        tool = booking.tool
        effect = state_machine.side_effect_for(current, target, bool(tool.is_nomadic))
        if effect is not None:
            effect(db, tool, booking, now)

        db.flush()
        result = booking.to_dict(viewer_id=actor.id)

    logger.info(
        "Booking %s moved %s -> %s by user %s", booking_id, current.value, target.value, actor.id
    )
    return result


def _list(db: Session, user: User, column, page: int) -> dict:
    if page < 0:
        raise ValidationError("Page must be zero or positive")

    bookings = db.query(Booking).filter(column == user.id).order_by(
        Booking.created_at.desc(), Booking.id.desc()
    ).all()

    items, pagination = paginate(bookings, page, get_settings().search.page_size)
    return {
        "bookings": [b.to_dict(viewer_id=user.id) for b in items],
        "pagination": pagination,
    }


def list_incoming(db: Session, user: User, page: int = 0) -> dict:
    """Requests for the user's tools, newest first."""
    return _list(db, user, Booking.owner_id, page)


def list_outgoing(db: Session, user: User, page: int = 0) -> dict:
    """Requests the user made, newest first."""
    return _list(db, user, Booking.requester_id, page)


def pending_rating_bookings(db: Session, user: User) -> List[Booking]:
    """Returned bookings the user took part in and has not rated yet."""
    rated = select(BookingRating.booking_id).where(BookingRating.from_user_id == user.id)
    return db.query(Booking).filter(
        (Booking.owner_id == user.id) | (Booking.requester_id == user.id),
        Booking.status == BookingStatus.RETURNED.value,
        ~Booking.id.in_(rated),
    ).order_by(Booking.returned_at.desc(), Booking.id.desc()).all()


def count_pending_actions(db: Session, user: User) -> dict:
    pending_requests = db.query(Booking).filter(
        Booking.owner_id == user.id,
        Booking.status == BookingStatus.PENDING.value,
    ).count()

    return {
        "pendingRatingsCount": len(pending_rating_bookings(db, user)),
        "pendingRequestsCount": pending_requests,
    }
