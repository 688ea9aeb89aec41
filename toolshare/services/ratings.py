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

"""Booking ratings and the rating aggregates of users and tools."""

import logging
from typing import List, Optional

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from toolshare.database import unit_of_work
from toolshare.errors import (
    DuplicateError,
    InvalidStateError,
    NotFoundError,
    ValidationError,
)
from toolshare.models.booking import Booking, BookingStatus
from toolshare.models.rating import MAX_RATING_SCORE, MIN_RATING_SCORE, BookingRating
from toolshare.models.tool import Tool
from toolshare.models.user import User
from toolshare.services import directory
from toolshare.services.bookings import load_party_booking, pending_rating_bookings
from toolshare.services.tools import load_visible_tool
from toolshare.services.visibility import ViewerContext, can_view_tool, can_view_user
from toolshare.utils.helpers import sanitize_input, utcnow

logger = logging.getLogger(__name__)


def _empty_side(user_id: int) -> dict:
    return {"id": user_id, "rating": None, "ratingComment": None, "ratedAt": None}


def unified_rating(booking: Booking) -> Optional[dict]:
    """Both sides of a booking's rating, or None if neither side rated.

    The owner side holds what the owner said about the requester, the
    requester side what the requester said about the owner and the tool.
    """
    if not booking.ratings:
        return None

    owner_side = _empty_side(booking.owner_id)
    requester_side = _empty_side(booking.requester_id)
    for rating in booking.ratings:
        if rating.from_user_id == booking.owner_id:
            owner_side = rating.side_dict()
        elif rating.from_user_id == booking.requester_id:
            requester_side = rating.side_dict()

    return {
        "bookingId": booking.id,
        "toolId": booking.tool_id,
        "owner": owner_side,
        "requester": requester_side,
    }


def rate_booking(
    db: Session,
    actor: User,
    booking_id: int,
    score: int,
    comment: Optional[str] = None,
) -> dict:
    """Store one side's rating and fold it into the aggregates."""
    if not MIN_RATING_SCORE <= score <= MAX_RATING_SCORE:
        raise ValidationError(
            f"Rating must be between {MIN_RATING_SCORE} and {MAX_RATING_SCORE}"
        )

    with unit_of_work(db):
        booking = load_party_booking(db, actor, booking_id)

        if booking.booking_status != BookingStatus.RETURNED:
            raise InvalidStateError("Only returned bookings can be rated")

        already = db.query(BookingRating.id).filter(
            BookingRating.booking_id == booking.id,
            BookingRating.from_user_id == actor.id,
        ).first()
        if already is not None:
            raise DuplicateError("You already rated this booking")

        from_owner = actor.id == booking.owner_id
        rated_user_id = booking.requester_id if from_owner else booking.owner_id

        db.add(BookingRating(
            booking_id=booking.id,
            from_user_id=actor.id,
            to_user_id=rated_user_id,
            rating=score,
            comment=sanitize_input(comment, 2000) or None,
            rated_at=utcnow(),
        ))
        try:
            db.flush()
        except IntegrityError as exc:
            raise DuplicateError("You already rated this booking") from exc

        # Incremental aggregates, computed in SQL so concurrent ratings add up
        db.query(User).filter(User.id == rated_user_id).update(
            {
                User.rating_count: User.rating_count + 1,
                User.rating_sum: User.rating_sum + score,
            },
            synchronize_session=False,
        )
        if not from_owner:
            db.query(Tool).filter(Tool.id == booking.tool_id).update(
                {
                    Tool.rating_count: Tool.rating_count + 1,
                    Tool.rating_sum: Tool.rating_sum + score,
                },
                synchronize_session=False,
            )

        db.expire(booking, ["ratings"])
        result = unified_rating(booking)

    logger.info("User %s rated booking %s with %s", actor.id, booking_id, score)
    return result


def get_booking_ratings(db: Session, viewer: User, booking_id: int) -> dict:
    booking = db.query(Booking).filter(Booking.id == booking_id).first()
    if booking is None:
        raise NotFoundError("Booking not found")

    if not booking.is_party(viewer.id):
        # Third parties see ratings only for tools they can see
        load_visible_tool(db, viewer, booking.tool_id)

    result = unified_rating(booking)
    if result is None:
        raise NotFoundError("Booking has no ratings yet")
    return result


def list_tool_ratings(db: Session, viewer: User, tool_id: int) -> List[dict]:
    tool = load_visible_tool(db, viewer, tool_id)
    bookings = db.query(Booking).filter(
        Booking.tool_id == tool.id,
        Booking.ratings.any(),
    ).order_by(Booking.id.desc()).all()
    return [unified_rating(b) for b in bookings]


def list_user_ratings(db: Session, viewer: User, user_id: int) -> List[dict]:
    """Rated bookings the user took part in, restricted to what the viewer may see."""
    user = directory.get_user(db, user_id)
    if user is None or not can_view_user(db, viewer, user):
        raise NotFoundError("User not found")

    bookings = db.query(Booking).filter(
        (Booking.owner_id == user_id) | (Booking.requester_id == user_id),
        Booking.ratings.any(),
    ).order_by(Booking.id.desc()).all()

    ctx = ViewerContext.load(db, viewer)
    results = []
    for booking in bookings:
        if booking.is_party(viewer.id) or can_view_tool(ctx, booking.tool):
            results.append(unified_rating(booking))
    return results


def list_pending_ratings(db: Session, user: User) -> List[dict]:
    return [b.to_dict(viewer_id=user.id) for b in pending_rating_bookings(db, user)]
