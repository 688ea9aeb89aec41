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

"""Booking routes."""

from typing import Optional

from fastapi import APIRouter, Depends
from pydantic import BaseModel, ConfigDict, Field, field_validator
from sqlalchemy.orm import Session

from toolshare.database import get_db
from toolshare.middleware.auth import get_current_user
from toolshare.models.booking import BookingStatus
from toolshare.models.rating import MAX_RATING_SCORE, MIN_RATING_SCORE
from toolshare.models.user import User
from toolshare.services import bookings as booking_service
from toolshare.services import ratings as rating_service
from toolshare.utils.helpers import MAX_UNIX_SECONDS, envelope, from_unix

router = APIRouter(prefix="/bookings")


class BookingCreate(BaseModel):
    """Booking creation request. Dates are UNIX seconds."""

    model_config = ConfigDict(populate_by_name=True)

    tool_id: int = Field(alias="toolId")
    start_date: int = Field(alias="startDate", ge=0, le=MAX_UNIX_SECONDS)
    end_date: int = Field(alias="endDate", ge=0, le=MAX_UNIX_SECONDS)
    contact: Optional[str] = None
    comments: Optional[str] = None

    @field_validator("end_date")
    @classmethod
    def validate_dates(cls, v, info):
        start = info.data.get("start_date")
        if start is not None and v <= start:
            raise ValueError("End date must be after start date")
        return v


class BookingStatusUpdate(BaseModel):
    """Booking transition request."""

    status: BookingStatus


class RatingCreate(BaseModel):
    """Rating submission."""

    rating: int = Field(ge=MIN_RATING_SCORE, le=MAX_RATING_SCORE)
    comment: Optional[str] = None


@router.post("")
def create_booking(
    data: BookingCreate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    """Request a tool for a date range."""
    booking = booking_service.create_booking(
        db,
        current_user,
        data.tool_id,
        from_unix(data.start_date),
        from_unix(data.end_date),
        contact=data.contact,
        comments=data.comments,
    )
    return envelope(booking, "Booking created")


@router.get("/requests/incoming")
def list_incoming(
    page: int = 0,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    return envelope(booking_service.list_incoming(db, current_user, page))


@router.get("/requests/outgoing")
def list_outgoing(
    page: int = 0,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    return envelope(booking_service.list_outgoing(db, current_user, page))


@router.get("/ratings/pending")
def list_pending_ratings(
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    """Returned bookings still waiting for the caller's rating."""
    return envelope(rating_service.list_pending_ratings(db, current_user))


@router.get("/pending-actions")
def pending_actions(
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    return envelope(booking_service.count_pending_actions(db, current_user))


@router.get("/{booking_id}")
def get_booking(
    booking_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    """Get booking details."""
    return envelope(booking_service.get_booking(db, current_user, booking_id))


@router.put("/{booking_id}")
def update_booking_status(
    booking_id: int,
    data: BookingStatusUpdate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    """Accept, reject, cancel, mark picked or mark returned."""
    booking = booking_service.transition_booking(db, current_user, booking_id, data.status)
    return envelope(booking, f"Booking {data.status.value.lower()}")


@router.post("/{booking_id}/rate")
def rate_booking(
    booking_id: int,
    data: RatingCreate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    rating = rating_service.rate_booking(db, current_user, booking_id, data.rating, data.comment)
    return envelope(rating, "Rating submitted")


@router.get("/{booking_id}/ratings")
def get_booking_ratings(
    booking_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    return envelope(rating_service.get_booking_ratings(db, current_user, booking_id))
