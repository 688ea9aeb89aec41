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

"""Booking model."""

import enum
from datetime import datetime
from typing import Optional

from sqlalchemy import (
    CheckConstraint,
    Column,
    DateTime,
    ForeignKey,
    Integer,
    String,
    Text,
)
from sqlalchemy.orm import relationship

from toolshare.database import Base
from toolshare.utils.helpers import to_unix, utcnow


class BookingStatus(str, enum.Enum):
    PENDING = "PENDING"
    ACCEPTED = "ACCEPTED"
    REJECTED = "REJECTED"
    CANCELLED = "CANCELLED"
    PICKED = "PICKED"
    RETURNED = "RETURNED"


# Statuses that block the booked date range
ACTIVE_STATUSES = frozenset({BookingStatus.PENDING, BookingStatus.ACCEPTED, BookingStatus.PICKED})
TERMINAL_STATUSES = frozenset({BookingStatus.REJECTED, BookingStatus.CANCELLED, BookingStatus.RETURNED})

ACTIVE_STATUS_VALUES = tuple(s.value for s in ACTIVE_STATUSES)

# Timestamp column written when a booking enters each status
TRANSITION_TIMESTAMPS = {
    BookingStatus.ACCEPTED: "accepted_at",
    BookingStatus.REJECTED: "rejected_at",
    BookingStatus.CANCELLED: "cancelled_at",
    BookingStatus.PICKED: "picked_at",
    BookingStatus.RETURNED: "returned_at",
}


class Booking(Base):
    """Tool booking model."""

    __tablename__ = "bookings"

    id = Column(Integer, primary_key=True, autoincrement=True)
    tool_id = Column(Integer, ForeignKey("tools.id", ondelete="CASCADE"), nullable=False, index=True)
    requester_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    # Copied from the tool at creation time
    owner_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    start_date = Column(DateTime, nullable=False, index=True)
    end_date = Column(DateTime, nullable=False, index=True)
    contact = Column(Text, nullable=True)
    comments = Column(Text, nullable=True)
    status = Column(String(20), nullable=False, default=BookingStatus.PENDING.value, index=True)
    created_at = Column(DateTime, nullable=False, default=utcnow)
    updated_at = Column(DateTime, nullable=False, default=utcnow, onupdate=utcnow)
    accepted_at = Column(DateTime, nullable=True)
    rejected_at = Column(DateTime, nullable=True)
    cancelled_at = Column(DateTime, nullable=True)
    picked_at = Column(DateTime, nullable=True)
    returned_at = Column(DateTime, nullable=True)
    version = Column(Integer, nullable=False)

    __table_args__ = (
        CheckConstraint(
            "status IN ('PENDING', 'ACCEPTED', 'REJECTED', 'CANCELLED', 'PICKED', 'RETURNED')",
            name="ck_booking_status",
        ),
        CheckConstraint("end_date > start_date", name="ck_booking_range"),
    )

    __mapper_args__ = {"version_id_col": version}

    # Relationships
    tool = relationship("Tool", back_populates="bookings")
    ratings = relationship("BookingRating", back_populates="booking", cascade="all, delete-orphan")

    @property
    def booking_status(self) -> BookingStatus:
        return BookingStatus(self.status)

    @property
    def is_active(self) -> bool:
        return self.booking_status in ACTIVE_STATUSES

    def is_party(self, user_id: int) -> bool:
        return user_id in (self.owner_id, self.requester_id)

    def overlaps_with(self, start: datetime, end: datetime) -> bool:
        """Check if this booking's half-open range [start, end) overlaps another."""
        return self.start_date < end and self.end_date > start

    def to_dict(self, viewer_id: Optional[int] = None) -> dict:
        """Convert to dictionary.

        ``isRated`` reports whether ``viewer_id`` already rated this booking.
        """
        is_rated = False
        if viewer_id is not None:
            is_rated = any(r.from_user_id == viewer_id for r in self.ratings)

        return {
            "id": self.id,
            "toolId": self.tool_id,
            "fromUserId": self.requester_id,
            "toUserId": self.owner_id,
            "startDate": to_unix(self.start_date),
            "endDate": to_unix(self.end_date),
            "contact": self.contact or "",
            "comments": self.comments or "",
            "bookingStatus": self.status,
            "isRated": is_rated,
            "isNomadic": bool(self.tool.is_nomadic) if self.tool else False,
            "createdAt": to_unix(self.created_at),
            "updatedAt": to_unix(self.updated_at),
        }

    def __repr__(self):
        return (
            f"<Booking(id={self.id}, tool_id={self.tool_id}, "
            f"requester_id={self.requester_id}, status='{self.status}')>"
        )
