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

"""One-sided booking rating model."""

from typing import Optional

from sqlalchemy import CheckConstraint, Column, DateTime, ForeignKey, Integer, Text, UniqueConstraint
from sqlalchemy.orm import relationship

from toolshare.database import Base
from toolshare.utils.helpers import to_unix, utcnow

MIN_RATING_SCORE = 1
MAX_RATING_SCORE = 5


class BookingRating(Base):
    """Score one party of a returned booking gives the other."""

    __tablename__ = "booking_ratings"

    id = Column(Integer, primary_key=True, autoincrement=True)
    booking_id = Column(Integer, ForeignKey("bookings.id", ondelete="CASCADE"), nullable=False, index=True)
    from_user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    to_user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    rating = Column(Integer, nullable=False)
    comment = Column(Text, nullable=True)
    rated_at = Column(DateTime, nullable=False, default=utcnow)

    __table_args__ = (
        UniqueConstraint("booking_id", "from_user_id", name="uq_rating_side"),
        CheckConstraint(
            f"rating BETWEEN {MIN_RATING_SCORE} AND {MAX_RATING_SCORE}", name="ck_rating_range"
        ),
    )

    # Relationships
    booking = relationship("Booking", back_populates="ratings")

    def side_dict(self, user_id: Optional[int] = None) -> dict:
        """One side of the unified rating view."""
        return {
            "id": self.from_user_id if user_id is None else user_id,
            "rating": self.rating,
            "ratingComment": self.comment,
            "ratedAt": to_unix(self.rated_at),
        }

    def __repr__(self):
        return f"<BookingRating(booking_id={self.booking_id}, from={self.from_user_id}, rating={self.rating})>"
