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

"""User model."""

from typing import Optional, Tuple

from sqlalchemy import BigInteger, Boolean, Column, DateTime, Integer, String
from sqlalchemy.orm import relationship

from toolshare.database import Base
from toolshare.models.rating import MAX_RATING_SCORE
from toolshare.utils.helpers import to_unix, utcnow


class User(Base):
    """User model.

    ``is_active`` is a visibility attribute: an inactive user can still sign
    in, but their tools and profile disappear for people without a shared
    booking history.
    """

    __tablename__ = "users"

    id = Column(Integer, primary_key=True, autoincrement=True)
    email = Column(String(255), unique=True, nullable=False, index=True)
    name = Column(String(255), nullable=False)
    is_active = Column(Boolean, nullable=False, default=True)
    # Profile location in microdegrees
    latitude_micro = Column(BigInteger, nullable=True)
    longitude_micro = Column(BigInteger, nullable=True)
    # Incremental rating aggregate
    rating_count = Column(Integer, nullable=False, default=0)
    rating_sum = Column(Integer, nullable=False, default=0)
    created_at = Column(DateTime, nullable=False, default=utcnow)
    updated_at = Column(DateTime, nullable=False, default=utcnow, onupdate=utcnow)

    # Relationships
    auth_tokens = relationship("AuthToken", back_populates="user", cascade="all, delete-orphan")

    @property
    def location(self) -> Optional[Tuple[int, int]]:
        """Profile location as a (latitude, longitude) microdegree pair."""
        if self.latitude_micro is None or self.longitude_micro is None:
            return None
        return (self.latitude_micro, self.longitude_micro)

    @property
    def rating_average(self) -> float:
        if not self.rating_count:
            return 0.0
        return self.rating_sum / self.rating_count

    @property
    def rating(self) -> int:
        """Average rating on a 0-100 scale."""
        return round(self.rating_average / MAX_RATING_SCORE * 100)

    def to_dict(self, location: Optional[Tuple[int, int]] = None, include_private: bool = False) -> dict:
        """Convert to dictionary.

        Args:
            location: Location to expose, defaults to the stored one.
            include_private: Include fields only the user may see.
        """
        shown = location if location is not None else self.location
        result = {
            "id": self.id,
            "name": self.name,
            "active": self.is_active,
            "rating": self.rating,
            "ratingCount": self.rating_count,
            "location": {"latitude": shown[0], "longitude": shown[1]} if shown else None,
            "createdAt": to_unix(self.created_at),
        }

        if include_private:
            result["email"] = self.email

        return result

    def __repr__(self):
        return f"<User(id={self.id}, email='{self.email}', active={self.is_active})>"
