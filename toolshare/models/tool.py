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

"""Tool, tool scoping and custody history models."""

from typing import List, Optional, Tuple

from sqlalchemy import (
    BigInteger,
    Boolean,
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


class ToolCommunity(Base):
    """Community a tool is scoped to."""

    __tablename__ = "tool_communities"

    tool_id = Column(Integer, ForeignKey("tools.id", ondelete="CASCADE"), primary_key=True)
    community_id = Column(Integer, ForeignKey("communities.id", ondelete="CASCADE"), primary_key=True)


class ToolTransport(Base):
    """Transport option offered for a tool."""

    __tablename__ = "tool_transports"

    tool_id = Column(Integer, ForeignKey("tools.id", ondelete="CASCADE"), primary_key=True)
    transport_option = Column(Integer, primary_key=True)


class ToolHistoryEntry(Base):
    """One pickup of a nomadic tool. Append-only."""

    __tablename__ = "tool_history"

    id = Column(Integer, primary_key=True, autoincrement=True)
    tool_id = Column(Integer, ForeignKey("tools.id", ondelete="CASCADE"), nullable=False, index=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    booking_id = Column(Integer, ForeignKey("bookings.id", ondelete="CASCADE"), nullable=False)
    pickup_date = Column(DateTime, nullable=False, default=utcnow)
    latitude_micro = Column(BigInteger, nullable=False)
    longitude_micro = Column(BigInteger, nullable=False)

    def to_dict(self, location: Optional[Tuple[int, int]] = None) -> dict:
        shown = location or (self.latitude_micro, self.longitude_micro)
        return {
            "id": self.id,
            "toolId": self.tool_id,
            "userId": self.user_id,
            "bookingId": self.booking_id,
            "pickupDate": to_unix(self.pickup_date),
            "location": {"latitude": shown[0], "longitude": shown[1]},
        }

    def __repr__(self):
        return f"<ToolHistoryEntry(tool_id={self.tool_id}, user_id={self.user_id}, booking_id={self.booking_id})>"


class Tool(Base):
    """Lendable tool.

    ``actual_holder_id`` is set only while a nomadic tool is picked up.
    ``cost`` never exceeds the estimated daily cost derived from the valuation.
    """

    __tablename__ = "tools"

    id = Column(Integer, primary_key=True, autoincrement=True)
    owner_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    actual_holder_id = Column(Integer, ForeignKey("users.id", ondelete="SET NULL"), nullable=True, index=True)
    title = Column(String(255), nullable=False)
    description = Column(Text, nullable=True)
    tool_category = Column(Integer, nullable=False)
    is_nomadic = Column(Boolean, nullable=False, default=False)
    is_available = Column(Boolean, nullable=False, default=True, index=True)
    may_be_free = Column(Boolean, nullable=False, default=False)
    ask_with_fee = Column(Boolean, nullable=False, default=False)
    # Location in microdegrees
    latitude_micro = Column(BigInteger, nullable=False, index=True)
    longitude_micro = Column(BigInteger, nullable=False, index=True)
    tool_valuation = Column(Integer, nullable=False)
    cost = Column(Integer, nullable=False, default=0)
    height = Column(Integer, nullable=True)
    weight = Column(Integer, nullable=True)
    # Kilometres, 0 = no limit
    max_distance = Column(Integer, nullable=False, default=0)
    # Requester-side rating aggregate
    rating_count = Column(Integer, nullable=False, default=0)
    rating_sum = Column(Integer, nullable=False, default=0)
    last_booked_at = Column(DateTime, nullable=True)
    created_at = Column(DateTime, nullable=False, default=utcnow)
    updated_at = Column(DateTime, nullable=False, default=utcnow, onupdate=utcnow)
    deleted_at = Column(DateTime, nullable=True, index=True)
    version = Column(Integer, nullable=False)

    __mapper_args__ = {"version_id_col": version}

    # Relationships
    owner = relationship("User", foreign_keys=[owner_id])
    holder = relationship("User", foreign_keys=[actual_holder_id])
    community_links = relationship("ToolCommunity", cascade="all, delete-orphan")
    transport_links = relationship("ToolTransport", cascade="all, delete-orphan")
    history = relationship(
        "ToolHistoryEntry",
        order_by="ToolHistoryEntry.id",
        cascade="all, delete-orphan",
    )
    bookings = relationship("Booking", back_populates="tool")

    @property
    def location(self) -> Tuple[int, int]:
        return (self.latitude_micro, self.longitude_micro)

    @property
    def community_ids(self) -> List[int]:
        return sorted(link.community_id for link in self.community_links)

    @property
    def transport_options(self) -> List[int]:
        return sorted(link.transport_option for link in self.transport_links)

    @property
    def is_deleted(self) -> bool:
        return self.deleted_at is not None

    @property
    def rating(self) -> float:
        """Average score given by borrowers, 0 when unrated."""
        if not self.rating_count:
            return 0.0
        return round(self.rating_sum / self.rating_count, 2)

    def to_dict(
        self,
        location: Optional[Tuple[int, int]] = None,
        estimated_daily_cost: Optional[int] = None,
        user_active: Optional[bool] = None,
        actual_user_active: Optional[bool] = None,
    ) -> dict:
        """Convert to dictionary.

        Args:
            location: Location to expose, defaults to the stored one.
            estimated_daily_cost: Derived cost ceiling for the valuation.
            user_active: Current active flag of the owner.
            actual_user_active: Current active flag of the holder, if any.
        """
        shown = location or self.location
        return {
            "id": self.id,
            "userId": self.owner_id,
            "userActive": user_active,
            "actualUserId": self.actual_holder_id,
            "actualUserActive": actual_user_active,
            "title": self.title,
            "description": self.description or "",
            "isAvailable": self.is_available,
            "mayBeFree": self.may_be_free,
            "askWithFee": self.ask_with_fee,
            "toolCategory": self.tool_category,
            "transportOptions": self.transport_options,
            "location": {"latitude": shown[0], "longitude": shown[1]},
            "cost": self.cost,
            "toolValuation": self.tool_valuation,
            "estimatedDailyCost": estimated_daily_cost,
            "height": self.height,
            "weight": self.weight,
            "maxDistance": self.max_distance,
            "isNomadic": self.is_nomadic,
            "communities": self.community_ids,
            "rating": self.rating,
            "ratingCount": self.rating_count,
            "createdAt": to_unix(self.created_at),
            "updatedAt": to_unix(self.updated_at),
        }

    def __repr__(self):
        return (
            f"<Tool(id={self.id}, owner_id={self.owner_id}, title='{self.title}', "
            f"nomadic={self.is_nomadic}, holder={self.actual_holder_id})>"
        )
