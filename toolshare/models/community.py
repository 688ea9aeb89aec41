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

"""Community and membership models.

Membership management lives in another service; this one only reads the
rows to answer visibility questions.
"""

from sqlalchemy import CheckConstraint, Column, DateTime, ForeignKey, Integer, String, UniqueConstraint
from sqlalchemy.orm import relationship

from toolshare.database import Base
from toolshare.utils.helpers import utcnow

MEMBER_INVITED = "invited"
MEMBER_ACCEPTED = "accepted"


class Community(Base):
    """Community model."""

    __tablename__ = "communities"

    id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(String(255), nullable=False)
    owner_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    created_at = Column(DateTime, nullable=False, default=utcnow)

    # Relationships
    members = relationship("CommunityMember", back_populates="community", cascade="all, delete-orphan")

    def __repr__(self):
        return f"<Community(id={self.id}, name='{self.name}', owner_id={self.owner_id})>"


class CommunityMember(Base):
    """Membership of a user in a community."""

    __tablename__ = "community_members"

    id = Column(Integer, primary_key=True, autoincrement=True)
    community_id = Column(Integer, ForeignKey("communities.id", ondelete="CASCADE"), nullable=False)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    status = Column(String(20), nullable=False, default=MEMBER_INVITED)
    created_at = Column(DateTime, nullable=False, default=utcnow)

    __table_args__ = (
        UniqueConstraint("community_id", "user_id", name="uq_community_member"),
        CheckConstraint("status IN ('invited', 'accepted')", name="ck_member_status"),
    )

    # Relationships
    community = relationship("Community", back_populates="members")

    def __repr__(self):
        return (
            f"<CommunityMember(community_id={self.community_id}, "
            f"user_id={self.user_id}, status='{self.status}')>"
        )
