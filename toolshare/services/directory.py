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

"""Read-only lookups against the user directory and community membership."""

from typing import Optional, Set

from sqlalchemy import or_
from sqlalchemy.orm import Session

from toolshare.models.booking import Booking
from toolshare.models.community import MEMBER_ACCEPTED, Community, CommunityMember
from toolshare.models.user import User


def get_user(db: Session, user_id: int) -> Optional[User]:
    return db.query(User).filter(User.id == user_id).first()


def is_member(db: Session, user_id: int, community_id: int) -> bool:
    """Only accepted memberships count."""
    return db.query(CommunityMember).filter(
        CommunityMember.user_id == user_id,
        CommunityMember.community_id == community_id,
        CommunityMember.status == MEMBER_ACCEPTED,
    ).first() is not None


def is_community_owner(db: Session, user_id: int, community_id: int) -> bool:
    return db.query(Community).filter(
        Community.id == community_id,
        Community.owner_id == user_id,
    ).first() is not None


def community_exists(db: Session, community_id: int) -> bool:
    return db.query(Community.id).filter(Community.id == community_id).first() is not None


def accessible_community_ids(db: Session, user_id: int) -> Set[int]:
    """Communities the user owns or has accepted membership in."""
    owned = db.query(Community.id).filter(Community.owner_id == user_id).all()
    joined = db.query(CommunityMember.community_id).filter(
        CommunityMember.user_id == user_id,
        CommunityMember.status == MEMBER_ACCEPTED,
    ).all()
    return {row[0] for row in owned} | {row[0] for row in joined}


def booked_tool_ids(db: Session, user_id: int) -> Set[int]:
    """Tools the user has ever requested, whatever the outcome."""
    rows = db.query(Booking.tool_id).filter(Booking.requester_id == user_id).distinct().all()
    return {row[0] for row in rows}


def share_booking(db: Session, user_a: int, user_b: int) -> bool:
    """Whether the two users appear together on any booking."""
    return db.query(Booking.id).filter(
        or_(
            (Booking.requester_id == user_a) & (Booking.owner_id == user_b),
            (Booking.requester_id == user_b) & (Booking.owner_id == user_a),
        )
    ).first() is not None
