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

"""User profiles."""

import logging
from typing import Optional

from sqlalchemy.orm import Session

from toolshare.database import unit_of_work
from toolshare.errors import NotFoundError, ValidationError
from toolshare.models.user import User
from toolshare.services import directory, geo, nomadic
from toolshare.services.visibility import can_view_user, user_location_for
from toolshare.utils.helpers import sanitize_input

logger = logging.getLogger(__name__)


def get_profile(user: User) -> dict:
    return user.to_dict(include_private=True)


def update_profile(
    db: Session,
    user: User,
    name: Optional[str] = None,
    location: Optional[geo.Location] = None,
    active: Optional[bool] = None,
) -> dict:
    """Update the caller's own profile.

    A new location moves the tools that live with the user in the same
    unit of work.
    """
    with unit_of_work(db):
        if name is not None:
            clean = sanitize_input(name, 255)
            if not clean:
                raise ValidationError("Name cannot be empty")
            user.name = clean

        if active is not None:
            user.is_active = active

        if location is not None:
            if not geo.validate_location(location):
                raise ValidationError("Location is out of range")
            old_location = user.location
            if old_location != location:
                nomadic.propagate_location_change(db, user.id, old_location, location)
                user.latitude_micro, user.longitude_micro = location

        db.flush()
        result = user.to_dict(include_private=True)

    logger.info("Profile of user %s updated", user.id)
    return result


def get_user(db: Session, viewer: User, user_id: int) -> dict:
    """Another user's profile, hidden when inactive unless a booking is shared."""
    user = directory.get_user(db, user_id)
    if user is None or not can_view_user(db, viewer, user):
        raise NotFoundError("User not found")

    location = user_location_for(viewer.id, user.id, user.location)
    return user.to_dict(location=location, include_private=viewer.id == user.id)
