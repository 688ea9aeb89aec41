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

"""Profile and user routes."""

from typing import Optional

from fastapi import APIRouter, Depends
from pydantic import BaseModel
from sqlalchemy.orm import Session

from toolshare.database import get_db
from toolshare.middleware.auth import get_current_user
from toolshare.models.user import User
from toolshare.routes.tools import LocationIn
from toolshare.services import ratings as rating_service
from toolshare.services import users as user_service
from toolshare.utils.helpers import envelope

router = APIRouter()


class ProfileUpdate(BaseModel):
    """Profile update request."""

    name: Optional[str] = None
    location: Optional[LocationIn] = None
    active: Optional[bool] = None


@router.get("/profile")
def get_profile(current_user: User = Depends(get_current_user)):
    return envelope(user_service.get_profile(current_user))


@router.post("/profile")
def update_profile(
    data: ProfileUpdate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    """Update name, location or active flag of the caller."""
    location = (data.location.latitude, data.location.longitude) if data.location else None
    profile = user_service.update_profile(
        db, current_user, name=data.name, location=location, active=data.active
    )
    return envelope(profile, "Profile updated")


@router.get("/users/{user_id}")
def get_user(
    user_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    return envelope(user_service.get_user(db, current_user, user_id))


@router.get("/users/{user_id}/ratings")
def get_user_ratings(
    user_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    """Unified ratings of the bookings a user took part in."""
    return envelope(rating_service.list_user_ratings(db, current_user, user_id))
