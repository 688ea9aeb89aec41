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

"""Tool routes."""

from typing import List, Optional

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel, ConfigDict, Field
from sqlalchemy.orm import Session

from toolshare.database import get_db
from toolshare.middleware.auth import get_current_user
from toolshare.models.user import User
from toolshare.services import ratings as rating_service
from toolshare.services import tools as tool_service
from toolshare.utils.helpers import envelope

router = APIRouter(prefix="/tools")


class LocationIn(BaseModel):
    """Location in microdegrees."""

    latitude: int
    longitude: int


class ToolCreate(BaseModel):
    """Tool creation request."""

    model_config = ConfigDict(populate_by_name=True)

    title: str = Field(min_length=1, max_length=255)
    description: Optional[str] = None
    tool_category: int = Field(alias="toolCategory")
    tool_valuation: int = Field(alias="toolValuation", gt=0)
    cost: int = Field(default=0, ge=0)
    may_be_free: bool = Field(default=False, alias="mayBeFree")
    ask_with_fee: bool = Field(default=False, alias="askWithFee")
    is_nomadic: bool = Field(default=False, alias="isNomadic")
    is_available: bool = Field(default=True, alias="isAvailable")
    height: Optional[int] = None
    weight: Optional[int] = None
    max_distance: int = Field(default=0, ge=0, alias="maxDistance")
    transport_options: List[int] = Field(default_factory=list, alias="transportOptions")
    communities: List[int] = Field(default_factory=list)
    location: Optional[LocationIn] = None


class ToolUpdate(BaseModel):
    """Tool update request. Omitted fields are left unchanged."""

    model_config = ConfigDict(populate_by_name=True)

    title: Optional[str] = Field(default=None, max_length=255)
    description: Optional[str] = None
    tool_category: Optional[int] = Field(default=None, alias="toolCategory")
    tool_valuation: Optional[int] = Field(default=None, alias="toolValuation", gt=0)
    cost: Optional[int] = Field(default=None, ge=0)
    may_be_free: Optional[bool] = Field(default=None, alias="mayBeFree")
    ask_with_fee: Optional[bool] = Field(default=None, alias="askWithFee")
    is_nomadic: Optional[bool] = Field(default=None, alias="isNomadic")
    is_available: Optional[bool] = Field(default=None, alias="isAvailable")
    height: Optional[int] = None
    weight: Optional[int] = None
    max_distance: Optional[int] = Field(default=None, ge=0, alias="maxDistance")
    transport_options: Optional[List[int]] = Field(default=None, alias="transportOptions")
    communities: Optional[List[int]] = None
    location: Optional[LocationIn] = None


@router.get("")
def list_own_tools(
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    """List the caller's tools."""
    return envelope(tool_service.list_own_tools(db, current_user))


@router.post("")
def create_tool(
    data: ToolCreate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    tool = tool_service.create_tool(db, current_user, data.model_dump(exclude_unset=True))
    return envelope(tool, "Tool created")


@router.get("/search")
def search_tools(
    term: str = "",
    categories: List[int] = Query(default=[]),
    transport_options: List[int] = Query(default=[], alias="transportOptions"),
    distance: int = 0,
    latitude: Optional[int] = None,
    longitude: Optional[int] = None,
    max_cost: int = Query(default=0, alias="maxCost"),
    may_be_free: bool = Query(default=False, alias="mayBeFree"),
    community_id: Optional[int] = Query(default=None, alias="communityId"),
    page: int = 0,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    """Search available tools. Distance is in meters around the given or profile location."""
    search = tool_service.ToolSearch(
        term=term.strip(),
        categories=categories,
        transport_options=transport_options,
        distance=distance,
        latitude=latitude,
        longitude=longitude,
        max_cost=max_cost,
        may_be_free=may_be_free,
        community_id=community_id,
        page=page,
    )
    return envelope(tool_service.search_tools(db, current_user, search))


@router.get("/user/{user_id}")
def list_user_tools(
    user_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    return envelope(tool_service.list_user_tools(db, current_user, user_id))


@router.get("/{tool_id}")
def get_tool(
    tool_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    """Get tool details."""
    return envelope(tool_service.get_tool(db, current_user, tool_id))


@router.put("/{tool_id}")
def update_tool(
    tool_id: int,
    data: ToolUpdate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    tool = tool_service.update_tool(db, current_user, tool_id, data.model_dump(exclude_unset=True))
    return envelope(tool, "Tool updated")


@router.delete("/{tool_id}")
def delete_tool(
    tool_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    tool_service.delete_tool(db, current_user, tool_id)
    return envelope(None, "Tool deleted")


@router.get("/{tool_id}/history")
def get_tool_history(
    tool_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    """Pickup history of a nomadic tool."""
    return envelope(tool_service.get_tool_history(db, current_user, tool_id))


@router.get("/{tool_id}/ratings")
def get_tool_ratings(
    tool_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    return envelope(rating_service.list_tool_ratings(db, current_user, tool_id))
