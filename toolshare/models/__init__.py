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

"""Database models for ToolShare."""

from toolshare.models.user import User
from toolshare.models.auth import AuthToken
from toolshare.models.community import Community, CommunityMember
from toolshare.models.tool import Tool, ToolCommunity, ToolHistoryEntry, ToolTransport
from toolshare.models.booking import Booking, BookingStatus
from toolshare.models.rating import BookingRating

__all__ = [
    "User",
    "AuthToken",
    "Community",
    "CommunityMember",
    "Tool",
    "ToolCommunity",
    "ToolHistoryEntry",
    "ToolTransport",
    "Booking",
    "BookingStatus",
    "BookingRating",
]
