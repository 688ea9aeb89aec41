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

"""Authentication dependencies."""

import logging
from typing import Optional

from fastapi import Depends, Request
from sqlalchemy.orm import Session

from toolshare.database import get_db
from toolshare.errors import UnauthorizedError
from toolshare.models.auth import AuthToken
from toolshare.models.user import User
from toolshare.utils.helpers import utcnow

logger = logging.getLogger(__name__)


def get_token_from_request(request: Request) -> Optional[str]:
    """Extract auth token from request cookies or header."""
    # Try cookie first
    token = request.cookies.get("auth_token")
    if token:
        return token

    # Try Authorization header
    auth_header = request.headers.get("Authorization")
    if auth_header and auth_header.startswith("Bearer "):
        return auth_header[7:]

    return None


def get_current_user(
    request: Request,
    db: Session = Depends(get_db),
) -> User:
    """Get the current authenticated user.

    Inactive accounts are still authenticated: being inactive only hides
    the user and their tools from others.
    """
    token = get_token_from_request(request)

    if not token:
        raise UnauthorizedError("Not authenticated")

    auth_token = db.query(AuthToken).filter(AuthToken.token == token).first()

    if not auth_token:
        raise UnauthorizedError("Invalid authentication token")

    if not auth_token.is_valid():
        logger.info("Expired or revoked token used for user %s", auth_token.user_id)
        raise UnauthorizedError("Authentication token expired or revoked")

    user = auth_token.user

    if not user:
        raise UnauthorizedError("User not found")

    # Update last used timestamp
    auth_token.last_used_at = utcnow()
    db.commit()

    return user
