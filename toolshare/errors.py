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

"""Domain error taxonomy.

Every error carries the HTTP status and the stable ``errorCode`` used in the
response envelope. Visibility failures are raised as :class:`NotFoundError`
so that callers cannot distinguish a hidden resource from a missing one.
"""

from typing import Optional


class DomainError(Exception):
    """Base class for errors surfaced to API callers."""

    status_code = 400
    error_code = 1000
    default_message = "Request failed"

    def __init__(self, message: Optional[str] = None):
        self.message = message or self.default_message
        super().__init__(self.message)


class ValidationError(DomainError):
    """Malformed or out-of-range input."""

    status_code = 400
    error_code = 1001
    default_message = "Invalid request"


class UnauthorizedError(DomainError):
    status_code = 401
    error_code = 1002
    default_message = "Not authenticated"


class ForbiddenError(DomainError):
    """The actor is a party to the resource but may not perform the action."""

    status_code = 403
    error_code = 1003
    default_message = "Action not allowed"


class NotFoundError(DomainError):
    """Absent, or not visible to the caller."""

    status_code = 404
    error_code = 1004
    default_message = "Not found"


class ConflictError(DomainError):
    """Overlapping bookings, stale versions and other write races."""

    status_code = 409
    error_code = 1005
    default_message = "Conflicting update, please retry"


class DuplicateError(ConflictError):
    error_code = 1006
    default_message = "Already exists"


class InvalidTransitionError(DomainError):
    """Raised when a state change is not allowed from the current state."""

    status_code = 400
    error_code = 1007
    default_message = "Invalid state transition"

    def __init__(
        self,
        message: Optional[str] = None,
        current_status: Optional[str] = None,
        target_status: Optional[str] = None,
    ):
        self.current_status = current_status
        self.target_status = target_status
        if message is None and current_status is not None and target_status is not None:
            message = f"Invalid transition from {current_status} to {target_status}"
        super().__init__(message)


class InvalidStateError(InvalidTransitionError):
    error_code = 1008
    default_message = "Operation not allowed in the current state"


class UnavailableError(DomainError):
    """Store failure or timeout. The request may be retried."""

    status_code = 503
    error_code = 1009
    default_message = "Service temporarily unavailable, please retry"
