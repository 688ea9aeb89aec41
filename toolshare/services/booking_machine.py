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

"""Booking state machine: legal edges, actor roles and tool side effects."""

import enum
from typing import Callable, Dict, Optional, Set, Tuple

from toolshare.errors import ForbiddenError, InvalidTransitionError
from toolshare.models.booking import BookingStatus, TERMINAL_STATUSES
from toolshare.services import nomadic


class BookingRole(str, enum.Enum):
    OWNER = "owner"
    REQUESTER = "requester"


class ToolKind(str, enum.Enum):
    NOMADIC = "nomadic"
    STATIONARY = "stationary"


# ---------------------------------------------------------------------------
# Transition map: from_status -> {to_status: set_of_allowed_roles}
# ---------------------------------------------------------------------------

S = BookingStatus
R = BookingRole

TRANSITION_MAP: Dict[BookingStatus, Dict[BookingStatus, Set[BookingRole]]] = {
    S.PENDING: {
        S.ACCEPTED: {R.OWNER},
        S.REJECTED: {R.OWNER},
        S.CANCELLED: {R.REQUESTER},
    },
    S.ACCEPTED: {
        S.PICKED: {R.OWNER},
        S.CANCELLED: {R.REQUESTER},
    },
    S.PICKED: {
        S.RETURNED: {R.OWNER},
    },
}

# Tool mutations applied in the same unit of work as the status change.
# Stationary tools have no entries: their custody never moves.
SideEffect = Callable[..., None]

SIDE_EFFECTS: Dict[Tuple[BookingStatus, BookingStatus, ToolKind], SideEffect] = {
    (S.ACCEPTED, S.PICKED, ToolKind.NOMADIC): nomadic.on_picked,
    (S.PICKED, S.RETURNED, ToolKind.NOMADIC): nomadic.on_returned,
    (S.PENDING, S.REJECTED, ToolKind.NOMADIC): nomadic.on_released,
    (S.PENDING, S.CANCELLED, ToolKind.NOMADIC): nomadic.on_released,
    (S.ACCEPTED, S.CANCELLED, ToolKind.NOMADIC): nomadic.on_released,
}


def tool_kind(is_nomadic: bool) -> ToolKind:
    return ToolKind.NOMADIC if is_nomadic else ToolKind.STATIONARY


class BookingStateMachine:
    """Validates booking transitions against TRANSITION_MAP."""

    def get_valid_transitions(self, current_status: BookingStatus) -> Dict[BookingStatus, Set[BookingRole]]:
        return dict(TRANSITION_MAP.get(current_status, {}))

    def validate_transition(
        self,
        current_status: BookingStatus,
        target_status: BookingStatus,
        role: BookingRole,
    ) -> bool:
        """Check that ``role`` may move a booking from current to target.

        Raises:
            InvalidTransitionError: the edge does not exist.
            ForbiddenError: the edge exists but belongs to the other party.
        """
        if current_status in TERMINAL_STATUSES:
            raise InvalidTransitionError(
                f"Booking is already {current_status.value}",
                current_status.value,
                target_status.value,
            )

        allowed_roles = TRANSITION_MAP.get(current_status, {}).get(target_status)
        if allowed_roles is None:
            raise InvalidTransitionError(
                current_status=current_status.value,
                target_status=target_status.value,
            )

        if role not in allowed_roles:
            raise ForbiddenError(
                f"Only the {' or '.join(sorted(r.value for r in allowed_roles))} "
                f"can mark a booking as {target_status.value}"
            )

        return True

    def side_effect_for(
        self,
        current_status: BookingStatus,
        target_status: BookingStatus,
        is_nomadic: bool,
    ) -> Optional[SideEffect]:
        return SIDE_EFFECTS.get((current_status, target_status, tool_kind(is_nomadic)))
