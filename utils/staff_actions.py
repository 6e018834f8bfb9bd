# utils/staff_actions.py
from enum import Enum
from typing import Optional

from utils.statuses import S_REJECTED, S_ACCEPTED, S_READY, S_DELIVERED, can_transition


class StaffAction(str, Enum):
    REJECT = "reject"
    ACCEPT = "accept"
    CALL_RIDER = "call_rider"
    MARK_DELIVERED = "mark_delivered"


# Status each action asks for
ACTION_TARGETS = {
    StaffAction.REJECT: S_REJECTED,
    StaffAction.ACCEPT: S_ACCEPTED,
    StaffAction.CALL_RIDER: S_READY,
    StaffAction.MARK_DELIVERED: S_DELIVERED,
}

# Button order on the order card
ACTION_ORDER = (
    StaffAction.REJECT,
    StaffAction.ACCEPT,
    StaffAction.CALL_RIDER,
    StaffAction.MARK_DELIVERED,
)


def target_status(action: StaffAction) -> str:
    return ACTION_TARGETS[action]


def available_actions(status: str) -> set[StaffAction]:
    """
    Actions the staff may trigger for an order in `status`.

    Enablement is read straight from the transition table, so an action is
    never offered for a transition the status model forbids:
    Reject for every non-terminal status, Accept only when pending,
    Call rider only when accepted, Mark delivered only when ready.
    """
    return {action for action in ACTION_ORDER if can_transition(status, ACTION_TARGETS[action])}


def forward_action(status: str) -> Optional[StaffAction]:
    """The single enabled action that moves the order forward, if any."""
    forward = [a for a in available_actions(status) if a is not StaffAction.REJECT]
    return forward[0] if forward else None
