import pytest

from utils.staff_actions import (
    StaffAction, available_actions, forward_action, target_status,
)
from utils.statuses import (
    ALL_STATUSES, S_PENDING, S_ACCEPTED, S_READY, S_DELIVERED, S_REJECTED, can_transition,
)


@pytest.mark.parametrize("status,expected", [
    (S_PENDING, {StaffAction.REJECT, StaffAction.ACCEPT}),
    (S_ACCEPTED, {StaffAction.REJECT, StaffAction.CALL_RIDER}),
    (S_READY, {StaffAction.REJECT, StaffAction.MARK_DELIVERED}),
    (S_DELIVERED, set()),
    (S_REJECTED, set()),
])
def test_available_actions_per_status(status, expected):
    assert available_actions(status) == expected


def test_every_enabled_action_is_a_legal_transition():
    for status in ALL_STATUSES:
        for action in available_actions(status):
            assert can_transition(status, target_status(action))


def test_at_most_one_forward_action():
    for status in ALL_STATUSES:
        forward = available_actions(status) - {StaffAction.REJECT}
        assert len(forward) <= 1


def test_forward_action():
    assert forward_action(S_PENDING) is StaffAction.ACCEPT
    assert forward_action(S_ACCEPTED) is StaffAction.CALL_RIDER
    assert forward_action(S_READY) is StaffAction.MARK_DELIVERED
    assert forward_action(S_DELIVERED) is None


def test_unknown_status_enables_reject_only():
    assert available_actions("shipped") == {StaffAction.REJECT}
    assert forward_action("shipped") is None


def test_action_values_parse_back():
    assert StaffAction("call_rider") is StaffAction.CALL_RIDER
    with pytest.raises(ValueError):
        StaffAction("teleport")
