# utils/statuses.py

# --- 1. STATUSES ---
S_PENDING = "pending"  # Created by the customer upload, waiting for the pharmacy
S_ACCEPTED = "accepted"  # Prescription checked, order confirmed
S_READY = "ready"  # Rider called, order on its way
S_DELIVERED = "delivered"  # Handed over to the customer
S_REJECTED = "rejected"  # Refused by the pharmacy

ALL_STATUSES = (S_PENDING, S_ACCEPTED, S_READY, S_DELIVERED, S_REJECTED)

# --- 2. STATUS GROUPS ---

# Orders still moving through the pipeline
ACTIVE_STATUSES = {
    S_PENDING,
    S_ACCEPTED,
    S_READY,
}

# Orders that can no longer change
TERMINAL_STATUSES = {
    S_DELIVERED,
    S_REJECTED,
}

# --- 3. TRANSITIONS ---
# Linear happy path with a single "reject" exit from every active state.
# Nothing ever goes back to an earlier state.
ALLOWED_TO = {
    S_PENDING: {S_ACCEPTED, S_REJECTED},
    S_ACCEPTED: {S_READY, S_REJECTED},
    S_READY: {S_DELIVERED, S_REJECTED},
    S_DELIVERED: set(),
    S_REJECTED: set(),
}


def is_terminal(status: str) -> bool:
    return status in TERMINAL_STATUSES


def can_transition(from_status: str, to_status: str) -> bool:
    """
    Rejecting is allowed from any status that is not terminal, unknown ones
    included. Every other move needs a known source status.
    """
    if to_status == S_REJECTED:
        return not is_terminal(from_status)
    return to_status in ALLOWED_TO.get(from_status, set())
