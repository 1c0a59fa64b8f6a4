"""Transition history checks over the claim audit log."""

from typing import Iterable

from claim_workflow.exceptions import InvalidTransition
from claim_workflow.models.claim import ClaimStatus, TransitionRecord

# The only path a claim may take; the last step is Approved or Denied
LIFECYCLE = (
    ClaimStatus.PENDING,
    ClaimStatus.UNDER_REVIEW,
    ClaimStatus.PENDING_APPROVAL,
)


def status_path(history: Iterable[TransitionRecord]) -> list[ClaimStatus]:
    """Statuses the claim occupied, in order, starting from creation."""
    path: list[ClaimStatus] = []
    for record in history:
        if record.new_status is None:
            continue
        if not path or path[-1] is not record.new_status:
            path.append(record.new_status)
    return path


def verify_lifecycle(history: Iterable[TransitionRecord]) -> list[ClaimStatus]:
    """Check the audit trail follows Pending -> Under Review -> Pending Approval -> terminal.

    A terminal claim must show exactly one Under Review and one Pending
    Approval period, in that order. Returns the path; raises
    InvalidTransition when the trail breaks the maker-checker sequence.
    """
    path = status_path(history)
    if not path:
        raise InvalidTransition("Claim has no recorded history.")
    for index, status in enumerate(path):
        if index < len(LIFECYCLE):
            if status is not LIFECYCLE[index]:
                raise InvalidTransition(
                    f"Unexpected status {status.value!r} at step {index + 1}; "
                    f"expected {LIFECYCLE[index].value!r}."
                )
        elif index == len(LIFECYCLE):
            if not status.is_terminal:
                raise InvalidTransition(f"Unexpected status {status.value!r} after Pending Approval.")
        else:
            raise InvalidTransition(f"Status changed after final decision: {status.value!r}.")
    return path
