"""
Print job status workflow.

Jobs move pending -> queued -> printing -> completed, and may drop to failed
or cancelled from any non-terminal state. The store itself accepts any status
from any other; the transition table is only enforced in strict mode.
"""

from __future__ import annotations

from typing import Dict, FrozenSet, List

from .errors import InvalidTransition
from .models import JobStatus, StatusInfo, WorkflowMetadata

INITIAL_STATUS = JobStatus.PENDING

TRANSITIONS: Dict[JobStatus, FrozenSet[JobStatus]] = {
    JobStatus.PENDING: frozenset({JobStatus.QUEUED, JobStatus.FAILED, JobStatus.CANCELLED}),
    JobStatus.QUEUED: frozenset({JobStatus.PRINTING, JobStatus.FAILED, JobStatus.CANCELLED}),
    JobStatus.PRINTING: frozenset({JobStatus.COMPLETED, JobStatus.FAILED, JobStatus.CANCELLED}),
    JobStatus.COMPLETED: frozenset(),
    JobStatus.FAILED: frozenset(),
    JobStatus.CANCELLED: frozenset(),
}

STATUS_LABELS: Dict[JobStatus, str] = {
    JobStatus.PENDING: "Pending",
    JobStatus.QUEUED: "Queued",
    JobStatus.PRINTING: "Printing",
    JobStatus.COMPLETED: "Completed",
    JobStatus.FAILED: "Failed",
    JobStatus.CANCELLED: "Cancelled",
}

# Declaration order of JobStatus is the happy-path order.
_ORDER: List[JobStatus] = list(JobStatus)


def is_terminal(status: JobStatus) -> bool:
    return not TRANSITIONS[status]


def allowed_transitions(status: JobStatus) -> List[JobStatus]:
    return sorted(TRANSITIONS[status], key=_ORDER.index)


def check_transition(current: JobStatus, target: JobStatus, strict: bool = False) -> None:
    """
    Validate a requested status change.

    Args:
        current: Status the job has now
        target: Status being requested
        strict: When False every status may be set from every other (admin override)

    Raises:
        InvalidTransition: In strict mode, if target is not a legal successor of current
    """
    if not strict:
        return
    if target not in TRANSITIONS[current]:
        raise InvalidTransition(current.value, target.value)


def describe_workflow(strict: bool = False) -> WorkflowMetadata:
    return WorkflowMetadata(
        initial=INITIAL_STATUS,
        strict_transitions=strict,
        statuses=[
            StatusInfo(
                status=status,
                label=STATUS_LABELS[status],
                terminal=is_terminal(status),
                next_statuses=allowed_transitions(status),
            )
            for status in _ORDER
        ],
    )
