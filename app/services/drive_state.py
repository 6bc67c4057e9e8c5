"""
Drive state machine.

One authoritative table of status transitions and of the operations each
status permits. Every handler that changes a drive asks this module first
instead of comparing status strings itself.

    draft -> published -> open -> ongoing -> completed -> results_published

A draft may also be opened directly. ``cancelled`` is reachable from
draft, published, open and ongoing.
"""

import enum
import logging

from app.exceptions import StateError, ValidationError
from app.models.placement_drive import DriveStatus, PlacementDrive

logger = logging.getLogger(__name__)


class Operation(str, enum.Enum):
    UPDATE_DETAILS = "update_details"
    DELETE = "delete"
    REGISTER = "register"
    UNREGISTER = "unregister"
    SUBMIT_RESULTS = "submit_results"
    UPDATE_RESULT = "update_result"


TRANSITIONS = {
    DriveStatus.DRAFT: {DriveStatus.PUBLISHED, DriveStatus.OPEN, DriveStatus.CANCELLED},
    DriveStatus.PUBLISHED: {DriveStatus.OPEN, DriveStatus.CANCELLED},
    DriveStatus.OPEN: {DriveStatus.ONGOING, DriveStatus.CANCELLED},
    DriveStatus.ONGOING: {DriveStatus.COMPLETED, DriveStatus.CANCELLED},
    DriveStatus.COMPLETED: {DriveStatus.RESULTS_PUBLISHED},
    DriveStatus.RESULTS_PUBLISHED: set(),
    DriveStatus.CANCELLED: set(),
}

LEGAL_OPERATIONS = {
    DriveStatus.DRAFT: {Operation.UPDATE_DETAILS, Operation.DELETE},
    DriveStatus.PUBLISHED: {Operation.UPDATE_DETAILS, Operation.DELETE},
    DriveStatus.OPEN: {
        Operation.UPDATE_DETAILS,
        Operation.DELETE,
        Operation.REGISTER,
        Operation.UNREGISTER,
    },
    DriveStatus.ONGOING: {Operation.UNREGISTER},
    DriveStatus.COMPLETED: {Operation.SUBMIT_RESULTS, Operation.UPDATE_RESULT},
    DriveStatus.RESULTS_PUBLISHED: {Operation.UPDATE_RESULT},
    DriveStatus.CANCELLED: {Operation.DELETE},
}

# Reached only as a side effect of submitting results
AUTOMATIC_TARGETS = {DriveStatus.RESULTS_PUBLISHED}

# (code, message) reported when an operation is refused
_REFUSALS = {
    Operation.UPDATE_DETAILS: (
        "DRIVE_LOCKED",
        "Drive details cannot be changed once the drive is underway",
    ),
    Operation.DELETE: (
        "DRIVE_IN_PROGRESS",
        "Cannot delete a drive that is ongoing or completed",
    ),
    Operation.REGISTER: ("DRIVE_NOT_OPEN", "Drive is not open for registration"),
    Operation.UNREGISTER: (
        "UNREGISTER_NOT_ALLOWED",
        "Drive does not accept unregistration in its current status",
    ),
    Operation.SUBMIT_RESULTS: (
        "DRIVE_NOT_COMPLETED",
        "Cannot submit results for drive that is not completed",
    ),
    Operation.UPDATE_RESULT: (
        "RESULTS_NOT_AVAILABLE",
        "Results can only be updated after the drive is completed",
    ),
}


def parse_status(value) -> DriveStatus:
    """Coerce a raw status string, raising ValidationError for unknown values."""
    try:
        return DriveStatus(value)
    except ValueError:
        allowed = ", ".join(status.value for status in DriveStatus)
        raise ValidationError(
            f"Invalid status: {value}. Must be one of: {allowed}",
            code="INVALID_STATUS",
        )


def can_transition(current, target) -> bool:
    return DriveStatus(target) in TRANSITIONS[DriveStatus(current)]


def legal_operations(status) -> set:
    return set(LEGAL_OPERATIONS[DriveStatus(status)])


def is_allowed(drive: PlacementDrive, operation: Operation) -> bool:
    return operation in LEGAL_OPERATIONS[DriveStatus(drive.status)]


def require_operation(drive: PlacementDrive, operation: Operation) -> None:
    """Raise StateError unless ``operation`` is legal for the drive's status."""
    if is_allowed(drive, operation):
        return
    code, message = _REFUSALS[operation]
    logger.warning(
        "Refused %s on drive %s in status %s (%s)",
        operation.value, drive.id, drive.status, code
    )
    raise StateError(message, code=code)


def transition(drive: PlacementDrive, target) -> DriveStatus:
    """
    Move the drive to ``target``.

    Does not commit; callers persist the change together with whatever
    else the operation writes.

    Returns:
        The previous status.
    """
    current = DriveStatus(drive.status)
    target = parse_status(target)
    if not can_transition(current, target):
        raise StateError(
            f"Cannot move drive from {current.value} to {target.value}",
            code="INVALID_TRANSITION",
        )
    drive.status = target.value
    logger.info("Drive %s: %s -> %s", drive.id, current.value, target.value)
    return current
