"""
Task state machine.

Pure transition logic for the four loosely coupled lifecycle axes of a task:

    primary       status:            pending → assigned → approved → completed
                                     (+ on-hold, unposted)
    developer     developer_status:  pending → done | not-done | on-hold
    rejection     developer_status_rejection: fixed | unset
    disposition   final_status:      in-progress | rejected | done | unposted

Every operation takes an immutable `TaskAxes` snapshot and returns the full
mutation payload for a single update call, or raises. Nothing here touches
the database, the clock of the caller (timestamps are passed in or taken
once per call), or the attachment store.

The only cross-axis side effect is the rejection fix: applying
`developer_status_rejection = fixed` to a rejected task moves `final_status`
to `in-progress` within the same payload. Completion review is itself a
primary-axis transition that sets the disposition in both directions.
"""
from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, replace
from datetime import datetime, timezone
from enum import Enum
from typing import Any

from workorders.core.exceptions import InvalidTransitionException, ValidationException


class TaskStatus(str, Enum):
    PENDING = "pending"
    ASSIGNED = "assigned"
    APPROVED = "approved"
    COMPLETED = "completed"
    ON_HOLD = "on-hold"
    UNPOSTED = "unposted"


class DeveloperStatus(str, Enum):
    PENDING = "pending"
    DONE = "done"
    NOT_DONE = "not-done"
    ON_HOLD = "on-hold"


class FinalStatus(str, Enum):
    IN_PROGRESS = "in-progress"
    REJECTED = "rejected"
    DONE = "done"
    UNPOSTED = "unposted"


REJECTION_FIXED = "fixed"
UNPOST_STATUS = "unposted"

TASK_STATUSES: tuple[str, ...] = tuple(s.value for s in TaskStatus)
DEVELOPER_STATUSES: tuple[str, ...] = tuple(s.value for s in DeveloperStatus)
FINAL_STATUSES: tuple[str, ...] = tuple(s.value for s in FinalStatus)


# ── Transition tables ─────────────────────────────────────────────────────────

_STATUS_TRANSITIONS: dict[TaskStatus, frozenset[TaskStatus]] = {
    TaskStatus.PENDING: frozenset(
        {TaskStatus.ASSIGNED, TaskStatus.ON_HOLD, TaskStatus.UNPOSTED}
    ),
    TaskStatus.ASSIGNED: frozenset(
        {TaskStatus.APPROVED, TaskStatus.COMPLETED, TaskStatus.ON_HOLD, TaskStatus.UNPOSTED}
    ),
    TaskStatus.APPROVED: frozenset(
        {TaskStatus.COMPLETED, TaskStatus.ON_HOLD, TaskStatus.UNPOSTED}
    ),
    TaskStatus.COMPLETED: frozenset({TaskStatus.ON_HOLD, TaskStatus.UNPOSTED}),
    TaskStatus.ON_HOLD: frozenset(
        {
            TaskStatus.PENDING,
            TaskStatus.ASSIGNED,
            TaskStatus.APPROVED,
            TaskStatus.COMPLETED,
            TaskStatus.UNPOSTED,
        }
    ),
    TaskStatus.UNPOSTED: frozenset(),  # terminal
}

# Primary states from which a completion review is possible
_REVIEWABLE: frozenset[TaskStatus] = frozenset(
    {TaskStatus.ASSIGNED, TaskStatus.APPROVED, TaskStatus.ON_HOLD, TaskStatus.COMPLETED}
)

_DEVELOPER_WORKED: frozenset[DeveloperStatus] = frozenset(
    {DeveloperStatus.DONE, DeveloperStatus.NOT_DONE, DeveloperStatus.ON_HOLD}
)

_DEVELOPER_TRANSITIONS: dict[DeveloperStatus, frozenset[DeveloperStatus]] = {
    DeveloperStatus.PENDING: frozenset(DeveloperStatus),
    DeveloperStatus.DONE: _DEVELOPER_WORKED,
    DeveloperStatus.NOT_DONE: _DEVELOPER_WORKED,
    DeveloperStatus.ON_HOLD: _DEVELOPER_WORKED,
}


# ── Snapshot ──────────────────────────────────────────────────────────────────

@dataclass(frozen=True)
class TaskAxes:
    """Immutable view of the fields the state machine reasons about."""

    status: TaskStatus = TaskStatus.PENDING
    assigned: bool = False
    has_assignee: bool = False
    approved: bool = False
    completion_approved: bool = False
    developer_status: DeveloperStatus = DeveloperStatus.PENDING
    developer_status_rejection: str | None = None
    final_status: FinalStatus = FinalStatus.IN_PROGRESS
    unposted: bool = False

    @classmethod
    def from_record(cls, record: Any) -> "TaskAxes":
        """Build a snapshot from any object exposing the task attributes."""
        return cls(
            status=TaskStatus(record.status),
            assigned=bool(record.assigned),
            has_assignee=record.assigned_to is not None,
            approved=bool(record.approved),
            completion_approved=bool(record.completion_approved),
            developer_status=DeveloperStatus(record.developer_status or DeveloperStatus.PENDING),
            developer_status_rejection=record.developer_status_rejection or None,
            final_status=FinalStatus(record.final_status or FinalStatus.IN_PROGRESS),
            unposted=bool(record.unposted),
        )


def _now() -> datetime:
    return datetime.now(timezone.utc)


def _ensure_active(axes: TaskAxes) -> None:
    if axes.unposted or axes.status is TaskStatus.UNPOSTED:
        raise InvalidTransitionException("Task has been unposted and can no longer change")


def _parse(enum_cls: type[Enum], value: str, field: str) -> Any:
    try:
        return enum_cls(value)
    except ValueError:
        allowed = ", ".join(m.value for m in enum_cls)  # type: ignore[attr-defined]
        raise ValidationException.for_field(
            field, f"Invalid {field}: must be one of {allowed}"
        )


# ── Primary axis ──────────────────────────────────────────────────────────────

def check_status_transition(axes: TaskAxes, target: TaskStatus) -> None:
    """
    Validate a move on the primary axis.
    Raises InvalidTransitionException when the move or one of its guards fails.
    """
    if target not in _STATUS_TRANSITIONS[axes.status]:
        raise InvalidTransitionException(
            f"Cannot move task from '{axes.status.value}' to '{target.value}'"
        )
    if target is TaskStatus.PENDING and axes.approved:
        raise InvalidTransitionException("An approved task cannot return to 'pending'")
    if target is TaskStatus.ASSIGNED and not axes.has_assignee:
        raise InvalidTransitionException("Entering 'assigned' requires an assignee")
    if target is TaskStatus.COMPLETED and not axes.completion_approved:
        raise InvalidTransitionException("Entering 'completed' requires completion approval")


def initial_values() -> dict[str, Any]:
    """Axis values for a freshly created task."""
    return {
        "status": TaskStatus.PENDING.value,
        "assigned": False,
        "approved": False,
        "completion_approved": False,
        "developer_status": DeveloperStatus.PENDING.value,
        "developer_status_rejection": None,
        "final_status": FinalStatus.IN_PROGRESS.value,
        "unposted": False,
    }


def assign(
    axes: TaskAxes,
    *,
    assignee: Mapping[str, Any],
    remarks: str = "",
    assigned_date: datetime | None = None,
    now: datetime | None = None,
) -> dict[str, Any]:
    """Assign the task. Assignment also approves it for work."""
    _ensure_active(axes)
    if not assignee:
        raise ValidationException.for_field("assigned_to", "An assignee is required")
    if axes.status is not TaskStatus.ASSIGNED:
        check_status_transition(replace(axes, has_assignee=True), TaskStatus.ASSIGNED)
    now = now or _now()
    return {
        "status": TaskStatus.ASSIGNED.value,
        "assigned": True,
        "assigned_to": dict(assignee),
        "assigned_to_username": assignee.get("username"),
        "assigned_date": assigned_date or now,
        "assignment_remarks": remarks,
        "approved": True,
        "approved_at": now,
    }


def approve(axes: TaskAxes, *, now: datetime | None = None) -> dict[str, Any]:
    _ensure_active(axes)
    check_status_transition(axes, TaskStatus.APPROVED)
    changes: dict[str, Any] = {"status": TaskStatus.APPROVED.value}
    if not axes.approved:
        changes.update(approved=True, approved_at=now or _now())
    return changes


def hold(axes: TaskAxes) -> dict[str, Any]:
    _ensure_active(axes)
    check_status_transition(axes, TaskStatus.ON_HOLD)
    return {"status": TaskStatus.ON_HOLD.value}


def resume(axes: TaskAxes, target: TaskStatus) -> dict[str, Any]:
    """Leave on-hold for `target`, subject to that state's guards."""
    _ensure_active(axes)
    if axes.status is not TaskStatus.ON_HOLD:
        raise InvalidTransitionException("Only an on-hold task can be resumed")
    if target is TaskStatus.UNPOSTED:
        raise InvalidTransitionException("Use unpost to retract a task")
    check_status_transition(axes, target)
    return {"status": target.value}


def review_completion(
    axes: TaskAxes,
    *,
    accepted: bool,
    remarks: str = "",
    time_taken: int | None = None,
    now: datetime | None = None,
) -> dict[str, Any]:
    """
    Accept or reject the developer's finished work.

    Only assigned, approved, on-hold or completed tasks can be reviewed.
    Accepting completes the task. Rejecting sets final_status to 'rejected'
    and clears the rejection sub-axis so a new fix cycle can start; a
    completed task is reopened as 'approved' so it can be accepted again
    once the fix is reported.
    """
    _ensure_active(axes)
    if axes.status not in _REVIEWABLE:
        raise InvalidTransitionException(
            f"A '{axes.status.value}' task has no work to review"
        )
    if axes.developer_status is not DeveloperStatus.DONE:
        raise InvalidTransitionException(
            "Completion can only be reviewed once the developer status is 'done'"
        )
    now = now or _now()
    changes: dict[str, Any] = {}
    if time_taken is not None:
        changes["time_taken"] = time_taken

    if accepted:
        if axes.status is TaskStatus.COMPLETED and axes.completion_approved:
            raise InvalidTransitionException("Task completion is already approved")
        if axes.status is not TaskStatus.COMPLETED:
            check_status_transition(
                replace(axes, completion_approved=True), TaskStatus.COMPLETED
            )
        changes.update(
            status=TaskStatus.COMPLETED.value,
            completion_approved=True,
            completion_approved_at=now,
            completion_remarks=remarks,
            final_status=FinalStatus.DONE.value,
        )
        return changes

    if axes.status is TaskStatus.COMPLETED:
        changes["status"] = TaskStatus.APPROVED.value
    changes.update(
        completion_approved=False,
        completion_approved_at=now,
        rejection_remarks=remarks,
        final_status=FinalStatus.REJECTED.value,
        developer_status_rejection=None,
    )
    return changes


# ── Developer axis ────────────────────────────────────────────────────────────

def developer_update(
    axes: TaskAxes,
    *,
    developer_status: str | None,
    remarks: str | None,
    done_date: datetime | None = None,
    rejection_status: str | None = None,
    rejection_remarks: str | None = None,
    now: datetime | None = None,
) -> dict[str, Any]:
    """
    Apply a developer report.

    Requires a valid developer_status and non-empty remarks. When
    `rejection_status` is 'fixed' the task must currently be rejected, and
    final_status moves to 'in-progress' in the same payload.
    """
    errors: list[dict[str, str]] = []
    if not developer_status:
        errors.append({"field": "developer_status", "message": "Field required"})
    if not remarks or not remarks.strip():
        errors.append({"field": "developer_remarks", "message": "Field required"})
    if errors:
        raise ValidationException("Developer status and remarks are required", errors=errors)

    target = _parse(DeveloperStatus, developer_status, "developer_status")  # type: ignore[arg-type]
    rejection = (rejection_status or "").strip() or None
    if rejection is not None and rejection != REJECTION_FIXED:
        raise ValidationException.for_field(
            "developer_status_rejection",
            f"Invalid developer_status_rejection: must be '{REJECTION_FIXED}' or empty",
        )

    _ensure_active(axes)
    if target not in _DEVELOPER_TRANSITIONS[axes.developer_status]:
        raise InvalidTransitionException(
            f"Cannot move developer status from '{axes.developer_status.value}' "
            f"to '{target.value}'"
        )

    changes: dict[str, Any] = {
        "developer_status": target.value,
        "developer_remarks": remarks,
    }
    if done_date is not None:
        changes["developer_done_date"] = done_date
    elif target is DeveloperStatus.DONE:
        changes["developer_done_date"] = now or _now()
    if rejection_remarks:
        changes["developer_rejection_remarks"] = rejection_remarks

    if rejection == REJECTION_FIXED:
        changes.update(apply_rejection_fix(axes))
    return changes


def apply_rejection_fix(axes: TaskAxes) -> dict[str, Any]:
    """Mark a rejection as fixed, reopening the task's final disposition."""
    if axes.final_status is not FinalStatus.REJECTED:
        raise InvalidTransitionException(
            "A rejection fix can only be reported for a rejected task"
        )
    return {
        "developer_status_rejection": REJECTION_FIXED,
        "final_status": FinalStatus.IN_PROGRESS.value,
    }


# ── Retraction ────────────────────────────────────────────────────────────────

def unpost_values(
    *, force_status: bool = True, now: datetime | None = None
) -> dict[str, Any]:
    """
    Field set written to every task in a bulk unpost.

    With `force_status` the primary and final axes also move to 'unposted';
    without it only the retraction axis changes and the prior status is kept.
    """
    now = now or _now()
    values: dict[str, Any] = {
        "unposted": True,
        "unposted_at": now,
        "unpost_status": UNPOST_STATUS,
    }
    if force_status:
        values.update(
            status=TaskStatus.UNPOSTED.value,
            final_status=FinalStatus.UNPOSTED.value,
        )
    return values


def retract_only_values(*, now: datetime | None = None) -> dict[str, Any]:
    return unpost_values(force_status=False, now=now)


def full_unpost_values(*, now: datetime | None = None) -> dict[str, Any]:
    return unpost_values(force_status=True, now=now)


def is_reportable_completed(record: Any) -> bool:
    """
    The exact predicate completion reporting uses.
    `CRUDTask.list_completed` filters with the same three conditions in SQL.
    """
    return (
        bool(record.completion_approved)
        and record.final_status == FinalStatus.DONE.value
        and record.unposted is not True
    )
