# rentline/domain/assignments.py
from __future__ import annotations

from dataclasses import dataclass, replace
from datetime import datetime
from typing import Optional

from .errors import PermissionDenied, ValidationError

# -----------------------------------------------------------------------------
# Assignment / completion rules
# -----------------------------------------------------------------------------
# One assignable unit is either an agreement check item or a timeline task.
# Both are mapped onto TaskState by their services; the rules below never see
# storage rows, so a failed guard cannot leave a half-mutated row behind.
#
# The "creator" is the agreement's created_by, or for timeline events the event
# owner / property owner. The caller decides and passes is_creator.
# -----------------------------------------------------------------------------


@dataclass(frozen=True)
class TaskState:
    assigned_to: Optional[str] = None
    notification_days_before: Optional[int] = None
    completed: bool = False
    completed_by: Optional[str] = None
    completed_at: Optional[datetime] = None


def can_assign(state: TaskState, *, requester: str, is_creator: bool, target: Optional[str]) -> bool:
    if is_creator:
        return True
    if target is None:
        # non-creators may only drop their own assignment
        return state.assigned_to == requester
    if target != requester:
        return False
    # self-assign, but never over somebody else's assignment
    return state.assigned_to in (None, requester)


def can_complete(state: TaskState, *, requester: str, is_creator: bool) -> bool:
    return is_creator or state.assigned_to is None or state.assigned_to == requester


def assign(
    state: TaskState,
    *,
    requester: str,
    is_creator: bool,
    target: Optional[str],
    notification_days_before: Optional[int] = None,
) -> TaskState:
    if notification_days_before is not None and int(notification_days_before) < 0:
        raise ValidationError("notification_days_before must be >= 0")

    if not can_assign(state, requester=requester, is_creator=is_creator, target=target):
        if target is None:
            raise PermissionDenied("You can only unassign tasks assigned to you")
        if target != requester:
            raise PermissionDenied("You can only assign tasks to yourself")
        raise PermissionDenied("Task is already assigned to another user")

    # assignee and lead time move together
    return replace(
        state,
        assigned_to=target,
        notification_days_before=int(notification_days_before) if notification_days_before is not None else None,
    )


def unassign(state: TaskState, *, requester: str, is_creator: bool) -> TaskState:
    return assign(state, requester=requester, is_creator=is_creator, target=None, notification_days_before=None)


def set_completion(
    state: TaskState,
    *,
    requester: str,
    is_creator: bool,
    completed: bool,
    now: datetime,
    clear_on_reopen: bool = True,
) -> TaskState:
    if not can_complete(state, requester=requester, is_creator=is_creator):
        raise PermissionDenied("You can only update tasks assigned to you")

    if completed == state.completed:
        return state

    if completed:
        return replace(state, completed=True, completed_by=requester, completed_at=now)

    if clear_on_reopen:
        return replace(state, completed=False, completed_by=None, completed_at=None)
    return replace(state, completed=False)


def toggle_complete(
    state: TaskState,
    *,
    requester: str,
    is_creator: bool,
    now: datetime,
    clear_on_reopen: bool = True,
) -> TaskState:
    return set_completion(
        state,
        requester=requester,
        is_creator=is_creator,
        completed=not state.completed,
        now=now,
        clear_on_reopen=clear_on_reopen,
    )
