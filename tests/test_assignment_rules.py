# tests/test_assignment_rules.py
from __future__ import annotations

from datetime import datetime

import pytest

from rentline.domain.assignments import TaskState, assign, can_complete, toggle_complete, unassign
from rentline.domain.errors import PermissionDenied, ValidationError

NOW = datetime(2026, 3, 10, 12, 0)


def test_non_creator_cannot_assign_someone_else():
    for unit in (TaskState(), TaskState(assigned_to="bob"), TaskState(assigned_to="carol", completed=True)):
        with pytest.raises(PermissionDenied):
            assign(unit, requester="bob", is_creator=False, target="dave", notification_days_before=2)


def test_non_creator_self_assign_sets_assignee_and_lead_together():
    unit = TaskState()
    out = assign(unit, requester="bob", is_creator=False, target="bob", notification_days_before=3)
    assert out.assigned_to == "bob"
    assert out.notification_days_before == 3
    assert unit.assigned_to is None


def test_non_creator_cannot_take_over_another_assignment():
    unit = TaskState(assigned_to="carol", notification_days_before=1)
    with pytest.raises(PermissionDenied):
        assign(unit, requester="bob", is_creator=False, target="bob", notification_days_before=3)


def test_creator_override_is_unconditional():
    unit = TaskState(assigned_to="carol", notification_days_before=5)
    out = assign(unit, requester="alice", is_creator=True, target="dave", notification_days_before=None)
    assert out.assigned_to == "dave"
    assert out.notification_days_before is None

    cleared = assign(out, requester="alice", is_creator=True, target=None)
    assert cleared.assigned_to is None


def test_unassign_guard():
    mine = TaskState(assigned_to="bob", notification_days_before=2)
    assert unassign(mine, requester="bob", is_creator=False) == TaskState()

    theirs = TaskState(assigned_to="carol")
    with pytest.raises(PermissionDenied):
        unassign(theirs, requester="bob", is_creator=False)


def test_negative_lead_is_rejected():
    with pytest.raises(ValidationError):
        assign(TaskState(), requester="alice", is_creator=True, target="bob", notification_days_before=-1)


def test_completion_guard():
    assert can_complete(TaskState(), requester="bob", is_creator=False)
    assert can_complete(TaskState(assigned_to="bob"), requester="bob", is_creator=False)
    assert can_complete(TaskState(assigned_to="carol"), requester="alice", is_creator=True)
    assert not can_complete(TaskState(assigned_to="carol"), requester="bob", is_creator=False)

    with pytest.raises(PermissionDenied):
        toggle_complete(TaskState(assigned_to="carol"), requester="bob", is_creator=False, now=NOW)


def test_toggle_twice_restores_original_value():
    for start in (TaskState(assigned_to="bob"), TaskState(completed=True, completed_by="x", completed_at=NOW)):
        once = toggle_complete(start, requester="bob", is_creator=False, now=NOW)
        twice = toggle_complete(once, requester="bob", is_creator=False, now=NOW)
        assert once.completed is not start.completed
        assert twice.completed is start.completed


def test_completion_stamps_and_reopen_policy():
    done = toggle_complete(TaskState(), requester="bob", is_creator=False, now=NOW)
    assert (done.completed, done.completed_by, done.completed_at) == (True, "bob", NOW)

    reopened = toggle_complete(done, requester="bob", is_creator=False, now=NOW)
    assert reopened.completed_by is None and reopened.completed_at is None

    kept = toggle_complete(done, requester="bob", is_creator=False, now=NOW, clear_on_reopen=False)
    assert kept.completed is False
    assert kept.completed_by == "bob"
