"""
Tests for scope resolution and the capability table

Tests cover:
- Director / HOD / Employee visibility predicates
- "My work" narrowing for approvals and reports
- Role capabilities and per-task relationship checks
"""

import pytest

from app.models.task import Task
from app.models.user import UserRole
from app.services.scope import (
    CAPABILITIES,
    Capability,
    OperationKind,
    can_delete_task,
    can_edit_task,
    can_reassign_task,
    can_reply_to_task,
    is_allowed,
    require_capability,
    scoped_tasks,
)
from app.utils.errors import Forbidden

from conftest import identity


def visible_ids(db, user, kind=OperationKind.LIST):
    return {task.id for task in scoped_tasks(db, identity(user), kind).all()}


class TestScopeResolver:
    """Visibility predicate per role"""

    @pytest.fixture
    def tasks(self, director, hod_it, employee, coworker, hr_employee, make_task):
        return {
            "mine": make_task(employee, director),
            "coworker": make_task(coworker, director),
            "delegated": make_task(coworker, employee),
            "hr": make_task(hr_employee, director),
        }

    def test_director_sees_everything(self, db, director, tasks):
        assert visible_ids(db, director) == {t.id for t in tasks.values()}

    def test_hod_sees_only_own_department(self, db, hod_it, tasks):
        assert visible_ids(db, hod_it) == {
            tasks["mine"].id, tasks["coworker"].id, tasks["delegated"].id
        }

    def test_hod_other_department(self, db, hod_hr, tasks):
        assert visible_ids(db, hod_hr) == {tasks["hr"].id}

    def test_employee_sees_assigned_and_delegated(self, db, employee, tasks):
        assert visible_ids(db, employee) == {tasks["mine"].id, tasks["delegated"].id}

    def test_employee_my_work_views_exclude_delegated(self, db, employee, tasks):
        for kind in (OperationKind.APPROVALS, OperationKind.REPORT):
            assert visible_ids(db, employee, kind) == {tasks["mine"].id}

    def test_delegated_task_outside_department_not_visible(
        self, db, director, employee, hr_employee, make_task
    ):
        """assignedBy only counts inside the employee's own department"""
        task = make_task(hr_employee, employee, department="HR")
        assert task.id not in visible_ids(db, employee)

    def test_hod_scope_unchanged_for_my_work_views(self, db, hod_it, tasks):
        assert visible_ids(db, hod_it, OperationKind.APPROVALS) == visible_ids(db, hod_it)


class TestCapabilities:
    """Role x operation table"""

    def test_only_director_creates_tasks(self, director, hod_it, employee):
        assert is_allowed(identity(director), Capability.CREATE_TASK)
        assert not is_allowed(identity(hod_it), Capability.CREATE_TASK)
        assert not is_allowed(identity(employee), Capability.CREATE_TASK)

    def test_everyone_may_file_daily_plan(self):
        assert CAPABILITIES[Capability.CREATE_DAILY_PLAN] == frozenset(UserRole)

    def test_progress_update_is_employee_only(self, director, employee):
        assert is_allowed(identity(employee), Capability.PROGRESS_UPDATE)
        assert not is_allowed(identity(director), Capability.PROGRESS_UPDATE)

    def test_require_capability_names_required_roles(self, employee):
        with pytest.raises(Forbidden) as exc:
            require_capability(identity(employee), Capability.APPROVE_HOD)
        assert exc.value.message == "Access denied. Required role: DIRECTOR or HOD"
        assert exc.value.status_code == 403


class TestRelationshipChecks:
    """Per-task checks evaluated after the scope matched"""

    def test_edit_rights(self, director, hod_it, hod_hr, employee, coworker, make_task):
        task = make_task(employee, director)
        assert can_edit_task(identity(employee), task)
        assert can_edit_task(identity(director), task)
        assert can_edit_task(identity(hod_it), task)
        assert not can_edit_task(identity(hod_hr), task)
        assert not can_edit_task(identity(coworker), task)

    def test_delete_rights(self, director, hod_it, employee, coworker, make_task):
        task = make_task(coworker, employee)
        assert can_delete_task(identity(employee), task)
        assert can_delete_task(identity(director), task)
        assert not can_delete_task(identity(coworker), task)
        assert not can_delete_task(identity(hod_it), task)

    def test_reassign_rights(self, director, hod_it, employee, coworker, make_task):
        task = make_task(coworker, employee)
        assert can_reassign_task(identity(employee), task)
        assert can_reassign_task(identity(hod_it), task)
        assert not can_reassign_task(identity(coworker), task)

    def test_reply_rights(self, director, hod_it, hod_hr, employee, coworker, make_task):
        task = make_task(employee, director)
        assert can_reply_to_task(identity(director), task)
        assert can_reply_to_task(identity(hod_it), task)
        assert can_reply_to_task(identity(employee), task)
        assert not can_reply_to_task(identity(hod_hr), task)
        assert not can_reply_to_task(identity(coworker), task)


def test_scoped_query_is_composable(db, director, employee, make_task):
    make_task(employee, director, priority="HIGH")
    make_task(employee, director, priority="LOW")
    query = scoped_tasks(db, identity(employee), OperationKind.LIST).filter(Task.priority == "HIGH")
    assert query.count() == 1
