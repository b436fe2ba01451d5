"""
Tests for assignment rules: assignee role, department resolution,
reassignment scope and parent links.
"""

import pytest

from app.models.user import User, UserRole
from app.services.assignment import (
    creates_cycle,
    load_active_assignee,
    validate_assignment,
    validate_parent_link,
    validate_reassignment,
)
from app.utils.errors import (
    DependencyNotFound,
    DepartmentMismatch,
    Forbidden,
    InvalidAssigneeRole,
    ValidationFailure,
)

from conftest import identity


class TestValidateAssignment:

    def test_hod_assignee_brings_own_department(self, director, hod_it):
        assert validate_assignment(identity(director), hod_it, "Finance") == "IT"
        assert validate_assignment(identity(director), hod_it, None) == "IT"

    def test_employee_requires_department(self, director, employee):
        with pytest.raises(ValidationFailure) as exc:
            validate_assignment(identity(director), employee, None)
        assert exc.value.message == "Department is required when assigning to Employee"

    def test_employee_department_must_match(self, director, employee):
        with pytest.raises(DepartmentMismatch):
            validate_assignment(identity(director), employee, "HR")

    def test_employee_matching_department(self, director, employee):
        assert validate_assignment(identity(director), employee, "IT") == "IT"

    def test_director_is_never_an_assignee(self, director, make_user):
        other = make_user("Second Director", UserRole.DIRECTOR, "Management")
        with pytest.raises(InvalidAssigneeRole) as exc:
            validate_assignment(identity(director), other, "Management")
        assert exc.value.status_code == 400


class TestLoadActiveAssignee:

    def test_missing_user(self, db):
        with pytest.raises(DependencyNotFound) as exc:
            load_active_assignee(db, "does-not-exist")
        assert exc.value.status_code == 404

    def test_inactive_user(self, db, make_user):
        inactive = make_user("Gone Employee", UserRole.EMPLOYEE, "IT", is_active=False)
        with pytest.raises(DependencyNotFound):
            load_active_assignee(db, inactive.id)

    def test_active_user(self, db, employee):
        assert load_active_assignee(db, employee.id).id == employee.id


class TestReassignment:

    def test_non_director_stays_in_department(self, director, hod_it, hr_employee, employee, make_task):
        task = make_task(employee, director)
        with pytest.raises(Forbidden):
            validate_reassignment(identity(hod_it), task, hr_employee)

    def test_non_director_cannot_redirect_department(self, director, hod_it, employee, coworker, make_task):
        task = make_task(employee, director)
        assert validate_reassignment(identity(hod_it), task, coworker, "HR") == "IT"

    def test_director_may_move_across_departments(self, director, employee, hr_employee, make_task):
        task = make_task(employee, director)
        assert validate_reassignment(identity(director), task, hr_employee, "HR") == "HR"


class TestParentLinks:

    def test_missing_parent(self, db, director):
        with pytest.raises(DependencyNotFound):
            validate_parent_link(db, identity(director), "nope")

    def test_self_link_is_a_cycle(self, db, director, employee, make_task):
        task = make_task(employee, director)
        with pytest.raises(ValidationFailure) as exc:
            validate_parent_link(db, identity(director), task.id, task)
        assert exc.value.errors == ["Parent task would create a cycle"]

    def test_descendant_as_parent_is_a_cycle(self, db, director, employee, make_task):
        root = make_task(employee, director)
        child = make_task(employee, director, parent_task_id=root.id)
        grandchild = make_task(employee, director, parent_task_id=child.id)
        assert creates_cycle(db, root.id, grandchild)
        with pytest.raises(ValidationFailure):
            validate_parent_link(db, identity(director), grandchild.id, root)

    def test_existing_loop_above_does_not_hang(self, db, director, employee, make_task):
        a = make_task(employee, director)
        b = make_task(employee, director, parent_task_id=a.id)
        a.parent_task_id = b.id
        db.commit()
        unrelated = make_task(employee, director)
        assert creates_cycle(db, unrelated.id, a) is False

    def test_cross_department_parent_forbidden_for_hod(
        self, db, director, hod_it, employee, hr_employee, make_task
    ):
        task = make_task(employee, director)
        hr_task = make_task(hr_employee, director)
        with pytest.raises(Forbidden):
            validate_parent_link(db, identity(hod_it), hr_task.id, task)
        assert validate_parent_link(db, identity(director), hr_task.id, task).id == hr_task.id

    def test_unsaved_user_objects_are_enough(self, director):
        """Department resolution needs no database round trip"""
        assignee = User(name="Temp", email="t@example.com", role=UserRole.HOD.value, department="Ops")
        assert validate_assignment(identity(director), assignee, None) == "Ops"
