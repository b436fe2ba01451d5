"""
HTTP tests for the tasks API

Covers the response envelope, camelCase payloads, status codes for each
error kind, and the end-to-end scenario of an assigned task moving through
progress updates and both approval gates.
"""

from datetime import datetime, timedelta

import pytest

from app.models.notification import Notification

from conftest import auth_headers


def create_task(client, director, assignee, **overrides):
    body = {
        "title": "Migrate mail server",
        "description": "Move to the new cluster",
        "assignedTo": assignee.id,
        "departmentId": assignee.department,
        "priority": "HIGH",
        "startDate": "2024-06-01T00:00:00",
        "dueDate": "2024-06-10T00:00:00",
    }
    body.update(overrides)
    response = client.post("/api/tasks", json=body, headers=auth_headers(director))
    assert response.status_code == 201, response.json()
    return response.json()["data"]["task"]


class TestEnvelope:

    def test_missing_token(self, client):
        response = client.get("/api/tasks")
        assert response.status_code == 401
        assert response.json() == {
            "success": False,
            "message": "Authentication required. Please provide a token.",
            "data": None,
            "errors": ["No token provided"],
        }

    def test_invalid_token(self, client):
        response = client.get("/api/tasks", headers={"Authorization": "Bearer nonsense"})
        assert response.status_code == 401
        assert response.json()["success"] is False

    def test_inactive_user_rejected(self, client, make_user):
        from app.models.user import UserRole

        ghost = make_user("Former Staff", UserRole.EMPLOYEE, "IT", is_active=False)
        response = client.get("/api/tasks", headers=auth_headers(ghost))
        assert response.status_code == 401

    def test_created_task_payload(self, client, db, director, employee):
        data = create_task(client, director, employee)

        assert data["status"] == "PENDING"
        assert data["department"] == "IT"
        assert data["priority"] == "HIGH"
        assert data["assignedTo"]["id"] == employee.id
        assert data["assignedBy"]["id"] == director.id
        assert data["hodApproved"] is False
        assert data["directorApproved"] is False
        assert data["completedAt"] is None
        assert data["version"] == 1
        assert data["updates"] == []
        # Due date is in the past
        assert data["isOverdue"] is True
        assert data["daysOverdue"] > 0

        notifications = db.query(Notification).filter(Notification.recipient_id == employee.id).all()
        assert [n.type for n in notifications] == ["TASK_ASSIGNED"]

    def test_single_task_and_list_payload_shapes(self, client, director, employee):
        task = create_task(client, director, employee)

        single = client.get(f"/api/tasks/{task['id']}", headers=auth_headers(director)).json()["data"]
        assert list(single) == ["task"]
        assert single["task"]["id"] == task["id"]

        listing = client.get("/api/tasks", headers=auth_headers(director)).json()["data"]
        assert set(listing) == {"tasks", "count"}
        assert listing["count"] == 1
        assert [t["id"] for t in listing["tasks"]] == [task["id"]]

    def test_body_type_errors_use_envelope(self, client, director, employee):
        response = client.post(
            "/api/tasks",
            json={"title": "x", "assignedTo": employee.id, "dueDate": "not-a-date"},
            headers=auth_headers(director),
        )
        assert response.status_code == 400
        body = response.json()
        assert body["success"] is False
        assert body["message"] == "Validation failed"
        assert body["errors"] and "dueDate" in body["errors"][0]

    def test_unknown_admin_field_rejected(self, client, director, employee):
        task = create_task(client, director, employee)
        response = client.patch(
            f"/api/tasks/{task['id']}",
            json={"hodApproved": True},
            headers=auth_headers(director),
        )
        assert response.status_code == 400

    def test_request_id_header(self, client, director):
        response = client.get("/api/tasks", headers={**auth_headers(director), "X-Request-ID": "abc123"})
        assert response.headers["X-Request-ID"] == "abc123"
        assert response.headers["X-Content-Type-Options"] == "nosniff"


class TestCreateAndRead:

    def test_employee_assignment_requires_department(self, client, director, employee):
        response = client.post(
            "/api/tasks",
            json={"title": "x", "assignedTo": employee.id, "dueDate": "2030-01-01T00:00:00"},
            headers=auth_headers(director),
        )
        assert response.status_code == 400
        assert response.json()["message"] == "Department is required when assigning to Employee"

    def test_missing_department_not_masked_by_past_due_date(self, client, director, employee):
        response = client.post(
            "/api/tasks",
            json={"title": "x", "assignedTo": employee.id, "dueDate": "2024-06-10T00:00:00"},
            headers=auth_headers(director),
        )
        assert response.status_code == 400
        assert response.json()["message"] == "Department is required when assigning to Employee"

    def test_department_mismatch(self, client, director, employee):
        response = client.post(
            "/api/tasks",
            json={"title": "x", "assignedTo": employee.id, "departmentId": "HR", "dueDate": "2030-01-01T00:00:00"},
            headers=auth_headers(director),
        )
        assert response.status_code == 400

    def test_unknown_assignee(self, client, director):
        response = client.post(
            "/api/tasks",
            json={"title": "x", "assignedTo": "nobody", "departmentId": "IT", "dueDate": "2030-01-01T00:00:00"},
            headers=auth_headers(director),
        )
        assert response.status_code == 404
        assert response.json()["message"] == "Assigned user not found or inactive"

    def test_hod_cannot_create(self, client, hod_it, employee):
        response = client.post(
            "/api/tasks",
            json={"title": "x", "assignedTo": employee.id, "departmentId": "IT", "dueDate": "2030-01-01T00:00:00"},
            headers=auth_headers(hod_it),
        )
        assert response.status_code == 403

    def test_hod_of_other_department_gets_404(self, client, director, hod_hr, hod_it, employee):
        task = create_task(client, director, employee)
        assert client.get(f"/api/tasks/{task['id']}", headers=auth_headers(hod_hr)).status_code == 404
        assert client.get(f"/api/tasks/{task['id']}", headers=auth_headers(hod_it)).status_code == 200

    def test_missing_task_404(self, client, director):
        response = client.get("/api/tasks/does-not-exist", headers=auth_headers(director))
        assert response.status_code == 404
        assert response.json()["message"] == "Task not found"


class TestListTasks:

    @pytest.fixture
    def tasks(self, client, director, hod_it, employee, coworker, hr_employee):
        return {
            "late": create_task(client, director, employee, priority="LOW"),
            "future": create_task(client, director, coworker, dueDate=(datetime.utcnow() + timedelta(days=5)).isoformat()),
            "hr": create_task(client, director, hr_employee),
        }

    def test_scope_applied(self, client, hod_it, tasks):
        response = client.get("/api/tasks", headers=auth_headers(hod_it))
        ids = {t["id"] for t in response.json()["data"]["tasks"]}
        assert ids == {tasks["late"]["id"], tasks["future"]["id"]}

    def test_newest_first(self, client, director, tasks):
        data = client.get("/api/tasks", headers=auth_headers(director)).json()["data"]["tasks"]
        created = [t["createdAt"] for t in data]
        assert created == sorted(created, reverse=True)

    def test_filters(self, client, director, employee, tasks):
        headers = auth_headers(director)
        by_priority = client.get("/api/tasks", params={"priority": "LOW"}, headers=headers).json()["data"]["tasks"]
        assert [t["id"] for t in by_priority] == [tasks["late"]["id"]]

        by_assignee = client.get("/api/tasks", params={"assignedTo": employee.id}, headers=headers).json()["data"]["tasks"]
        assert [t["id"] for t in by_assignee] == [tasks["late"]["id"]]

        overdue = client.get("/api/tasks", params={"overdueOnly": "true"}, headers=headers).json()["data"]["tasks"]
        assert {t["id"] for t in overdue} == {tasks["late"]["id"], tasks["hr"]["id"]}

        by_department = client.get("/api/tasks", params={"departmentId": "HR"}, headers=headers).json()["data"]["tasks"]
        assert [t["id"] for t in by_department] == [tasks["hr"]["id"]]

    def test_my_tasks_only(self, client, coworker, tasks):
        data = client.get("/api/tasks", params={"myTasksOnly": "true"}, headers=auth_headers(coworker)).json()["data"]["tasks"]
        assert [t["id"] for t in data] == [tasks["future"]["id"]]

    def test_other_department_filter_forbidden(self, client, hod_it, tasks):
        response = client.get("/api/tasks", params={"departmentId": "HR"}, headers=auth_headers(hod_it))
        assert response.status_code == 403


class TestLifecycleScenario:

    def test_progress_then_approvals(self, client, db, director, hod_it, employee):
        task = create_task(client, director, employee)
        url = f"/api/tasks/{task['id']}"

        response = client.post(f"{url}/updates", json={"status": "IN_PROGRESS", "remarks": "started"},
                               headers=auth_headers(employee))
        assert response.status_code == 200
        update = response.json()["data"]["task"]["updates"][0]
        assert update["previousStatus"] == "PENDING"
        assert update["status"] == "IN_PROGRESS"
        assert update["updatedBy"]["id"] == employee.id

        response = client.post(f"{url}/updates", json={"status": "BLOCKED", "remarks": "waiting on vendor"},
                               headers=auth_headers(employee))
        assert response.status_code == 200

        response = client.post(f"{url}/updates", json={"status": "COMPLETED", "remarks": "done"},
                               headers=auth_headers(employee))
        assert response.status_code == 400
        assert response.json()["message"] == "Invalid status transition from BLOCKED to COMPLETED"
        assert response.json()["errors"] == ["Cannot change status from BLOCKED to COMPLETED"]

        assert client.post(f"{url}/approve-hod", headers=auth_headers(hod_it)).status_code == 200
        second = client.post(f"{url}/approve-hod", headers=auth_headers(hod_it))
        assert second.status_code == 409

        response = client.post(f"{url}/approve-director", headers=auth_headers(director))
        assert response.status_code == 200
        data = response.json()["data"]["task"]
        assert data["hodApproved"] is True and data["directorApproved"] is True
        assert data["directorApprovedBy"]["id"] == director.id

        response = client.post(f"{url}/updates", json={"status": "IN_PROGRESS", "remarks": "more"},
                               headers=auth_headers(employee))
        assert response.status_code == 409
        assert response.json()["message"] == "Cannot update task that has been approved by Director"

        approvals = db.query(Notification).filter(
            Notification.recipient_id == employee.id,
            Notification.type == "APPROVAL_RESPONSE",
        ).count()
        assert approvals == 2

    def test_restricted_fields_in_progress_update(self, client, director, employee):
        task = create_task(client, director, employee)
        response = client.post(
            f"/api/tasks/{task['id']}/updates",
            json={"status": "IN_PROGRESS", "remarks": "x", "priority": task["priority"]},
            headers=auth_headers(employee),
        )
        assert response.status_code == 400
        assert response.json()["errors"] == ["Employees can only update status and remarks; not allowed: priority"]

    def test_approval_timestamp_in_progress_update(self, client, director, employee):
        task = create_task(client, director, employee)
        response = client.post(
            f"/api/tasks/{task['id']}/updates",
            json={"status": "IN_PROGRESS", "remarks": "go", "hodApprovedAt": "2024-01-01T00:00:00"},
            headers=auth_headers(employee),
        )
        assert response.status_code == 400
        assert response.json()["errors"] == ["Employees can only update status and remarks; not allowed: hodApprovedAt"]

    def test_admin_complete_and_reopen(self, client, director, employee):
        task = create_task(client, director, employee)
        url = f"/api/tasks/{task['id']}"

        response = client.patch(url, json={"status": "COMPLETED"}, headers=auth_headers(director))
        data = response.json()["data"]["task"]
        assert data["status"] == "COMPLETED"
        assert data["completedAt"] is not None
        assert data["isOverdue"] is False
        assert data["version"] == 2

        response = client.post(f"{url}/reopen", headers=auth_headers(employee))
        data = response.json()["data"]["task"]
        assert data["status"] == "IN_PROGRESS"
        assert data["completedAt"] is None
        assert data["updates"][-1]["comment"] == "Task reopened from COMPLETED"

        assert client.post(f"{url}/reopen", headers=auth_headers(employee)).status_code == 400

    def test_admin_edit_with_stale_version(self, client, director, employee):
        task = create_task(client, director, employee)
        response = client.patch(
            f"/api/tasks/{task['id']}",
            json={"title": "Renamed", "version": 7},
            headers=auth_headers(director),
        )
        assert response.status_code == 409

    def test_reply_thread(self, client, director, hod_it, employee):
        task = create_task(client, director, employee)
        url = f"/api/tasks/{task['id']}"
        updated = client.post(f"{url}/updates", json={"status": "IN_PROGRESS", "remarks": "started"},
                              headers=auth_headers(employee)).json()["data"]["task"]
        update_id = updated["updates"][0]["id"]

        response = client.post(f"{url}/updates/{update_id}/reply", json={"message": "Keep me posted"},
                               headers=auth_headers(hod_it))
        assert response.status_code == 200
        reply = response.json()["data"]["task"]["updates"][0]["replies"][0]
        assert reply["message"] == "Keep me posted"
        assert reply["repliedBy"]["id"] == hod_it.id

        empty = client.post(f"{url}/updates/{update_id}/reply", json={"message": ""}, headers=auth_headers(director))
        assert empty.status_code == 400

    def test_delete(self, client, director, employee):
        task = create_task(client, director, employee)
        url = f"/api/tasks/{task['id']}"

        assert client.delete(url, headers=auth_headers(employee)).status_code == 403
        response = client.delete(url, headers=auth_headers(director))
        assert response.status_code == 200
        assert response.json() == {
            "success": True,
            "message": "Task deleted successfully",
            "data": None,
            "errors": None,
        }
        assert client.get(url, headers=auth_headers(director)).status_code == 404
