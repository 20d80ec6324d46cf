from __future__ import annotations

from typing import Any

ADMIN_EMAIL = "admin@example.com"
PASSWORD = "password123"


def auth(token: str) -> dict[str, str]:
    return {"Authorization": f"Bearer {token}"}


def login(client, email: str, password: str = PASSWORD) -> str:
    res = client.post("/api/v1/auth/login", json={"email": email, "password": password})
    assert res.status_code == 200, res.get_json()
    return res.get_json()["data"]["access_token"]


def bootstrap_admin(client) -> str:
    res = client.post(
        "/api/v1/auth/bootstrap",
        headers={"X-Bootstrap-Token": "test-bootstrap"},
        json={"email": ADMIN_EMAIL, "password": PASSWORD, "name": "Placement Admin"},
    )
    assert res.status_code == 201, res.get_json()
    return login(client, ADMIN_EMAIL)


def register_student(client, email: str, name: str = "Student") -> tuple[str, str]:
    res = client.post("/api/v1/auth/register", json={"email": email, "password": PASSWORD, "name": name})
    assert res.status_code == 201, res.get_json()
    user_id = res.get_json()["data"]["id"]
    return login(client, email), user_id


def schedule_for(process: list[str]) -> list[dict[str, Any]]:
    return [
        {"stage": stage, "date": f"2030-01-{10 + 2 * i:02d}", "time": "10:30 AM", "venue": f"Room {i + 1}"}
        for i, stage in enumerate(process)
    ]


def create_drive(client, admin_token: str, **overrides: Any) -> dict[str, Any]:
    process = overrides.pop("process", ["OA", "Interview", "HR"])
    body = {
        "company": "Acme",
        "role": "SDE Intern",
        "process": process,
        "processSchedule": schedule_for(process),
        **overrides,
    }
    res = client.post("/api/v1/admin/drives", json=body, headers=auth(admin_token))
    assert res.status_code == 201, res.get_json()
    return res.get_json()["data"]


def apply(client, token: str, drive_id: str):
    return client.post(f"/api/v1/drives/{drive_id}/apply", headers=auth(token))


def next_stage(client, admin_token: str, application_id: str):
    return client.put(f"/api/v1/admin/applications/{application_id}/next-stage", headers=auth(admin_token))


def reject(client, admin_token: str, application_id: str):
    return client.put(f"/api/v1/admin/applications/{application_id}/reject", headers=auth(admin_token))
