from __future__ import annotations

from io import BytesIO

from openpyxl import load_workbook

from helpers import apply, auth, bootstrap_admin, create_drive, next_stage, register_student, reject


def _populate(client):
    admin = bootstrap_admin(client)
    drive = create_drive(client, admin)
    ids = []
    for i in range(3):
        token, _uid = register_student(client, f"s{i}@example.com", f"Student {i}")
        ids.append(apply(client, token, drive["id"]).get_json()["data"]["id"])
    next_stage(client, admin, ids[0])
    reject(client, admin, ids[1])
    return admin, drive


def test_drive_funnel(app_client):
    _app, client = app_client
    admin, drive = _populate(client)

    res = client.get(f"/api/v1/admin/drives/{drive['id']}/funnel", headers=auth(admin))
    assert res.status_code == 200
    data = res.get_json()["data"]
    assert data["total"] == 3
    assert data["process"] == ["OA", "Interview", "HR"]
    assert {r["stage"]: r["count"] for r in data["byStage"]} == {"Interview": 1, "OA": 2}
    assert {r["status"]: r["count"] for r in data["byStatus"]} == {"applied": 2, "rejected": 1}


def test_drive_applications_list(app_client):
    _app, client = app_client
    admin, drive = _populate(client)

    res = client.get(f"/api/v1/admin/drives/{drive['id']}/applications", headers=auth(admin))
    rows = res.get_json()["data"]
    assert len(rows) == 3
    assert {r["student"]["email"] for r in rows} == {"s0@example.com", "s1@example.com", "s2@example.com"}


def test_applications_export(app_client):
    _app, client = app_client
    admin, drive = _populate(client)

    res = client.get(f"/api/v1/admin/drives/{drive['id']}/applications/export.xlsx", headers=auth(admin))
    assert res.status_code == 200
    assert res.mimetype == "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"

    wb = load_workbook(BytesIO(res.data))
    assert wb.sheetnames == ["Meta", "Applications", "Funnel"]

    rows = list(wb["Applications"].iter_rows(values_only=True))
    assert rows[0] == ("email", "name", "stage", "status", "nextStep", "appliedDate")
    assert len(rows) == 4

    meta = {k: v for k, v in wb["Meta"].iter_rows(min_row=2, values_only=True)}
    assert meta["company"] == "Acme"
    assert meta["process"] == "OA > Interview > HR"


def test_reports_unknown_drive(app_client):
    _app, client = app_client
    admin = bootstrap_admin(client)
    assert client.get("/api/v1/admin/drives/nope/funnel", headers=auth(admin)).status_code == 404
