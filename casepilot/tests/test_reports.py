"""
Report Tests
============

Drafting, sharing with read/edit permissions and one-way finalization.
"""

from casepilot.tests.factories import create_case, register


def _create(client, principal, **fields):
    payload = {"title": "Weekly summary", "content": "Initial findings", "reportType": "case_summary"}
    payload.update(fields)
    response = client.post("/api/v1/reports", json=payload, headers=principal["headers"])
    assert response.status_code == 201, response.text
    return response.json()["data"]


def _share(client, owner, report_id, target, permission="read"):
    return client.post(f"/api/v1/reports/{report_id}/share", json={
        "principalId": target["user"]["id"],
        "principalKind": target["user"]["role"],
        "permission": permission,
    }, headers=owner["headers"])


class TestReportSharing:
    """Read and edit shares"""

    def test_read_then_edit_share(self, client):
        owner = register(client, "lawyer")
        reader = register(client, "lawyer")
        report = _create(client, owner)

        assert client.get(f"/api/v1/reports/{report['id']}", headers=reader["headers"]).status_code == 404

        assert _share(client, owner, report["id"], reader).status_code == 200
        response = client.get(f"/api/v1/reports/{report['id']}", headers=reader["headers"])
        assert response.status_code == 200
        response = client.put(f"/api/v1/reports/{report['id']}", json={"content": "Changed"},
                              headers=reader["headers"])
        assert response.status_code == 403

        # Re-sharing overwrites the permission
        _share(client, owner, report["id"], reader, permission="edit")
        response = client.put(f"/api/v1/reports/{report['id']}", json={"content": "Changed"},
                              headers=reader["headers"])
        assert response.status_code == 200
        data = response.json()["data"]
        assert data["content"] == "Changed"
        assert len(data["sharedWith"]) == 1
        assert data["sharedWith"][0]["permission"] == "edit"

    def test_shared_report_listed(self, client):
        owner = register(client, "lawyer")
        reader = register(client, "citizen")
        report = _create(client, owner)
        _share(client, owner, report["id"], reader)
        data = client.get("/api/v1/reports", headers=reader["headers"]).json()["data"]
        assert [r["id"] for r in data] == [report["id"]]

    def test_only_owner_shares_and_deletes(self, client):
        owner = register(client, "lawyer")
        editor = register(client, "lawyer")
        third = register(client, "citizen")
        report = _create(client, owner)
        _share(client, owner, report["id"], editor, permission="edit")

        assert _share(client, editor, report["id"], third).status_code == 403
        assert client.delete(f"/api/v1/reports/{report['id']}", headers=editor["headers"]).status_code == 403
        assert client.delete(f"/api/v1/reports/{report['id']}", headers=owner["headers"]).status_code == 200

    def test_share_with_unknown_principal(self, client):
        owner = register(client, "lawyer")
        report = _create(client, owner)
        response = client.post(f"/api/v1/reports/{report['id']}/share", json={
            "principalId": "nobody", "principalKind": "citizen",
        }, headers=owner["headers"])
        assert response.status_code == 404


class TestReportFinalization:
    """draft -> final"""

    def test_finalize_is_one_way(self, client):
        owner = register(client, "lawyer")
        report = _create(client, owner)

        response = client.patch(f"/api/v1/reports/{report['id']}/finalize", headers=owner["headers"])
        assert response.status_code == 200
        assert response.json()["data"]["status"] == "final"

        response = client.patch(f"/api/v1/reports/{report['id']}/finalize", headers=owner["headers"])
        assert response.status_code == 400

        response = client.put(f"/api/v1/reports/{report['id']}", json={"status": "draft"},
                              headers=owner["headers"])
        assert response.status_code == 400

    def test_status_change_through_update_rejected(self, client):
        owner = register(client, "citizen")
        report = _create(client, owner)
        response = client.put(f"/api/v1/reports/{report['id']}", json={"status": "final"},
                              headers=owner["headers"])
        assert response.status_code == 400

    def test_owner_edits_final_but_editor_cannot(self, client):
        owner = register(client, "lawyer")
        editor = register(client, "lawyer")
        report = _create(client, owner)
        _share(client, owner, report["id"], editor, permission="edit")
        client.patch(f"/api/v1/reports/{report['id']}/finalize", headers=owner["headers"])

        response = client.put(f"/api/v1/reports/{report['id']}", json={"title": "Amended"},
                              headers=editor["headers"])
        assert response.status_code == 403
        response = client.put(f"/api/v1/reports/{report['id']}", json={"title": "Amended"},
                              headers=owner["headers"])
        assert response.status_code == 200

    def test_shared_editor_cannot_finalize(self, client):
        owner = register(client, "lawyer")
        editor = register(client, "lawyer")
        report = _create(client, owner)
        _share(client, owner, report["id"], editor, permission="edit")
        assert client.patch(f"/api/v1/reports/{report['id']}/finalize",
                            headers=editor["headers"]).status_code == 403


class TestCitizenSharedReports:
    """GET /api/v1/reports/shared/all"""

    def test_final_reports_from_case_lawyer(self, client):
        citizen = register(client, "citizen")
        lawyer = register(client, "lawyer")
        case = create_case(client, citizen)
        client.put(f"/api/v1/cases/{case['id']}/assign", json={"action": "accept"}, headers=lawyer["headers"])

        draft = _create(client, lawyer, title="Draft notes", caseId=case["id"])
        final = _create(client, lawyer, title="Final summary", caseId=case["id"])
        client.patch(f"/api/v1/reports/{final['id']}/finalize", headers=lawyer["headers"])

        data = client.get("/api/v1/reports/shared/all", headers=citizen["headers"]).json()["data"]
        assert [r["id"] for r in data] == [final["id"]]
        assert client.get(f"/api/v1/reports/{final['id']}", headers=citizen["headers"]).status_code == 200
        assert client.get(f"/api/v1/reports/{draft['id']}", headers=citizen["headers"]).status_code == 404

    def test_lawyers_cannot_use_endpoint(self, client):
        lawyer = register(client, "lawyer")
        assert client.get("/api/v1/reports/shared/all", headers=lawyer["headers"]).status_code == 403

    def test_case_link_fills_case_name(self, client):
        citizen = register(client, "citizen")
        case = create_case(client, citizen, title="Fence dispute")
        report = _create(client, citizen, caseId=case["id"])
        assert report["caseName"] == "Fence dispute"
