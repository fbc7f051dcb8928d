"""
Case Lifecycle Tests
====================

Creation, scoping, assignment (accept/reject) and status updates.
"""

import pytest

from casepilot.assignment import accept_case, is_eligible
from casepilot.db.models import Case, CaseStatus
from casepilot.db.session import SessionLocal
from casepilot.errors import Forbidden
from casepilot.tests.factories import create_case, register


def _assign(client, case_id, lawyer, action="accept"):
    return client.put(f"/api/v1/cases/{case_id}/assign", json={"action": action}, headers=lawyer["headers"])


def _assigned_ids(client, lawyer):
    response = client.get("/api/v1/lawyers/me/cases", headers=lawyer["headers"])
    assert response.status_code == 200
    return [c["id"] for c in response.json()["data"]]


# =============================================================================
# Creation and listing
# =============================================================================

class TestCaseCreation:
    """POST /api/v1/cases"""

    def test_citizen_creates_pending_case(self, client):
        citizen = register(client, "citizen")
        case = create_case(client, citizen)
        assert case["status"] == "pending"
        assert case["lawyer"] is None
        assert case["citizen"] == citizen["user"]["id"]

    def test_lawyer_cannot_create_case(self, client):
        lawyer = register(client, "lawyer")
        response = client.post("/api/v1/cases", json={
            "title": "x", "description": "y", "caseType": "civil",
        }, headers=lawyer["headers"])
        assert response.status_code == 403

    def test_invalid_case_type(self, client):
        citizen = register(client, "citizen")
        response = client.post("/api/v1/cases", json={
            "title": "x", "description": "y", "caseType": "maritime",
        }, headers=citizen["headers"])
        assert response.status_code == 400
        assert "caseType" in response.json()["message"]

    def test_list_envelope_has_count(self, client):
        citizen = register(client, "citizen")
        create_case(client, citizen)
        create_case(client, citizen, title="Second")
        body = client.get("/api/v1/cases", headers=citizen["headers"]).json()
        assert body["success"] is True
        assert body["count"] == 2
        assert len(body["data"]) == 2

    def test_other_citizen_gets_not_found(self, client):
        owner = register(client, "citizen")
        stranger = register(client, "citizen")
        case = create_case(client, owner)
        response = client.get(f"/api/v1/cases/{case['id']}", headers=stranger["headers"])
        assert response.status_code == 404

    def test_citizen_cases_endpoint(self, client):
        citizen = register(client, "citizen")
        case = create_case(client, citizen)
        response = client.get("/api/v1/citizens/me/cases", headers=citizen["headers"])
        assert [c["id"] for c in response.json()["data"]] == [case["id"]]


# =============================================================================
# Assignment
# =============================================================================

class TestCaseAssignment:
    """PUT /api/v1/cases/{id}/assign"""

    def test_accept_pending_case(self, client):
        """Citizen creates a case, a lawyer accepts it and sees it in assigned cases"""
        citizen = register(client, "citizen")
        lawyer = register(client, "lawyer")
        case = create_case(client, citizen)

        response = _assign(client, case["id"], lawyer)
        assert response.status_code == 200
        data = response.json()["data"]
        assert data["status"] == "in progress"
        assert data["lawyer"] == lawyer["user"]["id"]
        assert case["id"] in _assigned_ids(client, lawyer)

    def test_second_lawyer_cannot_take_accepted_case(self, client):
        citizen = register(client, "citizen")
        first = register(client, "lawyer")
        second = register(client, "lawyer")
        case = create_case(client, citizen)

        assert _assign(client, case["id"], first).status_code == 200
        response = _assign(client, case["id"], second)
        assert response.status_code == 403

        detail = client.get(f"/api/v1/cases/{case['id']}", headers=citizen["headers"]).json()["data"]
        assert detail["lawyer"] == first["user"]["id"]
        assert case["id"] not in _assigned_ids(client, second)

    def test_accept_replay_is_idempotent(self, client):
        citizen = register(client, "citizen")
        lawyer = register(client, "lawyer")
        case = create_case(client, citizen)

        _assign(client, case["id"], lawyer)
        response = _assign(client, case["id"], lawyer)
        assert response.status_code == 200
        assert response.json()["message"] == "Case already accepted"
        assert response.json()["data"]["status"] == "in progress"

    def test_reject_pending_case(self, client):
        citizen = register(client, "citizen")
        lawyer = register(client, "lawyer")
        case = create_case(client, citizen)

        response = _assign(client, case["id"], lawyer, "reject")
        assert response.status_code == 200
        data = response.json()["data"]
        assert data["status"] == "rejected"
        assert data["lawyer"] is None
        assert case["id"] not in _assigned_ids(client, lawyer)

    def test_cannot_accept_rejected_case(self, client):
        citizen = register(client, "citizen")
        lawyer = register(client, "lawyer")
        case = create_case(client, citizen)
        _assign(client, case["id"], lawyer, "reject")

        response = _assign(client, case["id"], lawyer)
        assert response.status_code == 400
        assert "rejected" in response.json()["message"]

    def test_citizen_cannot_assign(self, client):
        citizen = register(client, "citizen")
        case = create_case(client, citizen)
        assert _assign(client, case["id"], citizen).status_code == 403

    def test_assign_unknown_case(self, client):
        lawyer = register(client, "lawyer")
        assert _assign(client, "missing", lawyer).status_code == 404


class TestAssignmentRace:
    """Two lawyers claiming the same case through separate sessions"""

    def test_only_one_claim_wins(self, client):
        citizen = register(client, "citizen")
        lawyer_a = register(client, "lawyer")
        lawyer_b = register(client, "lawyer")
        case = create_case(client, citizen)

        session_a, session_b = SessionLocal(), SessionLocal()
        try:
            # Both sessions observe the pending case before either claims it
            assert session_a.get(Case, case["id"]).status == CaseStatus.PENDING
            assert session_b.get(Case, case["id"]).status == CaseStatus.PENDING

            accept_case(session_a, case["id"], lawyer_a["user"]["id"])
            session_a.commit()

            with pytest.raises(Forbidden):
                accept_case(session_b, case["id"], lawyer_b["user"]["id"])
            session_b.rollback()
        finally:
            session_a.close()
            session_b.close()

        detail = client.get(f"/api/v1/cases/{case['id']}", headers=citizen["headers"]).json()["data"]
        assert detail["lawyer"] == lawyer_a["user"]["id"]

    def test_eligibility_predicate(self):
        assert is_eligible(None, "me")
        assert is_eligible("me", "me")
        assert not is_eligible("someone", "me")


# =============================================================================
# Status updates
# =============================================================================

class TestCaseStatusUpdates:
    """PUT /api/v1/cases/{id}"""

    def _in_progress(self, client):
        citizen = register(client, "citizen")
        lawyer = register(client, "lawyer")
        case = create_case(client, citizen)
        _assign(client, case["id"], lawyer)
        return citizen, lawyer, case

    def test_lawyer_resolves_then_citizen_closes(self, client):
        citizen, lawyer, case = self._in_progress(client)

        response = client.put(f"/api/v1/cases/{case['id']}", json={"status": "resolved"}, headers=lawyer["headers"])
        assert response.status_code == 200
        assert response.json()["data"]["status"] == "resolved"

        response = client.put(f"/api/v1/cases/{case['id']}", json={"status": "closed"}, headers=citizen["headers"])
        assert response.status_code == 200
        assert response.json()["data"]["status"] == "closed"

    def test_citizen_cannot_resolve(self, client):
        citizen, _, case = self._in_progress(client)
        response = client.put(f"/api/v1/cases/{case['id']}", json={"status": "resolved"}, headers=citizen["headers"])
        assert response.status_code == 403

    def test_status_cannot_skip_or_go_back(self, client):
        citizen, lawyer, case = self._in_progress(client)
        response = client.put(f"/api/v1/cases/{case['id']}", json={"status": "closed"}, headers=lawyer["headers"])
        assert response.status_code == 400
        assert "in progress" in response.json()["message"]

        response = client.put(f"/api/v1/cases/{case['id']}", json={"status": "pending"}, headers=lawyer["headers"])
        assert response.status_code == 400

    def test_unrelated_lawyer_cannot_update(self, client):
        _, _, case = self._in_progress(client)
        stranger = register(client, "lawyer")
        response = client.put(f"/api/v1/cases/{case['id']}", json={"title": "x"}, headers=stranger["headers"])
        assert response.status_code == 404

    def test_citizen_edits_title(self, client):
        citizen = register(client, "citizen")
        case = create_case(client, citizen)
        response = client.put(f"/api/v1/cases/{case['id']}", json={"title": "Renamed"}, headers=citizen["headers"])
        assert response.status_code == 200
        assert response.json()["data"]["title"] == "Renamed"
