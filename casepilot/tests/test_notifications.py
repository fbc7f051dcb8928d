"""
Notification Tests
==================
"""

from casepilot.tests.factories import accepted_dispute, register


def _setup(client):
    citizen = register(client, "citizen")
    lawyer = register(client, "lawyer")
    dispute = accepted_dispute(client, citizen, lawyer)
    for text in ("First", "Second"):
        client.post(f"/api/v1/disputes/{dispute['id']}/messages", json={"content": text}, headers=lawyer["headers"])
    return citizen, lawyer, dispute


class TestNotifications:
    """/api/v1/notifications"""

    def test_list_newest_first_with_unread_count(self, client):
        citizen, _, dispute = _setup(client)
        body = client.get("/api/v1/notifications", headers=citizen["headers"]).json()

        # acceptance + two messages
        assert body["count"] == 3
        assert body["unreadCount"] == 3
        assert body["data"][0]["type"] == "message"
        assert body["data"][-1]["type"] == "assignment"
        assert all(n["dispute"] == dispute["id"] for n in body["data"])
        assert all(n["recipient"] == {"kind": "citizen", "id": citizen["user"]["id"]} for n in body["data"])

    def test_mark_one_read(self, client):
        citizen, _, _ = _setup(client)
        entry = client.get("/api/v1/notifications", headers=citizen["headers"]).json()["data"][0]

        response = client.patch(f"/api/v1/notifications/{entry['id']}/read", headers=citizen["headers"])
        assert response.status_code == 200
        assert response.json()["data"]["isRead"] is True

        unread = client.get("/api/v1/notifications", params={"unread": "true"}, headers=citizen["headers"]).json()
        assert unread["count"] == 2
        assert entry["id"] not in [n["id"] for n in unread["data"]]

    def test_mark_all_read(self, client):
        citizen, _, _ = _setup(client)
        response = client.patch("/api/v1/notifications/read-all", headers=citizen["headers"])
        assert response.json()["data"]["marked"] == 3

        body = client.get("/api/v1/notifications", headers=citizen["headers"]).json()
        assert body["unreadCount"] == 0
        assert client.patch("/api/v1/notifications/read-all",
                            headers=citizen["headers"]).json()["data"]["marked"] == 0

    def test_cannot_read_someone_elses_notification(self, client):
        citizen, lawyer, _ = _setup(client)
        entry = client.get("/api/v1/notifications", headers=citizen["headers"]).json()["data"][0]
        response = client.patch(f"/api/v1/notifications/{entry['id']}/read", headers=lawyer["headers"])
        assert response.status_code == 404

    def test_requires_auth(self, client):
        assert client.get("/api/v1/notifications").status_code == 401
