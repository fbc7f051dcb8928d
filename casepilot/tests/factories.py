"""
Request helpers shared by the API tests.
"""

import itertools
from datetime import datetime, timedelta

_counter = itertools.count(1)

DEFAULT_PASSWORD = "Secret-pass-123"


def bearer(token: str) -> dict:
    return {"Authorization": f"Bearer {token}"}


def register(client, role: str = "citizen", name: str = None, email: str = None, **extra) -> dict:
    """Register a principal; returns {"token", "user", "headers"}."""
    n = next(_counter)
    payload = {
        "role": role,
        "name": name or f"{role.title()} {n}",
        "email": email or f"{role}{n}@example.com",
        "password": extra.pop("password", DEFAULT_PASSWORD),
        "phone": extra.pop("phone", "555-0100"),
    }
    if role == "lawyer":
        payload["specialization"] = extra.pop("specialization", "civil")
    payload.update(extra)

    response = client.post("/api/v1/auth/register", json=payload)
    assert response.status_code == 201, response.text
    data = response.json()["data"]
    return {"token": data["token"], "user": data["user"], "headers": bearer(data["token"])}


def create_case(client, citizen: dict, **fields) -> dict:
    payload = {"title": "Unpaid invoice", "description": "Client never paid", "caseType": "civil"}
    payload.update(fields)
    response = client.post("/api/v1/cases", json=payload, headers=citizen["headers"])
    assert response.status_code == 201, response.text
    return response.json()["data"]


def create_dispute(client, creator: dict, **fields) -> dict:
    payload = {
        "title": "Fence boundary",
        "description": "Neighbour moved the fence",
        "category": "property",
        "defendant": {"name": "Sam Neighbour", "type": "external"},
    }
    payload.update(fields)
    response = client.post("/api/v1/disputes/create", json=payload, headers=creator["headers"])
    assert response.status_code == 201, response.text
    return response.json()["data"]


def accepted_dispute(client, citizen: dict, lawyer: dict, **fields) -> dict:
    """A dispute filed by `citizen` and accepted by `lawyer`."""
    dispute = create_dispute(client, citizen, **fields)
    response = client.put(f"/api/v1/disputes/{dispute['id']}/accept", headers=lawyer["headers"])
    assert response.status_code == 200, response.text
    return response.json()["data"]


def future(days: int = 7) -> str:
    return (datetime.utcnow() + timedelta(days=days)).isoformat()


def past(days: int = 1) -> str:
    return (datetime.utcnow() - timedelta(days=days)).isoformat()
