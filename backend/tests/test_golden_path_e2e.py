import os
import sys

from fastapi.testclient import TestClient

sys.path.insert(0, os.path.dirname(os.path.dirname(__file__)))

from fake_backend import FakeBackend, seed_marketplace
from skilllink.main import app
from skilllink.services.backend_client import backend_client


def test_golden_path_login_provider_swap_and_paid_booking(monkeypatch):
    backend = FakeBackend()
    seed_marketplace(backend)
    monkeypatch.setattr(backend_client, "transport", backend.transport())
    client = TestClient(app)

    login = client.post("/auth/login", json={"email": "a@x.com", "password": "correct-horse"})
    assert login.status_code == 200
    assert login.json()["navigation"]["href"] == "/dashboard"

    provider = client.get("/providers/5")
    assert provider.status_code == 200
    assert provider.json()["viewer"]["can_propose_skill_swap"] is True

    swap_flow = client.post("/providers/5/flows", json={"kind": "skill_swap"}).json()["flow"]
    assert swap_flow["active_dialog"] == "skill_swap"
    swap = client.post(
        f"/flows/{swap_flow['id']}/booking",
        json={"id": 10, "provider_id": 5, "service_name": "Guitar", "is_skill_swap": True},
    )
    assert swap.json()["flow"]["state"] == "complete"
    assert swap.json()["notices"][0]["title"] == "New Skill Swap Request"

    paid_flow = client.post("/providers/5/flows", json={"kind": "booking"}).json()["flow"]
    paid = client.post(
        f"/flows/{paid_flow['id']}/booking",
        json={"id": 11, "provider_id": 5, "service_name": "Guitar", "is_skill_swap": False},
    )
    assert paid.json()["flow"]["state"] == "awaiting_payment"

    confirmed = client.post(f"/flows/{paid_flow['id']}/payment/confirm", json={"booking_id": 11, "status": "succeeded"})
    assert confirmed.json()["flow"]["state"] == "complete"

    assert [row["type"] for row in backend.notifications] == ["skill_swap_request", "new_booking"]
    assert all(row["user_id"] == 5 for row in backend.notifications)
    assert [row["data"]["booking_id"] for row in backend.notifications] == [10, 11]
