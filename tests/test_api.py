"""
Tests for the onboarding HTTP endpoints.
"""

from unittest.mock import MagicMock

import pytest
from fastapi.testclient import TestClient

from sita.storage import MemoryChannel
from sita.web.app import app

from onboarding import api
from onboarding.api import AuthenticatedUser, get_current_user
from onboarding.session import OnboardingSession

from conftest import FakeClock, FakeRemote, RecordingObserver


@pytest.fixture
def remote():
    return FakeRemote()


@pytest.fixture
def client(remote):
    channels: dict[str, MemoryChannel] = {}
    clock = FakeClock()

    def factory(user_id: str) -> OnboardingSession:
        channel = channels.setdefault(user_id, MemoryChannel())
        return OnboardingSession(
            channel,
            remote=remote,
            user_id=user_id,
            observer=RecordingObserver(),
            clock=clock,
        )

    api.set_session_factory(factory)
    app.dependency_overrides[get_current_user] = lambda: AuthenticatedUser(id="user-1", access_token="t")
    yield TestClient(app)
    app.dependency_overrides.clear()
    api.set_session_factory(None)


def to_name_step(client, mode="quick"):
    client.post("/onboarding/start")
    client.post("/onboarding/advance")
    client.post("/onboarding/advance")
    client.post("/onboarding/mode", json={"mode": mode})
    return client.post("/onboarding/advance").json()


class TestAuth:

    def test_missing_header(self):
        response = TestClient(app).get("/onboarding/state")
        assert response.status_code == 401


class TestFlow:

    def test_health(self, client):
        assert client.get("/health").json()["status"] == "healthy"

    def test_state_before_start(self, client):
        state = client.get("/onboarding/state").json()
        assert state["status"] == "not_started"
        assert state["current_step"] == "entry"

    def test_quick_flow(self, client, remote):
        state = to_name_step(client)
        assert state["current_step"] == "name"

        blocked = client.post("/onboarding/advance").json()
        assert blocked["moved"] is False

        assert client.post("/onboarding/name", json={"name": "  Ada "}).status_code == 200
        state = client.post("/onboarding/skip-to-end").json()
        assert state["is_terminal"] is True

        body = client.post("/onboarding/complete").json()
        assert body["success"] is True
        assert body["setup_mode"] == "quick"
        assert body["remote"]["status"] == "RemoteOk"
        assert remote.names == [("user-1", "Ada")]

    def test_blank_name_rejected(self, client):
        to_name_step(client)
        assert client.post("/onboarding/name", json={"name": "  "}).status_code == 400

    def test_mode_off_step_is_400(self, client):
        client.post("/onboarding/start")
        response = client.post("/onboarding/mode", json={"mode": "deep"})
        assert response.status_code == 400

    def test_signal_and_preview(self, client):
        to_name_step(client, mode="guided")
        client.post("/onboarding/name", json={"name": "Ada"})
        for _ in range(3):
            client.post("/onboarding/advance")

        response = client.post(
            "/onboarding/signal",
            json={"question": "densityChoice", "value": "dense", "elapsed_ms": 800},
        )
        assert response.status_code == 200
        assert response.json()["elapsed_ms"] == 800

        preview = client.get("/onboarding/preview").json()
        density = preview["profile"]["traits"][0]
        assert density["value"] == "dense"
        assert density["confidence"] == "high"
        assert len(preview["statements"]) == 5

    def test_invalid_signal_value(self, client):
        to_name_step(client, mode="guided")
        client.post("/onboarding/name", json={"name": "Ada"})
        for _ in range(3):
            client.post("/onboarding/advance")
        response = client.post("/onboarding/signal", json={"question": "densityChoice", "value": "sparse"})
        assert response.status_code == 400

    def test_unknown_question(self, client):
        to_name_step(client, mode="guided")
        response = client.post("/onboarding/signal", json={"question": "favoriteColor", "value": "blue"})
        assert response.status_code == 400

    def test_automation_toggle(self, client):
        client.post("/onboarding/start")
        body = client.post("/onboarding/automations/sleep-low-adjust/toggle").json()
        assert body == {"changed": True, "enabled": ["sleep-low-adjust"]}
        assert client.post("/onboarding/automations/make-coffee/toggle").status_code == 404

    def test_update_data(self, client):
        client.post("/onboarding/start")
        response = client.patch("/onboarding/data", json={"field": "voice_profile", "key": "warmth", "value": 30})
        assert response.json()["data"]["voice_profile"]["warmth"] == 30
        assert client.patch("/onboarding/data", json={"field": "nope", "value": 1}).status_code == 400

    def test_recovery_and_resume(self, client):
        to_name_step(client, mode="guided")
        client.post("/onboarding/name", json={"name": "Ada"})
        client.post("/onboarding/advance")
        client.post("/onboarding/advance")

        # Simulate a process restart: drop the in-memory session, keep the channel
        api.drop_session("user-1")

        recovery = client.get("/onboarding/recovery").json()
        assert recovery["available"] is True
        assert recovery["step"] == 5
        assert recovery["description"] == "Guided Journey, step 6 of 18"

        state = client.post("/onboarding/resume").json()
        assert state["step_index"] == 5
        assert state["data"]["name"] == "Ada"

    def test_resume_without_progress(self, client):
        assert client.post("/onboarding/resume").status_code == 404

    def test_complete_off_terminal(self, client):
        to_name_step(client)
        assert client.post("/onboarding/complete").status_code == 400

    def test_options(self, client):
        options = client.get("/onboarding/options").json()
        assert len(options["automations"]) == 16
        assert {m["id"] for m in options["setup_modes"]} == {"quick", "guided", "deep"}


class TestDataValidation:

    def test_automation_list_capped(self, client):
        client.post("/onboarding/start")
        five = [t["id"] for t in client.get("/onboarding/options").json()["automations"][:5]]
        response = client.patch("/onboarding/data", json={"field": "automations", "value": five})
        assert response.status_code == 400
        assert client.get("/onboarding/state").json()["data"]["automations"] == []

    def test_automation_list_accepted_under_cap(self, client):
        client.post("/onboarding/start")
        templates = client.get("/onboarding/options").json()["automations"][:2]
        response = client.patch("/onboarding/data", json={"field": "automations", "value": templates})
        assert response.status_code == 200
        enabled = response.json()["data"]["automations"]
        assert [a["id"] for a in enabled] == [t["id"] for t in templates]
        assert all(a["enabled"] for a in enabled)

    def test_unknown_automation_in_list_is_400(self, client):
        client.post("/onboarding/start")
        response = client.patch("/onboarding/data", json={"field": "automations", "value": ["make-coffee"]})
        assert response.status_code == 400

    def test_non_string_name_is_400_and_advance_still_works(self, client):
        to_name_step(client)
        assert client.patch("/onboarding/data", json={"field": "name", "value": 123}).status_code == 400
        response = client.post("/onboarding/advance")
        assert response.status_code == 200
        assert response.json()["moved"] is False

    def test_out_of_range_nested_value_is_400(self, client):
        client.post("/onboarding/start")
        response = client.patch("/onboarding/data", json={"field": "voice_profile", "key": "warmth", "value": 500})
        assert response.status_code == 400


class TestSessionLifecycle:

    def test_completed_session_is_dropped_and_closed(self, client):
        to_name_step(client)
        client.post("/onboarding/name", json={"name": "Ada"})
        client.post("/onboarding/skip-to-end")
        session = api.get_session("user-1")
        session.close = MagicMock()

        assert client.post("/onboarding/complete").status_code == 200
        assert "user-1" not in api._sessions
        session.close.assert_called_once()

        state = client.get("/onboarding/state").json()
        assert state["onboarded"] is True
