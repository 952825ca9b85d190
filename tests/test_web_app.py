"""Tests for the browser terminal REST API and socket events."""

import pytest

from sandbox.filesystem import INITIAL_FS


def active_id(http):
    return http.get("/api/sessions").get_json()["active_session_id"]


# =============================================================================
# REST API
# =============================================================================


class TestSessionsApi:
    """Tests for the session endpoints."""

    def test_index_page(self, http):
        response = http.get("/")
        assert response.status_code == 200
        assert b"Sandbox VM" in response.data

    def test_index_page_offers_tab_close(self, http):
        page = http.get("/").get_data(as_text=True)

        assert "payload.sessions.length > 1" in page
        assert "method: 'DELETE'" in page

    def test_lists_initial_session(self, http):
        data = http.get("/api/sessions").get_json()

        assert len(data["sessions"]) == 1
        assert data["sessions"][0]["name"] == "bash"
        assert data["sessions"][0]["current_path"] == "/home/sandbox"
        assert data["active_session_id"] == data["sessions"][0]["id"]

    def test_create_session(self, http):
        response = http.post("/api/sessions")

        assert response.status_code == 201
        created = response.get_json()
        assert created["name"] == "bash-2"
        assert active_id(http) == created["id"]

    def test_get_session_details(self, http):
        session = http.get(f"/api/sessions/{active_id(http)}").get_json()
        assert session["prompt"] == "sandbox@android:/home/sandbox$ "
        assert session["lines"][0]["type"] == "system"

    def test_unknown_session_is_404(self, http):
        response = http.get("/api/sessions/missing")
        assert response.status_code == 404
        assert "missing" in response.get_json()["error"]

    def test_last_session_cannot_be_closed(self, http):
        response = http.delete(f"/api/sessions/{active_id(http)}")
        assert response.status_code == 409

    def test_close_and_activate(self, http):
        first = active_id(http)
        second = http.post("/api/sessions").get_json()["id"]

        data = http.post(f"/api/sessions/{first}/activate").get_json()
        assert data["active_session_id"] == first

        data = http.delete(f"/api/sessions/{second}").get_json()
        assert [s["id"] for s in data["sessions"]] == [first]


class TestExecuteApi:
    """Tests for POST /api/sessions/<id>/execute."""

    def test_runs_command(self, http):
        response = http.post(f"/api/sessions/{active_id(http)}/execute",
                             json={"command": "whoami"})
        data = response.get_json()

        assert response.status_code == 200
        assert [(l["type"], l["text"]) for l in data["lines"]] == [
            ("input", "whoami"), ("output", "sandbox")]
        assert data["clear"] is False

    def test_cd_changes_prompt(self, http):
        data = http.post(f"/api/sessions/{active_id(http)}/execute",
                         json={"command": "cd /etc"}).get_json()

        assert data["current_path"] == "/etc"
        assert data["prompt"] == "sandbox@android:/etc$ "

    def test_clear(self, http):
        data = http.post(f"/api/sessions/{active_id(http)}/execute",
                         json={"command": "clear"}).get_json()
        assert data["clear"] is True
        assert data["lines"] == []

    def test_missing_command_body(self, http):
        response = http.post(f"/api/sessions/{active_id(http)}/execute", json={})
        assert response.status_code == 400

    def test_unknown_session(self, http):
        response = http.post("/api/sessions/missing/execute", json={"command": "ls"})
        assert response.status_code == 404


def test_reset(http, web_app):
    sid = active_id(http)
    http.post(f"/api/sessions/{sid}/execute", json={"command": "mkdir work"})
    http.post("/api/sessions")

    data = http.post("/api/reset").get_json()

    assert web_app.vm.fs is INITIAL_FS
    assert len(data["sessions"]) == 1
    assert data["session"]["id"] == data["active_session_id"]
    assert data["session"]["id"] != sid


# =============================================================================
# Socket events
# =============================================================================


class TestSocketEvents:
    """Tests for the Socket.IO channel."""

    def test_connect_sends_sessions(self, web_app):
        client = web_app.socketio.test_client(web_app.app)
        received = client.get_received()

        assert received[0]["name"] == "connected"
        payload = received[0]["args"][0]
        assert payload["active_session_id"] == web_app.vm.active_session_id
        client.disconnect()

    def test_command_emits_lines(self, web_app):
        client = web_app.socketio.test_client(web_app.app)
        client.get_received()

        client.emit("command", {"command": "ls"})
        received = client.get_received()

        assert received[0]["name"] == "lines"
        lines = received[0]["args"][0]["lines"]
        assert lines[-1] == {"id": lines[-1]["id"], "type": "output",
                             "text": "projects  readme.txt"}
        client.disconnect()

    def test_command_for_unknown_session(self, web_app):
        client = web_app.socketio.test_client(web_app.app)
        client.get_received()

        client.emit("command", {"session_id": "missing", "command": "ls"})
        received = client.get_received()

        assert received[0]["name"] == "command_error"
        client.disconnect()

    @pytest.mark.parametrize("payload", [{"command": None}, {}, "ls", None])
    def test_command_with_bad_payload(self, web_app, payload):
        client = web_app.socketio.test_client(web_app.app)
        client.get_received()

        client.emit("command", payload)
        received = client.get_received()

        assert [r["name"] for r in received] == ["command_error"]
        assert received[0]["args"][0] == {"error": "command required"}
        assert web_app.vm.active_session.history == []
        client.disconnect()


def test_simulated_stats_ranges(web_app):
    for _ in range(50):
        stats = web_app.simulated_stats()
        assert 1 <= stats["cpu"] <= 15
        assert 150 <= stats["ram"] <= 199
