"""Tests for the /api/v1/sessions routes."""


def create(client, room_name: str = "main-stage", owner_id: str = "u.host") -> dict:
    response = client.post(
        "/api/v1/sessions",
        json={"title": "Friday Stream", "owner_id": owner_id, "room_name": room_name},
    )
    assert response.status_code == 201, response.text
    return response.json()["results"]


class TestSessionRoutes:
    def test_create_session(self, api_client):
        response = api_client.post(
            "/api/v1/sessions",
            json={"title": "Friday Stream", "owner_id": "u.host", "room_name": "Main Stage"},
        )

        assert response.status_code == 201
        body = response.json()
        assert body["success"] is True
        assert body["results"]["room_name"] == "main-stage"
        assert body["results"]["status"] == "active"

    def test_create_conflict(self, api_client):
        create(api_client, "main-stage")

        response = api_client.post(
            "/api/v1/sessions",
            json={"title": "Again", "owner_id": "u.host", "room_name": "main-stage"},
        )

        assert response.status_code == 409
        body = response.json()
        assert body["success"] is False
        assert body["errcode"] == "E_ROOM_NAME_CONFLICT"
        assert body["erresid"]

    def test_create_validation_error(self, api_client):
        response = api_client.post("/api/v1/sessions", json={"title": "No owner"})

        assert response.status_code == 422
        assert response.json()["errcode"] == "E_INVALID_REQUEST"

    def test_get_and_list(self, api_client):
        created = create(api_client)

        fetched = api_client.get(f"/api/v1/sessions/{created['session_id']}")
        listed = api_client.get("/api/v1/sessions", params={"owner_id": "u.host", "status": "active"})

        assert fetched.status_code == 200
        assert fetched.json()["results"]["session_id"] == created["session_id"]
        assert listed.json()["results"]["total"] == 1

    def test_get_missing(self, api_client):
        response = api_client.get("/api/v1/sessions/se_missing")

        assert response.status_code == 404
        assert response.json()["errcode"] == "E_SESSION_NOT_FOUND"

    def test_delete_by_owner(self, api_client):
        created = create(api_client)

        response = api_client.request(
            "DELETE",
            f"/api/v1/sessions/{created['session_id']}",
            json={"requester_id": "u.host"},
        )

        assert response.status_code == 200
        assert response.json()["results"]["status"] == "ended"

    def test_delete_by_stranger_forbidden(self, api_client):
        created = create(api_client)

        response = api_client.request(
            "DELETE",
            f"/api/v1/sessions/{created['session_id']}",
            json={"requester_id": "u.stranger"},
        )

        assert response.status_code == 403
        assert response.json()["errcode"] == "E_FORBIDDEN"

    def test_join_leave_and_participants(self, api_client):
        created = create(api_client, "join-room")
        session_id = created["session_id"]

        joined = api_client.post(
            f"/api/v1/sessions/{session_id}/join",
            json={"user_id": "u.viewer", "display_name": "Viewer"},
        )
        again = api_client.post(
            f"/api/v1/sessions/{session_id}/join",
            json={"user_id": "u.viewer", "display_name": "Viewer"},
        )
        participants = api_client.get(f"/api/v1/sessions/{session_id}/participants")
        left = api_client.post(f"/api/v1/sessions/{session_id}/leave", json={"user_id": "u.viewer"})

        assert joined.status_code == 200
        assert joined.json()["results"]["token"] == "token:join-room:u.viewer:viewer"
        assert again.status_code == 409
        assert again.json()["errcode"] == "E_ALREADY_JOINED"
        assert participants.json()["results"]["total"] == 1
        assert left.json()["results"]["status"] == "left"

    def test_join_as_host_requires_owner(self, api_client):
        created = create(api_client)

        response = api_client.post(
            f"/api/v1/sessions/{created['session_id']}/join",
            json={"user_id": "u.other", "display_name": "Other", "role": "host"},
        )

        assert response.status_code == 403
