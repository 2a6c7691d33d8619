import pytest
from fastapi.testclient import TestClient
from pydantic import BaseModel

from quluub.core.exceptions import ResourceNotFoundError
from quluub.main import create_app

API = "/api"


def as_user(user_id: str) -> dict:
    return {"X-User-Id": user_id}


@pytest.fixture
def app(test_settings, container):
    return create_app(config=test_settings, container=container)


@pytest.fixture
def client(app):
    with TestClient(app) as client:
        yield client


def send_request(client, follower, followed):
    response = client.post(f"{API}/relationships/request", json={"followedUserId": followed}, headers=as_user(follower))
    assert response.status_code == 201, response.text
    return response.json()


def match(client, follower, followed):
    relationship = send_request(client, follower, followed)
    response = client.put(
        f"{API}/relationships/{relationship['id']}/respond",
        json={"status": "matched"},
        headers=as_user(followed),
    )
    assert response.status_code == 200, response.text
    return response.json()


class TestErrorHandling:

    def test_404_not_found(self, client):
        response = client.get("/non-existent-route")
        assert response.status_code == 404
        data = response.json()
        assert "error" in data
        assert data["code"] == "HTTP_ERROR"

    def test_validation_error_structure(self, app, client):
        class Item(BaseModel):
            name: str
            price: int

        @app.post("/test-validation")
        def create_item(item: Item):
            return item

        response = client.post("/test-validation", json={"name": "foo", "price": "invalid"})
        assert response.status_code == 422
        data = response.json()
        assert data["code"] == "VALIDATION"
        assert len(data["details"]) > 0

    def test_custom_exception(self, app, client):
        @app.get("/test-custom-error")
        def trigger_custom_error():
            raise ResourceNotFoundError(message="Item not found")

        response = client.get("/test-custom-error")
        assert response.status_code == 404
        data = response.json()
        assert data["code"] == "NOT_FOUND"
        assert data["error"] == "Item not found"

    def test_unhandled_exception(self, app):
        @app.get("/test-crash")
        def crash():
            raise RuntimeError("kaboom")

        with TestClient(app, raise_server_exceptions=False) as client:
            response = client.get("/test-crash")

        assert response.status_code == 500
        assert response.json()["code"] == "INTERNAL_ERROR"

    def test_missing_user_header(self, client):
        response = client.get(f"{API}/relationships/matches")
        assert response.status_code == 401
        assert response.json()["code"] == "HTTP_ERROR"


class TestHealth:

    def test_health(self, client):
        response = client.get("/health")
        assert response.status_code == 200
        data = response.json()
        assert data["checks"]["storage"] == "healthy"
        assert data["checks"]["email"] == "configured"

    def test_probes(self, client):
        assert client.get("/live").json() == {"status": "alive"}
        assert client.get("/ready").json() == {"status": "ready"}


class TestRelationshipRoutes:

    def test_send_request(self, client):
        data = send_request(client, "ahmed", "fatima")

        assert data["followerUserId"] == "ahmed"
        assert data["followedUserId"] == "fatima"
        assert data["status"] == "pending"

    def test_duplicate_request(self, client):
        send_request(client, "ahmed", "fatima")

        response = client.post(
            f"{API}/relationships/request", json={"followedUserId": "ahmed"}, headers=as_user("fatima")
        )

        assert response.status_code == 409
        assert response.json()["code"] == "DUPLICATE_RELATIONSHIP"
        assert response.json()["details"] == {"status": "pending"}

    def test_respond_with_invalid_status(self, client):
        relationship = send_request(client, "ahmed", "fatima")

        response = client.put(
            f"{API}/relationships/{relationship['id']}/respond",
            json={"status": "pending"},
            headers=as_user("fatima"),
        )

        assert response.status_code == 422
        assert response.json()["code"] == "VALIDATION"

    def test_respond_by_follower(self, client):
        relationship = send_request(client, "ahmed", "fatima")

        response = client.put(
            f"{API}/relationships/{relationship['id']}/respond",
            json={"status": "matched"},
            headers=as_user("ahmed"),
        )

        assert response.status_code == 403
        assert response.json()["code"] == "NOT_AUTHORIZED"

    def test_lists(self, client):
        match(client, "ahmed", "fatima")
        send_request(client, "yusuf", "zainab")

        matches = client.get(f"{API}/relationships/matches", headers=as_user("fatima")).json()
        pending = client.get(f"{API}/relationships/pending", headers=as_user("zainab")).json()
        sent = client.get(f"{API}/relationships/sent", headers=as_user("yusuf")).json()

        assert matches["count"] == 1
        assert matches["items"][0]["profile"]["id"] == "ahmed"
        assert pending["items"][0]["relationship"]["followerUserId"] == "yusuf"
        assert sent["count"] == 1

    def test_withdraw(self, client):
        relationship = send_request(client, "ahmed", "fatima")

        response = client.delete(f"{API}/relationships/{relationship['id']}/withdraw", headers=as_user("ahmed"))

        assert response.status_code == 200
        assert client.get(f"{API}/relationships/sent", headers=as_user("ahmed")).json()["count"] == 0


class TestChatRoutes:

    def test_can_send_reports_limits(self, client):
        match(client, "ahmed", "fatima")

        response = client.post(
            f"{API}/chats/can-send",
            json={"receiverId": "fatima", "message": "Assalamu alaikum"},
            headers=as_user("ahmed"),
        )

        assert response.status_code == 200
        assert response.json() == {
            "allowed": True,
            "plan": "freemium",
            "allowance": 10,
            "sentCount": 0,
            "remaining": 10,
            "wordLimit": 20,
            "wordCount": 2,
            "videoCall": False,
        }

    def test_send_requires_match(self, client):
        response = client.post(
            f"{API}/chats", json={"receiverId": "fatima", "message": "hello"}, headers=as_user("ahmed")
        )

        assert response.status_code == 403
        assert response.json()["code"] == "NOT_MATCHED"

    def test_wali_required(self, client):
        match(client, "ahmed", "aisha")

        response = client.post(
            f"{API}/chats", json={"receiverId": "ahmed", "message": "hello"}, headers=as_user("aisha")
        )
        assert response.status_code == 422
        assert response.json()["code"] == "WALI_REQUIRED"

        response = client.put(
            f"{API}/wali/details",
            json={"name": "Bilal", "email": " Bilal.Wali@Example.com "},
            headers=as_user("aisha"),
        )
        assert response.status_code == 200

        response = client.post(
            f"{API}/chats", json={"receiverId": "ahmed", "message": "hello"}, headers=as_user("aisha")
        )
        assert response.status_code == 201

    def test_invalid_wali_email_rejected(self, client):
        response = client.put(f"{API}/wali/details", json={"email": "not-an-email"}, headers=as_user("aisha"))
        assert response.status_code == 422

    def test_thread_and_read_receipts(self, client):
        match(client, "ahmed", "fatima")
        for text in ("one", "two"):
            client.post(f"{API}/chats", json={"receiverId": "fatima", "message": text}, headers=as_user("ahmed"))

        unread = client.get(f"{API}/chats/unread-count", headers=as_user("fatima")).json()
        assert unread == {"unreadCount": 2}

        conversations = client.get(f"{API}/chats/conversations", headers=as_user("fatima")).json()
        assert conversations[0]["profile"]["id"] == "ahmed"
        assert conversations[0]["unreadCount"] == 2

        thread = client.get(f"{API}/chats/ahmed", params={"markAsRead": "false"}, headers=as_user("fatima")).json()
        assert [m["body"] for m in thread] == ["one", "two"]
        assert thread[0]["senderName"] == "Ahmed Test"

        response = client.put(
            f"{API}/chats/read", json={"messageIds": [m["id"] for m in thread]}, headers=as_user("fatima")
        )
        assert response.json() == {"updated": 2}
        assert client.get(f"{API}/chats/unread-count", headers=as_user("fatima")).json() == {"unreadCount": 0}

    def test_video_call_invitation_needs_premium(self, client):
        match(client, "ahmed", "fatima")

        response = client.post(
            f"{API}/chats/video-call-invitation", json={"receiverId": "fatima"}, headers=as_user("ahmed")
        )

        assert response.status_code == 403
        assert response.json()["code"] == "FEATURE_NOT_IN_PLAN"


class TestWaliRoutes:

    def test_contact_wali(self, client):
        response = client.post(
            f"{API}/wali/contact",
            json={"targetUserId": "fatima", "message": "Salaam"},
            headers=as_user("ahmed"),
        )

        assert response.status_code == 201
        assert response.json()["waliEmail"] == "abdullah.wali@example.com"

    def test_contact_wali_absent(self, client):
        response = client.post(f"{API}/wali/contact", json={"targetUserId": "aisha"}, headers=as_user("ahmed"))

        assert response.status_code == 400
        assert response.json()["code"] == "ABSENT_WALI_DETAILS"

    def test_video_call_notifications(self, app, email_recorder):
        with TestClient(app) as client:
            started = client.post(
                f"{API}/wali/video-call-notification",
                json={"status": "started", "recipientId": "fatima", "callUrl": "https://meet.example.com/x"},
                headers=as_user("ahmed"),
            )
            ended = client.post(
                f"{API}/wali/video-call-notification",
                json={"status": "ended", "recipientId": "fatima", "durationSeconds": 125},
                headers=as_user("ahmed"),
            )

        assert started.status_code == 202
        assert ended.status_code == 202
        assert sorted(email_recorder.subjects()) == [
            "Video Call Ended - Quluub",
            "Video Call Ended - Quluub",
            "Video Call Notification - Quluub",
            "Video Call Notification - Quluub",
        ]

    @pytest.mark.parametrize("body", [
        {"status": "paused", "recipientId": "fatima"},
        {"status": "ended", "recipientId": "fatima", "durationSeconds": -1},
        {"status": "started"},
    ])
    def test_video_call_notification_validation(self, client, body):
        response = client.post(f"{API}/wali/video-call-notification", json=body, headers=as_user("ahmed"))

        assert response.status_code == 422
        assert response.json()["code"] == "VALIDATION"


class TestAccountRoutes:

    def test_delete_account(self, client):
        match(client, "ahmed", "fatima")

        response = client.delete(f"{API}/account", headers=as_user("ahmed"))

        assert response.status_code == 200
        data = response.json()
        assert data["userId"] == "ahmed"
        assert data["deleted"]["relationships"] == 1
        assert data["attempts"] == 1
        assert client.get(f"{API}/relationships/matches", headers=as_user("fatima")).json()["count"] == 0

        again = client.delete(f"{API}/account", headers=as_user("ahmed"))
        assert again.status_code == 404

    def test_notifications(self, client):
        send_request(client, "ahmed", "fatima")

        notifications = client.get(f"{API}/notifications", headers=as_user("fatima")).json()

        assert [n["type"] for n in notifications] == ["new_request"]
        assert notifications[0]["senderId"] == "ahmed"

    def test_notification_stream(self, client):
        with client.websocket_connect(f"{API}/notifications/ws", headers=as_user("fatima")) as websocket:
            send_request(client, "ahmed", "fatima")
            event = websocket.receive_json()

        assert event["event"] == "new_request"
        assert event["payload"]["senderId"] == "ahmed"


def test_full_flow_reports_to_guardians(app, email_recorder):
    with TestClient(app) as client:
        match(client, "ahmed", "fatima")
        for i in range(5):
            response = client.post(
                f"{API}/chats", json={"receiverId": "fatima", "message": f"message {i}"}, headers=as_user("ahmed")
            )
            assert response.status_code == 201

    assert sorted(email_recorder.recipients) == ["abdullah.wali@example.com", "ahmed.father@example.com"]
