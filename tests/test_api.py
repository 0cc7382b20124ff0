"""HTTP-level tests: health, auth enforcement, the error envelope and routes.

The database and the relay are replaced through dependency overrides, so
these tests run without PostgreSQL or Redis.
"""
import asyncio
import uuid
import pytest
from datetime import datetime, timedelta, timezone
from types import SimpleNamespace
from unittest.mock import patch, MagicMock, AsyncMock

from fastapi.testclient import TestClient
from starlette.websockets import WebSocketDisconnect

from redplad.api.matching import get_matching_service
from redplad.auth import AuthenticatedUser, get_current_profile, get_current_user
from redplad.database import get_db, run_after_commit
from redplad.errors import ConflictError
from redplad.main import InFlightRequests, app
from redplad.models.community import CulturalEvent
from redplad.services.community_service import MyEvents
from tests.conftest import make_profile


@pytest.fixture
def member():
    return make_profile()


@pytest.fixture
def db_session():
    session = AsyncMock()
    session.add = MagicMock()
    session.info = {}
    return session


@pytest.fixture
def client(member, db_session):
    async def _db():
        yield db_session
        await db_session.commit()
        await run_after_commit(db_session)

    app.dependency_overrides[get_db] = _db
    app.dependency_overrides[get_current_user] = lambda: AuthenticatedUser(
        id=member.id, email=member.email
    )
    app.dependency_overrides[get_current_profile] = lambda: member
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.fixture
def anonymous_client():
    yield TestClient(app)
    app.dependency_overrides.clear()


class TestHealth:
    """Liveness check."""

    def test_health(self, anonymous_client):
        response = anonymous_client.get("/health")
        assert response.status_code == 200
        assert response.json() == {"status": "healthy"}


class TestErrorEnvelope:
    """Every failure shares the {error, code, details?} shape."""

    def test_missing_token(self, anonymous_client):
        response = anonymous_client.get("/api/v1/profiles/me")
        assert response.status_code == 401
        body = response.json()
        assert body["code"] == "MISSING_TOKEN"
        assert body["error"]
        assert response.headers["www-authenticate"] == "Bearer"

    def test_invalid_token(self, anonymous_client):
        response = anonymous_client.get(
            "/api/v1/profiles/me", headers={"Authorization": "Bearer not-a-jwt"}
        )
        assert response.status_code == 401
        assert response.json()["code"] == "INVALID_TOKEN"

    def test_unknown_route(self, anonymous_client):
        response = anonymous_client.get("/api/v1/nowhere")
        assert response.status_code == 404
        assert response.json()["code"] == "NOT_FOUND"

    def test_validation_error(self, client):
        response = client.post("/api/v1/profiles/me", json={"first_name": ""})
        assert response.status_code == 400
        body = response.json()
        assert body["code"] == "VALIDATION_ERROR"
        fields = {item["field"] for item in body["details"]}
        assert "first_name" in fields
        assert "location_city" in fields

    def test_invalid_action_value(self, client):
        response = client.post(
            "/api/v1/matching/action",
            json={"target_user_id": str(uuid.uuid4()), "action": "maybe"},
        )
        assert response.status_code == 400
        assert response.json()["code"] == "VALIDATION_ERROR"

    def test_locked_match_conflict(self, client):
        service = MagicMock()
        service.record_action = AsyncMock(
            side_effect=ConflictError(
                "This match is already mutual and can no longer be changed",
                "MATCH_LOCKED",
            )
        )
        app.dependency_overrides[get_matching_service] = lambda: service

        response = client.post(
            "/api/v1/matching/action",
            json={"target_user_id": str(uuid.uuid4()), "action": "pass"},
        )
        assert response.status_code == 409
        assert response.json() == {
            "error": "This match is already mutual and can no longer be changed",
            "code": "MATCH_LOCKED",
        }

    def test_unverified_member_cannot_discover(self, client, member):
        member.is_verified = False
        response = client.get("/api/v1/matching/discover")
        assert response.status_code == 403
        assert response.json()["code"] == "VERIFICATION_REQUIRED"

    def test_admin_routes_require_admin(self, client):
        response = client.get("/api/v1/admin/stats")
        assert response.status_code == 403
        assert response.json()["code"] == "ADMIN_REQUIRED"


class TestOwnProfile:
    """Own profile read through the overridden dependency."""

    def test_get_own_profile(self, client, member):
        member.bio = None
        member.occupation = None
        member.education_level = None
        member.profile_photo_url = None
        member.last_active_at = None
        member.created_at = datetime(2025, 1, 1, tzinfo=timezone.utc)
        response = client.get("/api/v1/profiles/me")
        assert response.status_code == 200
        assert response.json()["id"] == str(member.id)


def _result(value):
    result = MagicMock()
    result.scalar_one_or_none.return_value = value
    return result


class TestProfileDashboard:
    """Stats and the activity feed are visible to their owner only."""

    def test_stats_of_another_member(self, client):
        response = client.get(f"/api/v1/profiles/{uuid.uuid4()}/stats")
        assert response.status_code == 403
        assert response.json()["code"] == "UNAUTHORIZED_ACCESS"

    def test_own_stats(self, client, member):
        stats = {
            "profile_views": 12,
            "likes_received": 4,
            "matches": 2,
            "messages": 31,
            "endorsements": 1,
        }
        with patch("redplad.api.profiles.profile_stats", AsyncMock(return_value=stats)) as mock:
            response = client.get(f"/api/v1/profiles/{member.id}/stats")

        assert response.status_code == 200
        assert response.json() == {"stats": stats}
        assert mock.await_args.args[1] == member.id

    def test_activities_of_another_member(self, client):
        response = client.get(f"/api/v1/profiles/{uuid.uuid4()}/activities")
        assert response.status_code == 403
        assert response.json()["code"] == "UNAUTHORIZED_ACCESS"

    def test_own_activities(self, client, member):
        target = SimpleNamespace(
            id=uuid.uuid4(), first_name="Kwame", last_name="Mensah", profile_photo_url=None
        )
        activity = SimpleNamespace(
            id=uuid.uuid4(),
            activity_type="like",
            target_user_id=target.id,
            target_event_id=None,
            metadata_=None,
            created_at=datetime(2025, 6, 14, tzinfo=timezone.utc),
            target_user=target,
        )
        with patch(
            "redplad.api.profiles.recent_activities", AsyncMock(return_value=[activity])
        ) as mock:
            response = client.get(f"/api/v1/profiles/{member.id}/activities?limit=5")

        assert response.status_code == 200
        body = response.json()["activities"]
        assert body[0]["activity_type"] == "like"
        assert body[0]["target_user"]["first_name"] == "Kwame"
        assert mock.await_args.kwargs["limit"] == 5


class TestCommunityRoutes:
    """Event visibility through the HTTP surface."""

    def test_rsvp_to_private_event_is_not_found(self, client, db_session):
        event = CulturalEvent(
            id=uuid.uuid4(),
            organizer_id=uuid.uuid4(),
            event_date=datetime.now(timezone.utc) + timedelta(days=3),
            max_attendees=None,
            current_attendees=0,
            is_public=False,
        )
        db_session.execute.side_effect = [_result(event)]

        response = client.post(
            f"/api/v1/community/events/{event.id}/attend", json={"attendance_status": "going"}
        )

        assert response.status_code == 404
        assert response.json()["code"] == "EVENT_NOT_FOUND"
        db_session.add.assert_not_called()

    def test_my_events_route_is_not_an_event_id(self, client, member):
        with patch(
            "redplad.api.community.community_service.my_events",
            AsyncMock(return_value=MyEvents()),
        ) as mock:
            response = client.get("/api/v1/community/events/my-events?type=organized")

        assert response.status_code == 200
        assert response.json() == {
            "organized_events": [],
            "attending_events": [],
            "total_organized": 0,
            "total_attending": 0,
        }
        assert mock.await_args.kwargs["kind"] == "organized"


class TestAdminReview:
    """Document review through the admin routes."""

    @pytest.fixture
    def admin(self, member):
        member.is_admin = True
        return member

    def _document(self, **overrides):
        data = {
            "id": uuid.uuid4(),
            "user_id": uuid.uuid4(),
            "document_type": "profile_photo",
            "storage_path": "verification/profile_photo/u/a.jpg",
            "verification_status": "pending",
            "verification_notes": None,
            "verified_by": None,
            "verified_at": None,
            "created_at": datetime(2025, 6, 1, tzinfo=timezone.utc),
            "owner": SimpleNamespace(id=uuid.uuid4(), is_verified=False),
        }
        data.update(overrides)
        return SimpleNamespace(**data)

    def test_second_required_approval_verifies_member(self, client, admin, db_session):
        document = self._document()
        approved_types = MagicMock()
        approved_types.scalars.return_value = ["government_id", "profile_photo"]
        db_session.execute.side_effect = [_result(document), approved_types]

        with patch(
            "redplad.services.verification_service.generate_signed_url",
            return_value="https://storage.googleapis.com/signed-photo",
        ):
            response = client.put(
                f"/api/v1/admin/verifications/{document.id}/review",
                json={"status": "approved"},
            )

        assert response.status_code == 200
        body = response.json()
        assert body["profile_verified"] is True
        assert body["document"]["verification_status"] == "approved"
        assert body["document"]["file_url"] == "https://storage.googleapis.com/signed-photo"
        assert document.owner.is_verified is True

    def test_reviewed_document_conflicts(self, client, admin, db_session):
        document = self._document(verification_status="rejected")
        db_session.execute.side_effect = [_result(document)]

        response = client.put(
            f"/api/v1/admin/verifications/{document.id}/review",
            json={"status": "approved"},
        )

        assert response.status_code == 409
        body = response.json()
        assert body["code"] == "ALREADY_REVIEWED"
        assert body["details"] == {"verification_status": "rejected"}


class TestUploadCleanup:
    """Bucket objects are removed only once the database change is committed."""

    def test_withdrawn_document_deleted_after_commit(self, client, member, db_session):
        order = []
        document = SimpleNamespace(
            id=uuid.uuid4(),
            user_id=member.id,
            verification_status="pending",
            storage_path="verification/government_id/u/b.pdf",
        )
        db_session.execute.side_effect = [_result(document)]
        db_session.commit.side_effect = lambda: order.append("commit")

        with patch(
            "redplad.api.uploads.delete_file", side_effect=lambda path: order.append(path)
        ):
            response = client.delete(f"/api/v1/uploads/documents/{document.id}")

        assert response.status_code == 204
        assert order == ["commit", "verification/government_id/u/b.pdf"]

    def test_reviewed_document_kept(self, client, member, db_session):
        document = SimpleNamespace(
            id=uuid.uuid4(),
            user_id=member.id,
            verification_status="approved",
            storage_path="verification/government_id/u/b.pdf",
        )
        db_session.execute.side_effect = [_result(document)]

        with patch("redplad.api.uploads.delete_file") as delete_file:
            response = client.delete(f"/api/v1/uploads/documents/{document.id}")

        assert response.status_code == 409
        assert response.json()["code"] == "DOCUMENT_ALREADY_REVIEWED"
        delete_file.assert_not_called()

    def test_previous_photo_deleted_after_commit(self, client, member, db_session):
        order = []
        member.profile_photo_url = "https://storage.googleapis.com/bucket/profile-photos/u/old.jpg"
        db_session.commit.side_effect = lambda: order.append("commit")

        with patch("redplad.api.uploads.upload_file", return_value="https://new/photo.jpg"), \
             patch("redplad.api.uploads.path_from_url", return_value="profile-photos/u/old.jpg"), \
             patch(
                 "redplad.api.uploads.delete_file", side_effect=lambda path: order.append(path)
             ):
            response = client.post(
                "/api/v1/uploads/profile-photo",
                files={"file": ("me.png", b"\x89PNG\r\n", "image/png")},
            )

        assert response.status_code == 200
        assert member.profile_photo_url == "https://new/photo.jpg"
        assert order == ["commit", "profile-photos/u/old.jpg"]


@pytest.fixture
def socket_relay():
    relay = MagicMock()
    relay.redis = MagicMock()
    pubsub = MagicMock()
    pubsub.aclose = AsyncMock()
    relay.open_pubsub = AsyncMock(return_value=pubsub)

    async def idle(pubsub, timeout=1.0):
        await asyncio.sleep(0.01)
        return None

    relay.next_event = idle
    return relay


@pytest.fixture
def socket_client(member, socket_relay):
    user = AuthenticatedUser(id=member.id, email=member.email)
    with patch("redplad.api.chat.authenticate_websocket", return_value=user), \
         patch("redplad.api.chat.get_chat_relay", return_value=socket_relay):
        yield TestClient(app)


class TestChatSocket:
    """Malformed frames get error replies; relay failures close the socket."""

    def test_malformed_frames_answered_with_errors(self, socket_client, socket_relay):
        with socket_client.websocket_connect("/api/v1/chat/ws?token=t") as ws:
            ws.send_text("{not json")
            assert ws.receive_json() == {"event": "error", "data": {"code": "INVALID_FRAME"}}

            ws.send_json(["join_conversation"])
            assert ws.receive_json()["data"]["code"] == "INVALID_FRAME"

            ws.send_json({"type": "join_conversation", "conversation_id": "room-1"})
            assert ws.receive_json()["data"]["code"] == "INVALID_FRAME"

            ws.send_json({"type": "dance", "conversation_id": str(uuid.uuid4())})
            assert ws.receive_json()["data"]["code"] == "UNKNOWN_FRAME_TYPE"

        socket_relay.open_pubsub.return_value.aclose.assert_awaited_once()

    def test_relayed_event_forwarded(self, socket_client, socket_relay):
        pending = [{"event": "new_match", "data": {"match_id": "m-1"}}]

        async def next_event(pubsub, timeout=1.0):
            await asyncio.sleep(0.01)
            return pending.pop() if pending else None

        socket_relay.next_event = next_event
        with socket_client.websocket_connect("/api/v1/chat/ws?token=t") as ws:
            assert ws.receive_json() == {"event": "new_match", "data": {"match_id": "m-1"}}

    def test_relay_failure_closes_with_internal_error(self, socket_client, socket_relay):
        async def broken(pubsub, timeout=1.0):
            raise RuntimeError("redis connection lost")

        socket_relay.next_event = broken
        with socket_client.websocket_connect("/api/v1/chat/ws?token=t") as ws:
            with pytest.raises(WebSocketDisconnect) as exc_info:
                ws.receive_json()
        assert exc_info.value.code == 1011
        socket_relay.open_pubsub.return_value.aclose.assert_awaited_once()


class TestInFlightRequests:
    """Shutdown drain waits for running requests."""

    @pytest.mark.asyncio
    async def test_drain_returns_when_idle(self):
        tracker = InFlightRequests()
        tracker.enter()
        loop = asyncio.get_running_loop()
        loop.call_later(0.01, tracker.leave)
        await asyncio.wait_for(tracker.drain(timeout=1.0), timeout=2.0)
        assert tracker.count == 0

    @pytest.mark.asyncio
    async def test_drain_gives_up_after_timeout(self):
        tracker = InFlightRequests()
        tracker.enter()
        await tracker.drain(timeout=0.01)
        assert tracker.count == 1
