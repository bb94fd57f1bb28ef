"""Unit tests for the action item store client."""

import json
from datetime import datetime, timezone

import httpx
import pytest

from src.models.action_item import ActionItemStatus, DwellSample
from src.models.contract import (
    ActivityEvent,
    ItemDataRequest,
    ItemDataType,
    StatusUpdateRequest,
)
from src.services.store_client import UPLOAD_FAILED_MESSAGE, StoreClient

BASE_URL = "http://store.test/api/partners"


def make_client(handler, **kwargs) -> StoreClient:
    return StoreClient(base_url=BASE_URL, transport=httpx.MockTransport(handler), **kwargs)


def raw_item(item_id: str, sort_order: int, **overrides) -> dict:
    item = {
        "id": item_id,
        "partnership_id": "partnership-1",
        "title": f"Task {item_id}",
        "category": "onboarding",
        "priority": "high",
        "sort_order": sort_order,
        "status": "pending",
        "completed_at": None,
        "paused_at": None,
        "paused_reason": None,
        "evidence_file_path": None,
        "due_date": None,
    }
    item.update(overrides)
    return item


class TestFetchActionItems:
    @pytest.mark.asyncio
    async def test_parses_and_sorts_items(self):
        seen = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen["url"] = str(request.url)
            seen["user"] = request.headers.get("x-user-id")
            return httpx.Response(
                200,
                json={
                    "success": True,
                    "organization": {"name": "Ford District"},
                    "actionItems": [raw_item("b", 2), raw_item("a", 1)],
                },
            )

        client = make_client(handler)
        items = await client.fetch_action_items("partnership-1", "user-1")

        assert [i.id for i in items] == ["a", "b"]
        assert seen["url"] == f"{BASE_URL}/dashboard/partnership-1"
        assert seen["user"] == "user-1"

    @pytest.mark.asyncio
    async def test_skips_records_violating_invariant(self):
        def handler(request):
            return httpx.Response(
                200,
                json={
                    "success": True,
                    "actionItems": [
                        raw_item("ok", 1),
                        # paused without resurface_at
                        raw_item("bad", 2, status="paused", paused_at="2025-02-01T00:00:00Z"),
                    ],
                },
            )

        items = await make_client(handler).fetch_action_items("partnership-1", "user-1")

        assert [i.id for i in items] == ["ok"]

    @pytest.mark.asyncio
    async def test_naive_timestamps_treated_as_utc(self):
        def handler(request):
            return httpx.Response(
                200,
                json={
                    "success": True,
                    "actionItems": [
                        raw_item("done", 1, status="completed", completed_at="2025-02-01T10:00:00")
                    ],
                },
            )

        items = await make_client(handler).fetch_action_items("partnership-1", "user-1")

        assert items[0].completed_at == datetime(2025, 2, 1, 10, 0, tzinfo=timezone.utc)

    @pytest.mark.asyncio
    async def test_returns_none_on_server_error(self):
        client = make_client(lambda request: httpx.Response(500, json={"success": False}))

        assert await client.fetch_action_items("partnership-1", "user-1") is None

    @pytest.mark.asyncio
    async def test_returns_none_when_unsuccessful(self):
        client = make_client(
            lambda request: httpx.Response(200, json={"success": False, "error": "nope"})
        )

        assert await client.fetch_action_items("partnership-1", "user-1") is None

    @pytest.mark.asyncio
    async def test_returns_none_on_network_error(self):
        def handler(request):
            raise httpx.ConnectError("connection refused", request=request)

        assert await make_client(handler).fetch_action_items("partnership-1", "user-1") is None

    @pytest.mark.asyncio
    async def test_leftover_pause_fields_are_cleared(self):
        def handler(request):
            return httpx.Response(
                200,
                json={
                    "success": True,
                    "actionItems": [
                        # the store clears only paused_at on complete/resume
                        raw_item(
                            "a",
                            1,
                            status="completed",
                            completed_at="2025-02-10T09:00:00Z",
                            paused_reason="2_weeks",
                            resurface_at="2025-02-24T09:00:00Z",
                        ),
                        raw_item("b", 2, paused_reason="1_week", resurface_at="2025-02-12T09:00:00Z"),
                    ],
                },
            )

        items = await make_client(handler).fetch_action_items("partnership-1", "user-1")

        assert [i.id for i in items] == ["a", "b"]
        done, pending = items
        assert done.status == ActionItemStatus.COMPLETED
        assert done.paused_reason is None
        assert done.resurface_at is None
        assert pending.status == ActionItemStatus.PENDING
        assert pending.paused_reason is None
        assert pending.resurface_at is None

    @pytest.mark.asyncio
    async def test_in_progress_loads_as_pending(self):
        def handler(request):
            return httpx.Response(
                200,
                json={"success": True, "actionItems": [raw_item("a", 1, status="in_progress")]},
            )

        items = await make_client(handler).fetch_action_items("partnership-1", "user-1")

        assert items[0].status == ActionItemStatus.PENDING

    @pytest.mark.asyncio
    async def test_null_item_list_returns_none(self):
        client = make_client(
            lambda request: httpx.Response(200, json={"success": True, "actionItems": None})
        )

        assert await client.fetch_action_items("partnership-1", "user-1") is None


class TestMalformedAcknowledgements:
    """2xx bodies that do not fit the expected shape are failures, not errors."""

    @pytest.mark.asyncio
    async def test_update_status(self):
        client = make_client(lambda request: httpx.Response(200, json={"success": "maybe"}))

        ok = await client.update_status(
            StatusUpdateRequest(
                item_id="x1", status="pending", user_id="user-1", partnership_id="partnership-1"
            )
        )

        assert ok is False

    @pytest.mark.asyncio
    async def test_save_item_data(self):
        client = make_client(lambda request: httpx.Response(200, json={"success": [1]}))

        ack = await client.save_item_data(
            ItemDataRequest(
                partnership_id="partnership-1",
                action_item_id="x1",
                user_id="user-1",
                data_type=ItemDataType.CONFIRMATION,
            )
        )

        assert ack.success is False

    @pytest.mark.asyncio
    async def test_upload_evidence(self):
        client = make_client(
            lambda request: httpx.Response(200, json={"success": True, "filePath": 12})
        )

        result = await client.upload_evidence(
            "partnership-1", "x1", "user-1", filename="plan.pdf", content=b"data"
        )

        assert result.success is False
        assert result.error == UPLOAD_FAILED_MESSAGE

    @pytest.mark.asyncio
    async def test_log_activity(self):
        client = make_client(lambda request: httpx.Response(200, json={"ok": {}}))

        ok = await client.log_activity(
            ActivityEvent(partnership_id="partnership-1", user_id="user-1", action="dashboard_viewed")
        )

        assert ok is False

    @pytest.mark.asyncio
    async def test_track_view(self):
        client = make_client(lambda request: httpx.Response(200, json={"success": "nope"}))

        ok = await client.track_view(
            DwellSample(
                partnership_id="partnership-1",
                user_id="user-1",
                tab_name="overview",
                duration_seconds=3,
            )
        )

        assert ok is False


class TestUpdateStatus:
    @pytest.mark.asyncio
    async def test_sends_camel_case_patch(self):
        seen = {}

        def handler(request):
            seen["method"] = request.method
            seen["path"] = request.url.path
            seen["body"] = json.loads(request.content)
            return httpx.Response(200, json={"success": True})

        resurface_at = datetime(2025, 3, 3, 15, 30, tzinfo=timezone.utc)
        ok = await make_client(handler).update_status(
            StatusUpdateRequest(
                item_id="x1",
                status=ActionItemStatus.PAUSED,
                paused_reason="2_weeks",
                resurface_at=resurface_at,
                user_id="user-1",
                partnership_id="partnership-1",
            )
        )

        assert ok is True
        assert seen["method"] == "PATCH"
        assert seen["path"] == "/api/partners/action-items"
        assert seen["body"]["itemId"] == "x1"
        assert seen["body"]["status"] == "paused"
        assert seen["body"]["pausedReason"] == "2_weeks"
        assert seen["body"]["resurfaceAt"].startswith("2025-03-03T15:30:00")
        assert seen["body"]["partnershipId"] == "partnership-1"
        assert "evidenceFilePath" not in seen["body"]

    @pytest.mark.asyncio
    async def test_accepts_ok_acknowledgement(self):
        client = make_client(lambda request: httpx.Response(200, json={"ok": True}))

        ok = await client.update_status(
            StatusUpdateRequest(
                item_id="x1", status="pending", user_id="user-1", partnership_id="partnership-1"
            )
        )

        assert ok is True

    @pytest.mark.asyncio
    async def test_forbidden_is_failure(self):
        client = make_client(
            lambda request: httpx.Response(403, json={"success": False, "error": "Unauthorized"})
        )

        ok = await client.update_status(
            StatusUpdateRequest(
                item_id="x1", status="completed", user_id="user-1", partnership_id="other"
            )
        )

        assert ok is False

    @pytest.mark.asyncio
    async def test_timeout_is_failure_without_retry(self):
        calls = []

        def handler(request):
            calls.append(request)
            raise httpx.ReadTimeout("slow", request=request)

        ok = await make_client(handler).update_status(
            StatusUpdateRequest(
                item_id="x1", status="completed", user_id="user-1", partnership_id="partnership-1"
            )
        )

        assert ok is False
        assert len(calls) == 1


class TestSaveItemData:
    @pytest.mark.asyncio
    async def test_posts_payload(self):
        seen = {}

        def handler(request):
            seen["body"] = json.loads(request.content)
            return httpx.Response(200, json={"success": True, "message": "Website saved!"})

        ack = await make_client(handler).save_item_data(
            ItemDataRequest(
                partnership_id="partnership-1",
                action_item_id="x1",
                user_id="user-1",
                data_type=ItemDataType.WEBSITE,
                data={"website": "https://ford.k12.example"},
            )
        )

        assert ack.success is True
        assert ack.message == "Website saved!"
        assert seen["body"] == {
            "partnershipId": "partnership-1",
            "actionItemId": "x1",
            "userId": "user-1",
            "dataType": "website",
            "data": {"website": "https://ford.k12.example"},
        }

    @pytest.mark.asyncio
    async def test_failure_returns_unsuccessful_ack(self):
        client = make_client(lambda request: httpx.Response(500))

        ack = await client.save_item_data(
            ItemDataRequest(
                partnership_id="partnership-1",
                action_item_id="x1",
                user_id="user-1",
                data_type=ItemDataType.CONFIRMATION,
            )
        )

        assert ack.success is False


class TestUploadEvidence:
    @pytest.mark.asyncio
    async def test_multipart_upload(self):
        seen = {}

        def handler(request):
            seen["content_type"] = request.headers["content-type"]
            seen["body"] = request.content
            return httpx.Response(
                200, json={"success": True, "filePath": "partnership-1/x1/plan.pdf"}
            )

        result = await make_client(handler).upload_evidence(
            "partnership-1",
            "x1",
            "user-1",
            filename="plan.pdf",
            content=b"%PDF-1.4",
            content_type="application/pdf",
            folder="plans",
        )

        assert result.success is True
        assert result.file_path == "partnership-1/x1/plan.pdf"
        assert seen["content_type"].startswith("multipart/form-data")
        assert b'name="itemId"' in seen["body"]
        assert b'name="folder"' in seen["body"]
        assert b'filename="plan.pdf"' in seen["body"]

    @pytest.mark.asyncio
    async def test_failure_carries_toast_message(self):
        client = make_client(
            lambda request: httpx.Response(500, json={"success": False, "error": "Failed to upload file"})
        )

        result = await client.upload_evidence(
            "partnership-1", "x1", "user-1", filename="plan.pdf", content=b"data"
        )

        assert result.success is False
        assert result.error == UPLOAD_FAILED_MESSAGE


class TestTelemetry:
    @pytest.mark.asyncio
    async def test_track_view_uses_snake_case(self):
        seen = {}

        def handler(request):
            seen["path"] = request.url.path
            seen["body"] = json.loads(request.content)
            return httpx.Response(200, json={"success": True})

        ok = await make_client(handler).track_view(
            DwellSample(
                partnership_id="partnership-1",
                user_id="user-1",
                tab_name="overview",
                duration_seconds=12,
            )
        )

        assert ok is True
        assert seen["path"] == "/api/partners/track-view"
        assert seen["body"] == {
            "partnership_id": "partnership-1",
            "user_id": "user-1",
            "tab_name": "overview",
            "duration_seconds": 12,
        }

    @pytest.mark.asyncio
    async def test_log_activity(self):
        seen = {}

        def handler(request):
            seen["body"] = json.loads(request.content)
            return httpx.Response(200, json={"success": True})

        ok = await make_client(handler).log_activity(
            ActivityEvent(
                partnership_id="partnership-1",
                user_id="user-1",
                action="action_item_resurfaced",
                details={"item_id": "x1"},
            )
        )

        assert ok is True
        assert seen["body"]["action"] == "action_item_resurfaced"
        assert seen["body"]["partnershipId"] == "partnership-1"
        assert seen["body"]["user_id"] == "user-1"

    @pytest.mark.asyncio
    async def test_service_token_sent_as_bearer(self):
        seen = {}

        def handler(request):
            seen["auth"] = request.headers.get("authorization")
            return httpx.Response(200, json={"success": True})

        client = make_client(handler, service_token="svc-token")
        await client.log_activity(
            ActivityEvent(partnership_id="partnership-1", user_id="user-1", action="dashboard_viewed")
        )

        assert seen["auth"] == "Bearer svc-token"

    @pytest.mark.asyncio
    async def test_close_is_idempotent(self):
        client = make_client(lambda request: httpx.Response(200, json={"success": True}))
        await client.log_activity(
            ActivityEvent(partnership_id="partnership-1", user_id="user-1", action="dashboard_viewed")
        )

        await client.close()
        await client.close()
