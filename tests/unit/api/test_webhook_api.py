"""Tests for the change notification webhook endpoints."""

import asyncio
import logging
from typing import Any, Callable

import orjson
import pytest
from fastapi.testclient import TestClient

from querycache.api.app import create_app
from querycache.cache.store import MemoryCacheStore
from querycache.config import Settings
from querycache.security.webhook import sign_body

SECRET = "shared-secret"
TECH_ACCOUNTS = "SELECT Id, Name FROM Account WHERE Industry = 'Tech'"
ALL_ACCOUNTS = "SELECT Id, Name FROM Account"


def change_body(entity: str = "Account", change_type: str = "UPDATE", **extra: Any) -> bytes:
    header: dict[str, Any] = {"entityName": entity, "changeType": change_type, **extra}
    return orjson.dumps({"payload": {"ChangeEventHeader": header}})


class TestWebhookEndpoint:
    """Test POST /webhooks/changes."""

    @pytest.fixture
    def app_settings(self, make_settings: Callable[..., Settings]) -> Settings:
        return make_settings(webhook_invalidation=True, webhook_secret=SECRET)

    @pytest.fixture
    def store(self) -> MemoryCacheStore:
        return MemoryCacheStore()

    @pytest.fixture
    def client(self, app_settings: Settings, store: MemoryCacheStore) -> TestClient:
        return TestClient(create_app(app_settings, store=store))

    def populate(self, client: TestClient) -> Any:
        cache = client.app.state.query_cache

        async def fill() -> None:
            async def tech() -> list[dict[str, str]]:
                return [{"Id": "A"}, {"Id": "B"}]

            async def everyone() -> list[dict[str, str]]:
                return [{"Id": "C"}]

            await cache.remember(TECH_ACCOUNTS, tech)
            await cache.remember(ALL_ACCOUNTS, everyone)

        asyncio.run(fill())
        return cache

    def test_record_change_with_secret(self, client: TestClient, store: MemoryCacheStore) -> None:
        """An authenticated update invalidates the records' queries."""
        cache = self.populate(client)

        response = client.post(
            "/webhooks/changes",
            content=change_body(recordIds=["A"]),
            headers={"X-Webhook-Secret": SECRET},
        )

        assert response.status_code == 200
        assert response.json() == {
            "success": True,
            "message": "Cache invalidated successfully",
            "entity": "Account",
            "invalidation_type": "record-level",
            "records_affected": 1,
            "keys_invalidated": 1,
        }
        assert cache.keys.query(TECH_ACCOUNTS) not in store.keys()
        assert cache.keys.query(ALL_ACCOUNTS) in store.keys()

    def test_signed_request(self, client: TestClient) -> None:
        """A correctly signed body is accepted."""
        body = change_body(change_type="CREATE", recordIds=["NEW"])
        response = client.post(
            "/webhooks/changes",
            content=body,
            headers={"X-Webhook-Signature": sign_body(body, SECRET)},
        )
        assert response.status_code == 200
        assert response.json()["invalidation_type"] == "object-level"

    def test_body_secret(self, client: TestClient) -> None:
        """The secret may be sent in the body."""
        body = orjson.loads(change_body())
        body["secret"] = SECRET
        response = client.post("/webhooks/changes", json=body)
        assert response.status_code == 200

    def test_tampered_body_rejected(self, client: TestClient, store: MemoryCacheStore) -> None:
        """A body altered after signing is rejected and nothing is invalidated."""
        cache = self.populate(client)
        signature = sign_body(change_body(entity="Contact"), SECRET)
        before = store.keys()

        response = client.post(
            "/webhooks/changes",
            content=change_body(entity="Account"),
            headers={"X-Webhook-Signature": signature},
        )

        assert response.status_code == 401
        assert response.json() == {"success": False, "message": "Unauthorized webhook request"}
        assert store.keys() == before
        assert cache.keys.query(ALL_ACCOUNTS) in store.keys()

    def test_wrong_secret(self, client: TestClient) -> None:
        """A wrong secret is rejected."""
        response = client.post(
            "/webhooks/changes",
            content=change_body(),
            headers={"X-Webhook-Secret": "guess"},
        )
        assert response.status_code == 401

    def test_invalid_payload(self, client: TestClient) -> None:
        """A payload without entityName is a bad request."""
        response = client.post(
            "/webhooks/changes",
            content=orjson.dumps({"payload": {"ChangeEventHeader": {"changeType": "UPDATE"}}}),
            headers={"X-Webhook-Secret": SECRET},
        )
        assert response.status_code == 400
        assert response.json() == {
            "success": False,
            "message": "Invalid CDC payload: missing entityName",
        }

    def test_rejected_body_secret_not_logged(
        self, client: TestClient, caplog: pytest.LogCaptureFixture
    ) -> None:
        """A body secret on an invalid notification is masked in the logs."""
        with caplog.at_level(logging.DEBUG):
            response = client.post("/webhooks/changes", json={"secret": SECRET, "payload": {}})

        assert response.status_code == 400
        assert caplog.records
        for record in caplog.records:
            assert SECRET not in record.getMessage()
            assert SECRET not in repr(vars(record))

    def test_non_json_body(self, client: TestClient) -> None:
        """A signed body that isn't JSON is a bad request."""
        body = b"not json"
        response = client.post(
            "/webhooks/changes",
            content=body,
            headers={"X-Webhook-Signature": sign_body(body, SECRET)},
        )
        assert response.status_code == 400

    def test_disabled_webhook(
        self, make_settings: Callable[..., Settings], store: MemoryCacheStore
    ) -> None:
        """An authenticated request is refused when invalidation is disabled."""
        client = TestClient(
            create_app(make_settings(webhook_invalidation=False, webhook_secret=SECRET), store)
        )
        response = client.post(
            "/webhooks/changes",
            content=change_body(),
            headers={"X-Webhook-Secret": SECRET},
        )
        assert response.status_code == 403
        assert response.json()["success"] is False

    def test_missing_secret_configuration(
        self, make_settings: Callable[..., Settings], store: MemoryCacheStore
    ) -> None:
        """Without a configured secret every request is unauthorized."""
        client = TestClient(
            create_app(make_settings(webhook_invalidation=True, webhook_secret=None), store)
        )
        response = client.post("/webhooks/changes", content=change_body())
        assert response.status_code == 401
        assert response.json()["message"] == "Webhook authentication not configured"

    def test_validation_not_required(
        self, make_settings: Callable[..., Settings], store: MemoryCacheStore
    ) -> None:
        """With validation disabled, unauthenticated requests are processed."""
        client = TestClient(
            create_app(
                make_settings(webhook_invalidation=True, webhook_require_validation=False),
                store,
            )
        )
        response = client.post("/webhooks/changes", content=change_body())
        assert response.status_code == 200


class TestWebhookHealth:
    """Test GET /webhooks/health."""

    def test_health_reports_configuration(self, make_settings: Callable[..., Settings]) -> None:
        """Health shows whether the webhook is enabled and has a secret."""
        app = create_app(
            make_settings(webhook_invalidation=True, webhook_secret=SECRET),
            store=MemoryCacheStore(),
        )
        response = TestClient(app).get("/webhooks/health")

        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "ok"
        assert data["webhook_invalidation_enabled"] is True
        assert data["webhook_secret_configured"] is True
        assert "timestamp" in data

    def test_health_needs_no_auth(self, make_settings: Callable[..., Settings]) -> None:
        """Health is reachable without credentials when nothing is configured."""
        app = create_app(make_settings(), store=MemoryCacheStore())
        data = TestClient(app).get("/webhooks/health").json()
        assert data["webhook_invalidation_enabled"] is False
        assert data["webhook_secret_configured"] is False


class TestMetricsEndpoint:
    """Test GET /metrics."""

    def test_metrics_endpoint(self, make_settings: Callable[..., Settings]) -> None:
        """The metrics endpoint answers with plain text."""
        app = create_app(make_settings(), store=MemoryCacheStore())
        response = TestClient(app).get("/metrics")
        assert response.status_code == 200
        assert response.headers["content-type"].startswith("text/plain")
