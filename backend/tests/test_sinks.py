"""Tests for the retrying sinks and the payment gateway client."""
import json

import httpx
import pytest

from app.domain.common.errors import IntegrationError
from app.infra.db.repositories.notification_repo import NotificationRepository
from app.infra.retry import RetryPolicy
from app.infra.vendors.ledger_client import LedgerClient
from app.infra.vendors.payment_client import PaymentGatewayClient
from app.services.after_commit import AfterCommit
from app.services.ledger_service import LedgerRecorder
from app.services.notification_service import NotificationType, SwapNotifier

NO_WAIT = RetryPolicy(max_attempts=3, base_delay_seconds=0.0)


class FakeBus:
    def __init__(self, fail: bool = False):
        self.fail = fail
        self.published: list[tuple[str, dict]] = []

    async def publish(self, channel, message):
        if self.fail:
            raise ConnectionError("redis down")
        self.published.append((channel, message))
        return 1


class TestRetryPolicy:
    def test_backoff_grows_and_caps(self):
        policy = RetryPolicy(base_delay_seconds=1.0, multiplier=2.0, max_delay_seconds=5.0)
        assert [policy.get_backoff_delay(a) for a in range(4)] == [1.0, 2.0, 4.0, 5.0]

    async def test_retries_until_success(self):
        calls = []
        sleeps = []

        async def flaky():
            calls.append(1)
            if len(calls) < 3:
                raise RuntimeError("transient")
            return "ok"

        async def fake_sleep(delay):
            sleeps.append(delay)

        policy = RetryPolicy(max_attempts=3, base_delay_seconds=0.5, multiplier=2.0)
        assert await policy.run(flaky, sleep=fake_sleep) == "ok"
        assert len(calls) == 3
        assert sleeps == [0.5, 1.0]

    async def test_raises_last_error(self):
        async def broken():
            raise RuntimeError("still down")

        async def fake_sleep(delay):
            pass

        with pytest.raises(RuntimeError, match="still down"):
            await RetryPolicy(max_attempts=2).run(broken, sleep=fake_sleep)


class TestLedgerRecorder:
    async def test_records_through_relay(self):
        seen = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append((request.url.path, request.headers.get("authorization"), json.loads(request.content)))
            return httpx.Response(200, json={"transaction_id": "0xabc"})

        client = LedgerClient("http://ledger.test", api_token="tok", timeout=5, transport=httpx.MockTransport(handler))
        recorder = LedgerRecorder(client, NO_WAIT)

        assert await recorder.record("swap_created", {"swap_id": "s1"}) == "0xabc"
        path, auth, body = seen[0]
        assert path == "/transactions"
        assert auth == "Bearer tok"
        assert body["type"] == "swap_created"
        assert body["data"] == {"swap_id": "s1"}

    async def test_failure_is_swallowed_after_retries(self):
        attempts = []

        def handler(request: httpx.Request) -> httpx.Response:
            attempts.append(1)
            return httpx.Response(503)

        client = LedgerClient("http://ledger.test", api_token="", timeout=5, transport=httpx.MockTransport(handler))
        recorder = LedgerRecorder(client, NO_WAIT)

        assert await recorder.record("proposal_accepted", {}) is None
        assert len(attempts) == 3

    async def test_missing_transaction_id_counts_as_failure(self):
        client = LedgerClient(
            "http://ledger.test",
            api_token="",
            timeout=5,
            transport=httpx.MockTransport(lambda request: httpx.Response(200, json={})),
        )
        assert await LedgerRecorder(client, RetryPolicy(max_attempts=1)).record("x", {}) is None

    async def test_disabled_recorder_skips_the_relay(self):
        def handler(request):
            raise AssertionError("relay must not be called")

        client = LedgerClient("http://ledger.test", timeout=5, transport=httpx.MockTransport(handler))
        assert await LedgerRecorder(client, NO_WAIT, enabled=False).record("swap_created", {}) is None


class TestPaymentGatewayClient:
    async def test_create_escrow(self):
        def handler(request: httpx.Request) -> httpx.Response:
            assert request.url.path == "/escrows"
            body = json.loads(request.content)
            assert body["reference"] == "proposal:p1"
            return httpx.Response(201, json={"escrow_id": "esc-9"})

        client = PaymentGatewayClient("http://pay.test", api_token="", timeout=5, transport=httpx.MockTransport(handler))
        escrow_id = await client.create_escrow("u1", "u2", 250.0, "USD", "pm_1", "proposal:p1")
        assert escrow_id == "esc-9"

    async def test_validate_offer(self):
        transport = httpx.MockTransport(
            lambda request: httpx.Response(200, json={"is_valid": False, "errors": ["card declined"]})
        )
        client = PaymentGatewayClient("http://pay.test", api_token="", timeout=5, transport=transport)

        result = await client.validate_cash_offer("u1", 100.0, "USD", "pm_1")

        assert result.is_valid is False
        assert result.errors == ["card declined"]

    async def test_gateway_errors_surface_without_retry(self):
        attempts = []

        def handler(request):
            attempts.append(1)
            return httpx.Response(503)

        client = PaymentGatewayClient("http://pay.test", api_token="", timeout=5, transport=httpx.MockTransport(handler))

        with pytest.raises(IntegrationError) as exc_info:
            await client.refund_escrow("esc-1", "rejected")
        assert "503" in exc_info.value.message
        assert len(attempts) == 1

    async def test_unreachable_gateway(self):
        def handler(request):
            raise httpx.ConnectError("connection refused", request=request)

        client = PaymentGatewayClient("http://pay.test", api_token="", timeout=5, transport=httpx.MockTransport(handler))

        with pytest.raises(IntegrationError):
            await client.release_escrow("esc-1")


class TestSwapNotifier:
    async def test_writes_inbox_and_publishes(self, db_session, make_user):
        user = await make_user("bob")
        bus = FakeBus()
        notifier = SwapNotifier(db_session, bus, NO_WAIT)

        assert await notifier.auction_ended(user.id, "swap-1", 3)

        repo = NotificationRepository(db_session)
        assert await repo.count_unread(user.id) == 1
        stored = (await repo.list_by_user(user.id))[0]
        assert stored.type == NotificationType.AUCTION_ENDED
        assert stored.data == {"swap_id": "swap-1", "proposal_count": 3}
        channel, message = bus.published[0]
        assert channel == f"user:{user.id}:events"
        assert message["type"] == "notification.new"
        assert message["payload"]["swap_id"] == "swap-1"

    async def test_publish_failure_keeps_the_inbox_row(self, db_session, make_user):
        user = await make_user("bob")
        notifier = SwapNotifier(db_session, FakeBus(fail=True), NO_WAIT)

        assert await notifier.swap_expired(user.id, "swap-1")
        assert await NotificationRepository(db_session).count_unread(user.id) == 1

    async def test_delivery_failure_returns_false(self):
        notifier = SwapNotifier(None, None, NO_WAIT)
        assert await notifier.swap_expired("user-1", "swap-1") is False


class TestAfterCommit:
    async def test_runs_in_order_and_swallows_failures(self):
        ran = []

        async def ok(label):
            ran.append(label)

        async def boom():
            raise RuntimeError("sink down")

        effects = AfterCommit()
        effects.add(ok, "first")
        effects.add(boom)
        effects.add(ok, label="second")
        assert len(effects) == 3

        await effects.run()

        assert ran == ["first", "second"]
        assert len(effects) == 0
