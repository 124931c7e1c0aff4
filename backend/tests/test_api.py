"""HTTP tests: auth, the error envelope and the targeting/proposal routes."""
from datetime import datetime, timedelta, timezone
from uuid import uuid4

import httpx
import pytest

from app.api.deps import get_ledger, get_notifier, get_payment_gateway
from app.infra.db.repositories.notification_repo import NotificationRepository
from app.infra.db.session import get_db
from app.main import app

PASSWORD = "correct-horse-battery"


@pytest.fixture
async def client(db_session, payment, notifier, ledger):
    async def _get_db():
        yield db_session

    app.dependency_overrides[get_db] = _get_db
    app.dependency_overrides[get_payment_gateway] = lambda: payment
    app.dependency_overrides[get_notifier] = lambda: notifier
    app.dependency_overrides[get_ledger] = lambda: ledger
    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac
    app.dependency_overrides.clear()


async def _signup(client, name):
    email = f"{name}-{uuid4().hex[:8]}@swapmail.io"
    response = await client.post(
        "/api/auth/signup", json={"email": email, "password": PASSWORD, "display_name": name}
    )
    assert response.status_code == 201, response.text
    return {"Authorization": f"Bearer {response.json()['access_token']}"}


async def _list_swap(client, headers, *, days=60, acceptance_strategy=None, payment_types=None):
    check_in = datetime.now(timezone.utc) + timedelta(days=days)
    response = await client.post(
        "/api/bookings",
        json={
            "type": "hotel",
            "title": "Canal house",
            "city": "Amsterdam",
            "country": "NL",
            "check_in_date": check_in.isoformat(),
            "check_out_date": (check_in + timedelta(days=3)).isoformat(),
            "original_price": 800,
            "swap_value": 700,
        },
        headers=headers,
    )
    assert response.status_code == 201, response.text
    body = {"booking_id": response.json()["id"]}
    if acceptance_strategy:
        body["acceptance_strategy"] = acceptance_strategy
    if payment_types:
        body["payment_types"] = payment_types
    response = await client.post("/api/swaps", json=body, headers=headers)
    assert response.status_code == 201, response.text
    return response.json()


def _error(response):
    body = response.json()
    assert body["success"] is False
    return body["error"]


@pytest.fixture
async def market(client):
    """Three users with one first-match swap each."""
    users = {}
    for name in ("alice", "bob", "carol"):
        headers = await _signup(client, name)
        users[name] = {"headers": headers, "swap": await _list_swap(client, headers)}
    return users


class TestAuth:
    async def test_health(self, client):
        response = await client.get("/health")
        assert response.status_code == 200
        assert response.json()["status"] == "ok"

    async def test_signup_login_me(self, client):
        email = f"dana-{uuid4().hex[:8]}@swapmail.io"
        signup = await client.post("/api/auth/signup", json={"email": email, "password": PASSWORD})
        assert signup.status_code == 201

        login = await client.post("/api/auth/login", data={"username": email, "password": PASSWORD})
        assert login.status_code == 200
        token = login.json()["access_token"]

        me = await client.get("/api/auth/me", headers={"Authorization": f"Bearer {token}"})
        assert me.status_code == 200
        assert me.json()["email"] == email

    async def test_duplicate_email(self, client):
        email = f"erin-{uuid4().hex[:8]}@swapmail.io"
        await client.post("/api/auth/signup", json={"email": email, "password": PASSWORD})

        response = await client.post("/api/auth/signup", json={"email": email, "password": PASSWORD})

        assert response.status_code == 409
        assert _error(response)["code"] == "EMAIL_TAKEN"

    async def test_wrong_password(self, client):
        email = f"finn-{uuid4().hex[:8]}@swapmail.io"
        await client.post("/api/auth/signup", json={"email": email, "password": PASSWORD})

        response = await client.post("/api/auth/login", data={"username": email, "password": "wrong-password"})

        assert response.status_code == 401
        error = _error(response)
        assert error["code"] == "INVALID_CREDENTIALS"
        assert error["category"] == "authentication"

    async def test_missing_token(self, client):
        response = await client.get("/api/swaps")
        assert response.status_code == 401
        assert _error(response)["code"] == "UNAUTHENTICATED"

    async def test_garbage_token(self, client):
        response = await client.get("/api/swaps", headers={"Authorization": "Bearer not-a-jwt"})
        assert response.status_code == 401
        assert _error(response)["category"] == "authentication"


class TestTargetingRoutes:
    async def test_target_creates_pending_proposal(self, client, market):
        alice, bob = market["alice"], market["bob"]

        response = await client.post(
            f"/api/swaps/{bob['swap']['id']}/target",
            json={"source_swap_id": alice["swap"]["id"], "message": "Keen on Amsterdam"},
            headers=alice["headers"],
        )

        assert response.status_code == 201, response.text
        body = response.json()
        assert body["relation"]["status"] == "active"
        assert body["proposal"]["status"] == "pending"
        assert body["proposal"]["type"] == "booking"
        assert body["proposal"]["message"] == "Keen on Amsterdam"
        assert body["previous_target_swap_id"] is None

        status = await client.get(f"/api/swaps/{bob['swap']['id']}/targeting-status", headers=bob["headers"])
        assert status.json()["incoming_count"] == 1
        mine = await client.get(f"/api/swaps/{alice['swap']['id']}", headers=alice["headers"])
        assert mine.json()["status"] == "targeting"

    async def test_second_proposer_gets_conflict_envelope(self, client, market):
        alice, bob, carol = market["alice"], market["bob"], market["carol"]
        target_url = f"/api/swaps/{bob['swap']['id']}/target"
        await client.post(target_url, json={"source_swap_id": alice["swap"]["id"]}, headers=alice["headers"])

        response = await client.post(target_url, json={"source_swap_id": carol["swap"]["id"]}, headers=carol["headers"])

        assert response.status_code == 409
        assert response.json() == {
            "success": False,
            "error": {
                "code": "PROPOSAL_PENDING",
                "message": "This swap already has a pending proposal",
                "category": "conflict",
            },
        }

        verdict = await client.get(
            f"/api/swaps/{bob['swap']['id']}/can-target",
            params={"source_swap_id": carol["swap"]["id"]},
            headers=carol["headers"],
        )
        assert verdict.status_code == 200
        assert verdict.json()["can_target"] is False
        assert [r["code"] for r in verdict.json()["restrictions"]] == ["PROPOSAL_PENDING"]

    async def test_self_target_is_a_validation_error(self, client, market):
        alice = market["alice"]
        second = await _list_swap(client, alice["headers"])

        response = await client.post(
            f"/api/swaps/{second['id']}/target",
            json={"source_swap_id": alice["swap"]["id"]},
            headers=alice["headers"],
        )

        assert response.status_code == 400
        assert _error(response)["code"] == "CANNOT_TARGET_OWN_SWAP"

    async def test_malformed_path_id(self, client, market):
        alice = market["alice"]
        response = await client.post(
            "/api/swaps/not-a-uuid/target", json={"source_swap_id": alice["swap"]["id"]}, headers=alice["headers"]
        )
        assert response.status_code == 400
        assert _error(response)["code"] == "INVALID_UUID"

    async def test_malformed_body(self, client, market):
        alice, bob = market["alice"], market["bob"]
        response = await client.post(
            f"/api/swaps/{bob['swap']['id']}/target", json={"source_swap_id": "nope"}, headers=alice["headers"]
        )
        assert response.status_code == 400
        error = _error(response)
        assert error["code"] == "VALIDATION_ERROR"
        assert "source_swap_id" in error["message"]

    async def test_unknown_target(self, client, market):
        alice = market["alice"]
        response = await client.post(
            f"/api/swaps/{uuid4()}/target", json={"source_swap_id": alice["swap"]["id"]}, headers=alice["headers"]
        )
        assert response.status_code == 404
        assert _error(response)["code"] == "SWAP_NOT_FOUND"

    async def test_remove_target_with_body(self, client, market):
        alice, bob = market["alice"], market["bob"]
        target_url = f"/api/swaps/{bob['swap']['id']}/target"
        await client.post(target_url, json={"source_swap_id": alice["swap"]["id"]}, headers=alice["headers"])

        response = await client.request(
            "DELETE", target_url, json={"source_swap_id": alice["swap"]["id"]}, headers=alice["headers"]
        )

        assert response.status_code == 200, response.text
        assert response.json()["status"] == "cancelled"
        status = await client.get(f"/api/swaps/{alice['swap']['id']}/targeting-status", headers=alice["headers"])
        assert status.json()["is_targeting"] is False

        history = await client.get(f"/api/swaps/{alice['swap']['id']}/targeting-history", headers=alice["headers"])
        assert {h["action"] for h in history.json()} == {"targeted", "removed"}

        again = await client.request(
            "DELETE", target_url, json={"source_swap_id": alice["swap"]["id"]}, headers=alice["headers"]
        )
        assert again.status_code == 409
        assert _error(again)["code"] == "NO_ACTIVE_TARGET"

    async def test_history_is_owner_only(self, client, market):
        alice, bob = market["alice"], market["bob"]
        response = await client.get(f"/api/swaps/{alice['swap']['id']}/targeting-history", headers=bob["headers"])
        assert response.status_code == 403
        assert _error(response)["category"] == "authorization"


class TestProposalRoutes:
    async def test_accept_then_accept_again(self, client, market, notifier):
        alice, bob = market["alice"], market["bob"]
        targeted = await client.post(
            f"/api/swaps/{bob['swap']['id']}/target",
            json={"source_swap_id": alice["swap"]["id"]},
            headers=alice["headers"],
        )
        proposal_id = targeted.json()["proposal"]["id"]

        listed = await client.get(f"/api/swaps/{bob['swap']['id']}/proposals", headers=bob["headers"])
        assert [p["id"] for p in listed.json()] == [proposal_id]

        accepted = await client.post(f"/api/proposals/{proposal_id}/accept", headers=bob["headers"])
        assert accepted.status_code == 200, accepted.text
        assert accepted.json()["proposal"]["status"] == "accepted"

        again = await client.post(f"/api/proposals/{proposal_id}/accept", headers=bob["headers"])
        assert again.status_code == 409
        assert _error(again)["code"] == "PROPOSAL_NOT_PENDING"

        swap = await client.get(f"/api/swaps/{bob['swap']['id']}", headers=bob["headers"])
        assert swap.json()["status"] == "accepted"
        assert any(n["type"] == "proposal_accepted" for n in notifier.sent)

    async def test_reject_with_and_without_body(self, client, market):
        alice, bob, carol = market["alice"], market["bob"], market["carol"]
        first = await client.post(
            f"/api/swaps/{bob['swap']['id']}/target",
            json={"source_swap_id": alice["swap"]["id"]},
            headers=alice["headers"],
        )
        rejected = await client.post(
            f"/api/proposals/{first.json()['proposal']['id']}/reject",
            json={"reason": "Dates clash"},
            headers=bob["headers"],
        )
        assert rejected.status_code == 200
        assert rejected.json()["rejection_reason"] == "Dates clash"

        second = await client.post(
            f"/api/swaps/{bob['swap']['id']}/target",
            json={"source_swap_id": carol["swap"]["id"]},
            headers=carol["headers"],
        )
        assert second.status_code == 201
        bare = await client.post(f"/api/proposals/{second.json()['proposal']['id']}/reject", headers=bob["headers"])
        assert bare.status_code == 200
        assert bare.json()["status"] == "rejected"

    async def test_only_participants_see_a_proposal(self, client, market):
        alice, bob, carol = market["alice"], market["bob"], market["carol"]
        targeted = await client.post(
            f"/api/swaps/{bob['swap']['id']}/target",
            json={"source_swap_id": alice["swap"]["id"]},
            headers=alice["headers"],
        )
        url = f"/api/proposals/{targeted.json()['proposal']['id']}"

        assert (await client.get(url, headers=alice["headers"])).status_code == 200
        assert (await client.get(url, headers=bob["headers"])).status_code == 200
        assert (await client.get(url, headers=carol["headers"])).status_code == 403


class TestAuctionRoutes:
    async def test_auction_swap_and_comparison(self, client, market):
        alice, carol = market["alice"], market["carol"]
        headers = await _signup(client, "gus")
        end = datetime.now(timezone.utc) + timedelta(days=10)
        swap = await _list_swap(
            client,
            headers,
            acceptance_strategy={"type": "auction", "auction_end_date": end.isoformat(), "auto_select_after_hours": 24},
            payment_types={"booking_exchange": True, "cash_payment": True, "minimum_cash_amount": 100},
        )
        assert swap["acceptance_strategy"]["type"] == "auction"

        url = f"/api/swaps/{swap['id']}/target"
        booking_offer = await client.post(url, json={"source_swap_id": alice["swap"]["id"]}, headers=alice["headers"])
        cash_offer = await client.post(
            url,
            json={
                "source_swap_id": carol["swap"]["id"],
                "cash_offer": {"amount": 420, "currency": "usd", "payment_method_id": "pm_card_visa"},
            },
            headers=carol["headers"],
        )
        assert booking_offer.status_code == 201
        assert cash_offer.status_code == 201, cash_offer.text
        assert cash_offer.json()["proposal"]["payload"]["cash_offer"]["currency"] == "USD"

        auction = await client.get(f"/api/swaps/{swap['id']}/auction", headers=headers)
        assert auction.json()["status"] == "active"

        comparison = await client.get(f"/api/swaps/{swap['id']}/auction/proposals", headers=headers)
        assert comparison.status_code == 200
        body = comparison.json()
        assert body["highest_cash_offer"] == 420
        assert body["recommended_proposal_id"] == cash_offer.json()["proposal"]["id"]
        assert len(body["booking_proposals"]) == 1

    async def test_auction_too_close_to_check_in(self, client):
        headers = await _signup(client, "hana")
        end = datetime.now(timezone.utc) + timedelta(days=5)
        check_in = datetime.now(timezone.utc) + timedelta(days=3)
        booking = await client.post(
            "/api/bookings",
            json={
                "type": "event",
                "title": "Concert",
                "city": "Berlin",
                "country": "DE",
                "check_in_date": check_in.isoformat(),
                "check_out_date": (check_in + timedelta(hours=4)).isoformat(),
                "original_price": 90,
                "swap_value": 90,
            },
            headers=headers,
        )
        booking_id = booking.json()["id"]

        availability = await client.get(f"/api/bookings/{booking_id}/auction-availability", headers=headers)
        assert availability.json()["allowed"] is False

        response = await client.post(
            "/api/swaps",
            json={
                "booking_id": booking_id,
                "acceptance_strategy": {"type": "auction", "auction_end_date": end.isoformat()},
            },
            headers=headers,
        )
        assert response.status_code == 400
        assert _error(response)["code"] == "LAST_MINUTE_RESTRICTION"

    async def test_auction_without_end_date(self, client):
        headers = await _signup(client, "ivy")
        response = await client.post(
            "/api/swaps",
            json={"booking_id": str(uuid4()), "acceptance_strategy": {"type": "auction"}},
            headers=headers,
        )
        assert response.status_code == 400
        assert _error(response)["code"] == "VALIDATION_ERROR"


class TestNotificationRoutes:
    async def test_inbox_filters_and_read_state(self, client, db_session):
        headers = await _signup(client, "jo")
        user_id = (await client.get("/api/auth/me", headers=headers)).json()["id"]
        swap_id = str(uuid4())
        repo = NotificationRepository(db_session)
        first = await repo.create(user_id, "proposal_received", "New proposal", "A", {"swap_id": swap_id})
        await repo.create(user_id, "auction_ended", "Auction ended", "B", {"swap_id": str(uuid4())})
        await db_session.commit()

        inbox = await client.get("/api/notifications", headers=headers)
        assert len(inbox.json()) == 2
        by_swap = await client.get("/api/notifications", params={"swap_id": swap_id}, headers=headers)
        assert [n["id"] for n in by_swap.json()] == [first.id]

        marked = await client.patch(f"/api/notifications/{first.id}/read", headers=headers)
        assert marked.status_code == 200
        unread = await client.get("/api/notifications/unread-count", headers=headers)
        assert unread.json() == {"unread": 1}

        missing = await client.patch(f"/api/notifications/{uuid4()}/read", headers=headers)
        assert missing.status_code == 404

        cleared = await client.post("/api/notifications/read-all", headers=headers)
        assert cleared.json() == {"ok": True, "marked": 1}
        remaining = await client.get("/api/notifications", params={"unread_only": "true"}, headers=headers)
        assert remaining.json() == []
