"""Tests for bookings and the swap lifecycle (create, list, cancel)."""
from datetime import timedelta

import pytest

from app.domain.bookings.models import BookingStatus, BookingType
from app.domain.common.errors import AuthorizationError, ConflictError, NotFoundError, ValidationError
from app.domain.proposals.models import ProposalStatus
from app.domain.swaps.models import AuctionStatus, FirstMatchStrategy, PaymentTypes, SwapStatus
from app.domain.targeting.models import TargetingStatus


@pytest.fixture
async def people(make_user):
    return {name: await make_user(name) for name in ("alice", "bob", "carol")}


class TestBookings:
    async def test_create_booking_is_available(self, services, people, make_booking):
        booking = await make_booking(people["alice"])

        stored = await services.bookings.get_booking(booking.id)
        assert stored.status == BookingStatus.AVAILABLE
        assert stored.owner_id == people["alice"].id
        assert [b.id for b in await services.bookings.list_user_bookings(people["alice"].id)] == [booking.id]

    async def test_check_out_must_follow_check_in(self, services, people, clock):
        check_in = clock.now + timedelta(days=30)
        with pytest.raises(ValidationError):
            await services.bookings.create_booking(
                owner_id=people["alice"].id,
                type=BookingType.EVENT,
                title="Festival pass",
                city="Porto",
                country="PT",
                check_in_date=check_in,
                check_out_date=check_in,
                original_price=120.0,
                swap_value=100.0,
            )

    async def test_unknown_booking(self, services):
        with pytest.raises(NotFoundError):
            await services.bookings.get_booking("missing")


class TestCreateSwap:
    async def test_create_first_match_swap(self, services, people, make_booking, ledger):
        alice = people["alice"]
        booking = await make_booking(alice)

        swap = await services.swaps.create_swap(alice.id, booking.id, *_defaults())

        assert swap.status == SwapStatus.ACTIVE
        assert swap.is_auction is False
        assert (await services.swaps.get_swap(swap.id)).source_booking_id == booking.id
        assert "swap_created" in ledger.event_types

    async def test_create_auction_swap(self, services, people, make_booking, auction_strategy):
        bob = people["bob"]
        booking = await make_booking(bob)

        swap = await services.swaps.create_swap(
            bob.id, booking.id, auction_strategy(days=10, auto_select_after_hours=48), PaymentTypes()
        )

        auction = await services.auctions.get_auction(swap.id)
        assert auction.status == AuctionStatus.ACTIVE
        assert auction.end_date == swap.acceptance_strategy.auction_end_date
        assert auction.auto_select_after_hours == 48

    async def test_one_open_swap_per_booking(self, services, people, make_booking):
        alice = people["alice"]
        booking = await make_booking(alice)
        await services.swaps.create_swap(alice.id, booking.id, *_defaults())

        with pytest.raises(ConflictError) as exc_info:
            await services.swaps.create_swap(alice.id, booking.id, *_defaults())
        assert exc_info.value.code == "SWAP_ALREADY_EXISTS"

    async def test_relist_after_cancel(self, services, people, make_booking):
        alice = people["alice"]
        booking = await make_booking(alice)
        first = await services.swaps.create_swap(alice.id, booking.id, *_defaults())
        await services.swaps.cancel_swap(first.id, alice.id)

        second = await services.swaps.create_swap(alice.id, booking.id, *_defaults())

        assert second.id != first.id
        statuses = {s.id: s.status for s in await services.swaps.list_user_swaps(alice.id)}
        assert statuses == {first.id: SwapStatus.CANCELLED, second.id: SwapStatus.ACTIVE}
        open_only = await services.swaps.list_user_swaps(alice.id, include_closed=False)
        assert [s.id for s in open_only] == [second.id]

    async def test_payment_types_need_one_kind(self, services, people, make_booking):
        alice = people["alice"]
        booking = await make_booking(alice)

        with pytest.raises(ValidationError) as exc_info:
            await services.swaps.create_swap(
                alice.id, booking.id, *_defaults(PaymentTypes(booking_exchange=False, cash_payment=False))
            )
        assert exc_info.value.code == "INVALID_PAYMENT_TYPES"

    async def test_minimum_cannot_exceed_preferred(self, services, people, make_booking):
        alice = people["alice"]
        booking = await make_booking(alice)
        payment_types = PaymentTypes(cash_payment=True, minimum_cash_amount=500.0, preferred_cash_amount=400.0)

        with pytest.raises(ValidationError):
            await services.swaps.create_swap(alice.id, booking.id, *_defaults(payment_types))

    async def test_cannot_list_someone_elses_booking(self, services, people, make_booking):
        booking = await make_booking(people["alice"])

        with pytest.raises(AuthorizationError):
            await services.swaps.create_swap(people["bob"].id, booking.id, *_defaults())

    async def test_booking_in_progress_cannot_be_listed(self, services, people, make_swap):
        alice, bob = people["alice"], people["bob"]
        sa = await make_swap(alice)
        sb = await make_swap(bob)
        targeted = await services.targeting.target_swap(sa.id, sb.id, alice.id)
        await services.proposals.accept_proposal(targeted.proposal.id, bob.id)

        with pytest.raises(ConflictError) as exc_info:
            await services.swaps.create_swap(bob.id, sb.source_booking_id, *_defaults())
        assert exc_info.value.code == "BOOKING_NOT_AVAILABLE"


class TestCancelSwap:
    async def test_cancel_releases_everything(self, services, people, make_swap, notifier):
        alice, bob, carol = people["alice"], people["bob"], people["carol"]
        sa = await make_swap(alice)
        sb = await make_swap(bob)
        sc = await make_swap(carol)
        outgoing = await services.targeting.target_swap(sa.id, sb.id, alice.id)
        incoming = await services.targeting.target_swap(sc.id, sa.id, carol.id)

        cancelled = await services.swaps.cancel_swap(sa.id, alice.id)

        assert cancelled.status == SwapStatus.CANCELLED
        assert (await services.swaps.get_swap(sa.id)).status == SwapStatus.CANCELLED
        for result in (outgoing, incoming):
            assert (await services.proposals.get_proposal(result.proposal.id)).status == ProposalStatus.CANCELLED
            relation = await services.targeting.targeting.get_by_proposal(result.proposal.id)
            assert relation.status == TargetingStatus.CANCELLED
        assert (await services.swaps.get_swap(sb.id)).status == SwapStatus.ACTIVE
        assert (await services.swaps.get_swap(sc.id)).status == SwapStatus.ACTIVE
        assert "proposal_cancelled" in notifier.types_for(bob.id)
        assert notifier.types_for(carol.id)

    async def test_cancel_closes_auction(self, services, people, make_swap, auction_strategy):
        bob = people["bob"]
        sb = await make_swap(bob, strategy=auction_strategy(days=10))

        await services.swaps.cancel_swap(sb.id, bob.id)

        assert (await services.auctions.get_auction(sb.id)).status == AuctionStatus.CANCELLED

    async def test_cancel_twice(self, services, people, make_swap):
        alice = people["alice"]
        sa = await make_swap(alice)
        await services.swaps.cancel_swap(sa.id, alice.id)

        with pytest.raises(ConflictError) as exc_info:
            await services.swaps.cancel_swap(sa.id, alice.id)
        assert exc_info.value.code == "SWAP_NOT_CANCELLABLE"

    async def test_only_owner_cancels(self, services, people, make_swap):
        sa = await make_swap(people["alice"])

        with pytest.raises(AuthorizationError):
            await services.swaps.cancel_swap(sa.id, people["bob"].id)
        assert (await services.swaps.get_swap(sa.id)).status == SwapStatus.ACTIVE

    async def test_cancel_unknown_swap(self, services, people):
        with pytest.raises(NotFoundError):
            await services.swaps.cancel_swap("missing", people["alice"].id)


def _defaults(payment_types=None):
    return FirstMatchStrategy(), payment_types or PaymentTypes()
