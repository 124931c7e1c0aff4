"""Tests for the pure targeting rules shared by can-target and the mutating path."""
from datetime import datetime, timedelta

from app.domain.common.errors import TargetingErrorCode as Code
from app.domain.proposals.models import ProposalType
from app.domain.swaps.models import (
    Auction,
    AuctionStatus,
    AuctionStrategy,
    FirstMatchStrategy,
    PaymentTypes,
    Swap,
    SwapStatus,
)
from app.domain.targeting.models import RestrictionSeverity
from app.domain.targeting.rules import CIRCULAR_TARGETING_WARNING, TargetingContext, evaluate_targeting

NOW = datetime(2030, 1, 1, 12, 0, 0)


def _swap(swap_id, owner_id, *, status=SwapStatus.ACTIVE, strategy=None, payment=None):
    return Swap(
        id=swap_id,
        source_booking_id=f"booking-{swap_id}",
        owner_id=owner_id,
        status=status,
        acceptance_strategy=strategy or FirstMatchStrategy(),
        payment_types=payment or PaymentTypes(),
        created_at=NOW,
        updated_at=NOW,
    )


def _auction(swap_id, *, end_in_days=5, status=AuctionStatus.ACTIVE):
    return Auction(
        id=f"auction-{swap_id}",
        swap_id=swap_id,
        owner_id="bob",
        status=status,
        end_date=NOW + timedelta(days=end_in_days),
        auto_select_after_hours=None,
        created_at=NOW,
        updated_at=NOW,
    )


def _codes(verdict):
    return [r.code for r in verdict.restrictions]


class TestEvaluateTargeting:
    def test_open_first_match_target_is_eligible(self):
        ctx = TargetingContext("alice", _swap("sa", "alice"), _swap("sb", "bob"), NOW)
        verdict = evaluate_targeting(ctx)
        assert verdict.can_target
        assert verdict.restrictions == []
        assert verdict.auction_info.is_auction is False

    def test_self_target_is_blocked(self):
        swap = _swap("sa", "alice")
        verdict = evaluate_targeting(TargetingContext("alice", swap, swap, NOW))
        assert not verdict.can_target
        assert verdict.blocking.code == Code.CANNOT_TARGET_OWN_SWAP

    def test_targeting_another_own_swap_is_blocked(self):
        ctx = TargetingContext("alice", _swap("sa", "alice"), _swap("sa2", "alice"), NOW)
        assert evaluate_targeting(ctx).blocking.code == Code.CANNOT_TARGET_OWN_SWAP

    def test_missing_swaps(self):
        assert evaluate_targeting(TargetingContext("alice", None, _swap("sb", "bob"), NOW)).blocking.code == (
            Code.SWAP_NOT_FOUND
        )
        assert evaluate_targeting(TargetingContext("alice", _swap("sa", "alice"), None, NOW)).blocking.code == (
            Code.SWAP_NOT_FOUND
        )

    def test_first_match_with_pending_proposal_is_blocked(self):
        ctx = TargetingContext("carol", _swap("sc", "carol"), _swap("sb", "bob"), NOW, pending_on_target=1)
        verdict = evaluate_targeting(ctx)
        assert verdict.blocking.code == Code.PROPOSAL_PENDING
        assert verdict.auction_info.can_receive_more_proposals is False

    def test_closed_swaps_are_unavailable(self):
        ctx = TargetingContext(
            "alice",
            _swap("sa", "alice", status=SwapStatus.ACCEPTED),
            _swap("sb", "bob", status=SwapStatus.CANCELLED),
            NOW,
        )
        codes = _codes(evaluate_targeting(ctx))
        assert Code.SOURCE_SWAP_UNAVAILABLE in codes
        assert Code.TARGET_SWAP_UNAVAILABLE in codes

    def test_already_targeted_wins_over_pending(self):
        ctx = TargetingContext(
            "alice", _swap("sa", "alice"), _swap("sb", "bob"), NOW, pending_on_target=1, current_target_id="sb"
        )
        assert evaluate_targeting(ctx).blocking.code == Code.ALREADY_TARGETED

    def test_auction_accepts_many_pending_proposals(self):
        target = _swap("sb", "bob", strategy=AuctionStrategy(NOW + timedelta(days=5)))
        ctx = TargetingContext(
            "alice", _swap("sa", "alice"), target, NOW, target_auction=_auction("sb"), pending_on_target=3
        )
        verdict = evaluate_targeting(ctx)
        assert verdict.can_target
        assert verdict.auction_info.is_auction
        assert verdict.auction_info.proposal_count == 3
        assert verdict.warnings == []

    def test_busy_auction_only_warns(self):
        target = _swap("sb", "bob", strategy=AuctionStrategy(NOW + timedelta(days=5)))
        ctx = TargetingContext(
            "alice",
            _swap("sa", "alice"),
            target,
            NOW,
            target_auction=_auction("sb"),
            pending_on_target=6,
            busy_threshold=5,
        )
        verdict = evaluate_targeting(ctx)
        assert verdict.can_target
        assert len(verdict.warnings) == 1
        assert "6 proposals" in verdict.warnings[0]

    def test_auction_past_end_date_is_blocked(self):
        target = _swap("sb", "bob", strategy=AuctionStrategy(NOW - timedelta(hours=1)))
        ctx = TargetingContext(
            "alice", _swap("sa", "alice"), target, NOW, target_auction=_auction("sb", end_in_days=-1)
        )
        verdict = evaluate_targeting(ctx)
        assert verdict.blocking.code == Code.AUCTION_ENDED
        assert verdict.auction_info.can_receive_more_proposals is False

    def test_ended_auction_status_is_blocked(self):
        target = _swap("sb", "bob", strategy=AuctionStrategy(NOW + timedelta(days=5)))
        ctx = TargetingContext(
            "alice", _swap("sa", "alice"), target, NOW, target_auction=_auction("sb", status=AuctionStatus.ENDED)
        )
        assert evaluate_targeting(ctx).blocking.code == Code.AUCTION_ENDED

    def test_circular_targeting_is_a_warning(self):
        ctx = TargetingContext("alice", _swap("sa", "alice"), _swap("sb", "bob"), NOW, circular=True)
        verdict = evaluate_targeting(ctx)
        assert verdict.can_target
        assert verdict.warnings == [CIRCULAR_TARGETING_WARNING]
        circular = [r for r in verdict.restrictions if r.code == Code.CIRCULAR_TARGETING]
        assert circular[0].severity == RestrictionSeverity.WARNING


class TestPaymentRules:
    def test_booking_offer_against_cash_only_swap(self):
        target = _swap("sb", "bob", payment=PaymentTypes(booking_exchange=False, cash_payment=True))
        ctx = TargetingContext("alice", _swap("sa", "alice"), target, NOW)
        assert evaluate_targeting(ctx).blocking.code == Code.PAYMENT_TYPE_NOT_ACCEPTED

    def test_cash_offer_against_booking_only_swap(self):
        ctx = TargetingContext(
            "alice",
            _swap("sa", "alice"),
            _swap("sb", "bob"),
            NOW,
            proposal_type=ProposalType.CASH,
            cash_amount=500.0,
        )
        assert evaluate_targeting(ctx).blocking.code == Code.PAYMENT_TYPE_NOT_ACCEPTED

    def test_cash_offer_below_minimum(self):
        target = _swap("sb", "bob", payment=PaymentTypes(cash_payment=True, minimum_cash_amount=300.0))
        ctx = TargetingContext(
            "alice", _swap("sa", "alice"), target, NOW, proposal_type=ProposalType.CASH, cash_amount=250.0
        )
        verdict = evaluate_targeting(ctx)
        assert verdict.blocking.code == Code.CASH_OFFER_BELOW_MINIMUM
        assert "300" in verdict.blocking.message

    def test_cash_offer_at_minimum_is_accepted(self):
        target = _swap("sb", "bob", payment=PaymentTypes(cash_payment=True, minimum_cash_amount=300.0))
        ctx = TargetingContext(
            "alice", _swap("sa", "alice"), target, NOW, proposal_type=ProposalType.CASH, cash_amount=300.0
        )
        assert evaluate_targeting(ctx).can_target
