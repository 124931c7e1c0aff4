"""Database models."""
from app.infra.db.models.user import UserModel
from app.infra.db.models.booking import BookingModel
from app.infra.db.models.swap import SwapModel, AuctionModel
from app.infra.db.models.proposal import ProposalModel
from app.infra.db.models.targeting import SwapTargetModel, TargetingHistoryModel
from app.infra.db.models.notification import NotificationModel

__all__ = [
    "UserModel",
    "BookingModel",
    "SwapModel",
    "AuctionModel",
    "ProposalModel",
    "SwapTargetModel",
    "TargetingHistoryModel",
    "NotificationModel",
]
