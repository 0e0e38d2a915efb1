"""Services package"""

from .transaction import Transaction, TransactionRunner, TransactionOrderError
from .change_feed import ChangeEvent, ChangeFeed, LiveView, Subscription, change_feed
from .membership_ledger import MembershipLedger
from .contribution_service import ContributionWorkflow
from .scoring_service import ScoringService
from .join_request_service import JoinRequestBroker
from .review_service import ReviewService
from .directory_service import DirectoryService
from .s3_service import S3Service

__all__ = [
    "Transaction",
    "TransactionRunner",
    "TransactionOrderError",
    "ChangeEvent",
    "ChangeFeed",
    "LiveView",
    "Subscription",
    "change_feed",
    "MembershipLedger",
    "ContributionWorkflow",
    "ScoringService",
    "JoinRequestBroker",
    "ReviewService",
    "DirectoryService",
    "S3Service",
]
