"""
Domain enums (minimal set used for clarity in services).
"""

from enum import Enum


class FailureReason(str, Enum):
    NOT_FOUND_ON_CHAIN = "NOT_FOUND_ON_CHAIN"
    TRANSACTION_FAILED_ON_CHAIN = "TRANSACTION_FAILED_ON_CHAIN"
    NO_MATCHING_TRANSFER = "NO_MATCHING_TRANSFER"


class LedgerKind(str, Enum):
    SUBSCRIPTION = "subscription"
    TIP = "tip"


class RecordOutcome(str, Enum):
    ACCEPTED = "ACCEPTED"
    DUPLICATE = "DUPLICATE"


class SubscriptionAction(str, Enum):
    SUBSCRIBED = "subscribed"
    ALREADY_SUBSCRIBED = "already_subscribed"
    UNSUBSCRIBED = "unsubscribed"
    NOT_SUBSCRIBED = "not_subscribed"
