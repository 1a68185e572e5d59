"""Service layer for order intake and review."""

from order_intake.services.guards import (
    DuplicateCheck,
    DuplicateDetector,
    RateLimitDecision,
    RateLimiter,
)
from order_intake.services.mail_poller import MailPoller, PollerStatus, PollResult
from order_intake.services.notifications import (
    NotificationError,
    NotificationKind,
    Notifier,
    NullNotifier,
    SmtpNotifier,
    notifier_from_config,
    send_best_effort,
)
from order_intake.services.order_creation import SqlOrderCreator
from order_intake.services.order_intake import OrderIntakeService, route_status
from order_intake.services.review_service import (
    AUTO_APPROVAL_ACTOR,
    InvalidStatusTransitionError,
    OrderProcessingError,
    PendingOrderNotFoundError,
    ReviewService,
)

__all__ = [
    "AUTO_APPROVAL_ACTOR",
    "DuplicateCheck",
    "DuplicateDetector",
    "InvalidStatusTransitionError",
    "MailPoller",
    "NotificationError",
    "NotificationKind",
    "Notifier",
    "NullNotifier",
    "OrderIntakeService",
    "OrderProcessingError",
    "PendingOrderNotFoundError",
    "PollResult",
    "PollerStatus",
    "RateLimitDecision",
    "RateLimiter",
    "ReviewService",
    "SmtpNotifier",
    "SqlOrderCreator",
    "notifier_from_config",
    "route_status",
    "send_best_effort",
]
