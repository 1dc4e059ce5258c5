from enum import Enum


class MarketplaceEvent(str, Enum):
    APPLICATION_RECEIVED = "application_received"
    EDITOR_APPROVED = "editor_approved"
    APPLICATION_REJECTED = "application_rejected"
    WORK_STARTED = "work_started"
    PREVIEW_SUBMITTED = "preview_submitted"
    PREVIEW_APPROVED = "preview_approved"
    REVISION_REQUESTED = "revision_requested"
    FINAL_SUBMITTED = "final_submitted"
    ORDER_PUBLISHED = "order_published"
    ORDER_COMPLETED = "order_completed"
    ORDER_CANCELLED = "order_cancelled"
    DISPUTE_RAISED = "dispute_raised"
    DEPOSIT_LOCKED = "deposit_locked"
    PAYMENT_RECEIVED = "payment_received"
    DEPOSIT_EXPIRED = "deposit_expired"
