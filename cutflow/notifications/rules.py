from cutflow.models.notifications import NotificationType
from cutflow.notifications.channels import Channel
from cutflow.notifications.events import MarketplaceEvent


NOTIFICATION_RULES = {

    MarketplaceEvent.APPLICATION_RECEIVED: {
        Channel.INAPP_CREATOR: True,
        Channel.EMAIL_CREATOR: True,
    },

    MarketplaceEvent.EDITOR_APPROVED: {
        Channel.INAPP_EDITOR: True,
        Channel.EMAIL_EDITOR: True,
        Channel.ORDER_ROOM: True,
    },

    MarketplaceEvent.APPLICATION_REJECTED: {
        Channel.INAPP_EDITOR: True,
    },

    MarketplaceEvent.WORK_STARTED: {
        Channel.INAPP_CREATOR: True,
    },

    MarketplaceEvent.PREVIEW_SUBMITTED: {
        Channel.INAPP_CREATOR: True,
        Channel.ORDER_ROOM: True,
    },

    MarketplaceEvent.PREVIEW_APPROVED: {
        Channel.INAPP_EDITOR: True,
    },

    MarketplaceEvent.REVISION_REQUESTED: {
        Channel.INAPP_EDITOR: True,
        Channel.ORDER_ROOM: True,
    },

    MarketplaceEvent.FINAL_SUBMITTED: {
        Channel.INAPP_CREATOR: True,
        Channel.ORDER_ROOM: True,
    },

    MarketplaceEvent.ORDER_PUBLISHED: {
        Channel.INAPP_EDITOR: True,
        Channel.ORDER_ROOM: True,
    },

    MarketplaceEvent.ORDER_COMPLETED: {
        Channel.INAPP_CREATOR: True,
        Channel.INAPP_EDITOR: True,
        Channel.ORDER_ROOM: True,
    },

    MarketplaceEvent.ORDER_CANCELLED: {
        Channel.INAPP_CREATOR: True,
        Channel.INAPP_EDITOR: True,
        Channel.EMAIL_CREATOR: True,
        Channel.EMAIL_EDITOR: True,
        Channel.ORDER_ROOM: True,
    },

    MarketplaceEvent.DISPUTE_RAISED: {
        Channel.INAPP_CREATOR: True,
        Channel.INAPP_EDITOR: True,
        Channel.ORDER_ROOM: True,
    },

    MarketplaceEvent.DEPOSIT_LOCKED: {
        Channel.INAPP_EDITOR: True,
    },

    MarketplaceEvent.PAYMENT_RECEIVED: {
        Channel.INAPP_CREATOR: True,
        Channel.INAPP_EDITOR: True,
    },

    MarketplaceEvent.DEPOSIT_EXPIRED: {
        Channel.INAPP_EDITOR: True,
        Channel.EMAIL_EDITOR: True,
    },

}


# title and per-recipient message, formatted with the dispatch context
NOTIFICATION_COPY = {
    MarketplaceEvent.APPLICATION_RECEIVED: {
        "type": NotificationType.APPLICATION,
        "title": "New application",
        "creator": '{editor_name} applied to "{title}".',
    },
    MarketplaceEvent.EDITOR_APPROVED: {
        "type": NotificationType.APPLICATION,
        "title": "You got the job",
        "editor": 'You were selected for "{title}". Start work within 24 hours.',
    },
    MarketplaceEvent.APPLICATION_REJECTED: {
        "type": NotificationType.APPLICATION,
        "title": "Application closed",
        "editor": 'Another editor was selected for "{title}". Your deposit was released.',
    },
    MarketplaceEvent.WORK_STARTED: {
        "type": NotificationType.ORDER,
        "title": "Work started",
        "creator": '{editor_name} started working on "{title}".',
    },
    MarketplaceEvent.PREVIEW_SUBMITTED: {
        "type": NotificationType.ORDER,
        "title": "Preview ready",
        "creator": 'A preview for "{title}" is ready for review.',
    },
    MarketplaceEvent.PREVIEW_APPROVED: {
        "type": NotificationType.ORDER,
        "title": "Preview approved",
        "editor": 'The preview for "{title}" was approved. Continue to the final cut.',
    },
    MarketplaceEvent.REVISION_REQUESTED: {
        "type": NotificationType.ORDER,
        "title": "Revision requested",
        "editor": 'A revision was requested on "{title}". {reason}',
    },
    MarketplaceEvent.FINAL_SUBMITTED: {
        "type": NotificationType.ORDER,
        "title": "Final video delivered",
        "creator": 'The final cut of "{title}" has been delivered.',
    },
    MarketplaceEvent.ORDER_PUBLISHED: {
        "type": NotificationType.ORDER,
        "title": "Video published",
        "editor": '"{title}" has been published.',
    },
    MarketplaceEvent.ORDER_COMPLETED: {
        "type": NotificationType.ORDER,
        "title": "Order completed",
        "creator": '"{title}" is complete.',
        "editor": '"{title}" is complete. {payout_note}',
    },
    MarketplaceEvent.ORDER_CANCELLED: {
        "type": NotificationType.ORDER,
        "title": "Order cancelled",
        "creator": '"{title}" was cancelled. {reason}',
        "editor": '"{title}" was cancelled. {reason}',
    },
    MarketplaceEvent.DISPUTE_RAISED: {
        "type": NotificationType.ORDER,
        "title": "Dispute opened",
        "creator": 'A dispute was opened on "{title}". {reason}',
        "editor": 'A dispute was opened on "{title}". {reason}',
    },
    MarketplaceEvent.DEPOSIT_LOCKED: {
        "type": NotificationType.PAYMENT,
        "title": "Deposit locked",
        "editor": 'Your deposit of {amount} for "{title}" is locked.',
    },
    MarketplaceEvent.PAYMENT_RECEIVED: {
        "type": NotificationType.PAYMENT,
        "title": "Payment received",
        "creator": 'Payment of {amount} for "{title}" was received.',
        "editor": 'The creator paid for "{title}". Payment is held until completion.',
    },
    MarketplaceEvent.DEPOSIT_EXPIRED: {
        "type": NotificationType.APPLICATION,
        "title": "Application expired",
        "editor": 'Your application to "{title}" expired because the deposit was not paid in time.',
    },
}


EMAIL_TEMPLATES = {
    MarketplaceEvent.APPLICATION_RECEIVED: (
        "user_emails/new_application.html",
        'New application for "{title}"',
    ),
    MarketplaceEvent.EDITOR_APPROVED: (
        "user_emails/editor_approved.html",
        'You were selected for "{title}"',
    ),
    MarketplaceEvent.ORDER_CANCELLED: (
        "user_emails/order_cancelled.html",
        'Order #{order_id} cancelled',
    ),
    MarketplaceEvent.DEPOSIT_EXPIRED: (
        "user_emails/deposit_expired.html",
        'Your application to "{title}" expired',
    ),
}
