from fastapi import Request

from cutflow.services.notification_service import NotificationService


def get_notifier(request: Request) -> NotificationService:
    notifier = getattr(request.app.state, "notifier", None)
    return notifier or NotificationService()
