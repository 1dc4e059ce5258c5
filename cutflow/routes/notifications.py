from fastapi import APIRouter, Depends
from sqlmodel import Session

from cutflow.database import get_session
from cutflow.dependencies.services import get_notifier
from cutflow.models.user import User
from cutflow.schemas.notification_schemas import NotificationList, NotificationRead
from cutflow.services.notification_service import NotificationService
from cutflow.utils.token import get_current_user

router = APIRouter()


@router.get("", response_model=NotificationList)
def list_notifications(
    session: Session = Depends(get_session),
    current_user: User = Depends(get_current_user),
    notifier: NotificationService = Depends(get_notifier),
):
    return notifier.list_for_user(session, current_user)


@router.patch("/read-all")
def mark_all_read(
    session: Session = Depends(get_session),
    current_user: User = Depends(get_current_user),
    notifier: NotificationService = Depends(get_notifier),
):
    updated = notifier.mark_all_read(session, current_user)
    return {"message": "All notifications marked as read", "updated": updated}


@router.patch("/{notification_id}/read", response_model=NotificationRead)
def mark_read(
    notification_id: int,
    session: Session = Depends(get_session),
    current_user: User = Depends(get_current_user),
    notifier: NotificationService = Depends(get_notifier),
):
    return notifier.mark_read(session, notification_id, current_user)
