import logging
from typing import Optional
from urllib.parse import urlencode

import requests
from fastapi import APIRouter, Depends
from fastapi.responses import RedirectResponse
from sqlmodel import Session

from cutflow.config import settings
from cutflow.database import get_session
from cutflow.dependencies.roles import require_creator
from cutflow.models.user import User
from cutflow.services import youtube_service
from cutflow.services.errors import CutflowError

logger = logging.getLogger(__name__)

router = APIRouter()


def _dashboard_redirect(**params) -> RedirectResponse:
    url = f"{settings.frontend_url.rstrip('/')}/dashboard?{urlencode(params)}"
    return RedirectResponse(url, status_code=302)


@router.get("/status")
def youtube_status(
    session: Session = Depends(get_session),
    current_user: User = Depends(require_creator),
):
    account = youtube_service.get_account(session, current_user.id)

    return {
        "connected": account is not None,
        "channel_id": account.channel_id if account else None,
        "updated_at": account.updated_at if account else None,
    }


@router.get("/auth-url")
def youtube_auth_url(current_user: User = Depends(require_creator)):
    state = youtube_service.create_state(current_user)
    return {"url": youtube_service.build_auth_url(state)}


@router.get("/callback")
def youtube_callback(
    code: Optional[str] = None,
    state: Optional[str] = None,
    error: Optional[str] = None,
    session: Session = Depends(get_session),
):
    if error:
        return _dashboard_redirect(youtube="error", message=error)

    if not code:
        return _dashboard_redirect(youtube="error", message="Missing authorization code")

    try:
        user_id = youtube_service.parse_state(state)
        youtube_service.connect_account(session, user_id, code)
    except CutflowError as e:
        logger.warning("YouTube connect failed: %s", e.message)
        return _dashboard_redirect(youtube="error", message=e.message)
    except requests.RequestException:
        logger.exception("YouTube channel lookup failed")
        return _dashboard_redirect(youtube="error", message="Could not reach YouTube")

    return _dashboard_redirect(youtube="connected")
