import logging
from datetime import datetime, timedelta
from typing import Any, Dict, Optional
from urllib.parse import urlencode

import requests
from google.auth.transport.requests import AuthorizedSession, Request as GoogleRequest
from google.oauth2.credentials import Credentials
from sqlmodel import Session, select

from cutflow.config import settings
from cutflow.models.user import User, UserRole
from cutflow.models.youtube_account import YouTubeAccount
from cutflow.services.errors import CutflowError
from cutflow.utils.token import create_access_token, decode_access_token
from cutflow.utils.token_crypto import decrypt_token, encrypt_token

logger = logging.getLogger(__name__)

GOOGLE_AUTH_URL = "https://accounts.google.com/o/oauth2/v2/auth"
GOOGLE_TOKEN_URL = "https://oauth2.googleapis.com/token"
YOUTUBE_CHANNELS_URL = "https://www.googleapis.com/youtube/v3/channels"

YOUTUBE_SCOPES = [
    "https://www.googleapis.com/auth/youtube.upload",
    "https://www.googleapis.com/auth/youtube.readonly",
]

STATE_TTL = timedelta(minutes=10)
STATE_PURPOSE = "youtube_connect"


class YouTubeError(CutflowError):
    pass


def _require_oauth_config():
    if not (
        settings.YOUTUBE_CLIENT_ID
        and settings.YOUTUBE_CLIENT_SECRET
        and settings.YOUTUBE_REDIRECT_URI
    ):
        raise YouTubeError(
            "Missing YouTube OAuth env vars "
            "(YOUTUBE_CLIENT_ID, YOUTUBE_CLIENT_SECRET, YOUTUBE_REDIRECT_URI)",
            status_code=503,
        )


def create_state(user: User) -> str:
    return create_access_token(
        {
            "user_id": user.id,
            "role": getattr(user.role, "value", user.role),
            "purpose": STATE_PURPOSE,
        },
        expires_delta=STATE_TTL,
    )


def parse_state(state: Optional[str]) -> int:
    """Return the user id carried by a signed OAuth state."""
    payload = decode_access_token(state) if state else None

    if not payload or payload.get("purpose") != STATE_PURPOSE:
        raise YouTubeError("Invalid or expired state")

    if payload.get("role") != UserRole.CREATOR.value:
        raise YouTubeError("Only creators can connect YouTube", status_code=403)

    return int(payload["user_id"])


def build_auth_url(state: str) -> str:
    _require_oauth_config()

    params = {
        "client_id": settings.YOUTUBE_CLIENT_ID,
        "redirect_uri": settings.YOUTUBE_REDIRECT_URI,
        "response_type": "code",
        "access_type": "offline",
        "prompt": "consent",
        "scope": " ".join(YOUTUBE_SCOPES),
        "state": state,
    }
    return f"{GOOGLE_AUTH_URL}?{urlencode(params)}"


def exchange_code(code: str) -> Dict[str, Any]:
    _require_oauth_config()

    response = requests.post(
        GOOGLE_TOKEN_URL,
        data={
            "code": code,
            "client_id": settings.YOUTUBE_CLIENT_ID,
            "client_secret": settings.YOUTUBE_CLIENT_SECRET,
            "redirect_uri": settings.YOUTUBE_REDIRECT_URI,
            "grant_type": "authorization_code",
        },
        timeout=10,
    )

    if response.status_code != 200:
        logger.error("YouTube token exchange failed (%s)", response.status_code)
        raise YouTubeError("Could not exchange authorization code")

    return response.json()


def fetch_channel_id(access_token: str) -> Optional[str]:
    authed = AuthorizedSession(Credentials(token=access_token))
    response = authed.get(
        YOUTUBE_CHANNELS_URL,
        params={"part": "id,snippet", "mine": "true"},
        timeout=10,
    )
    response.raise_for_status()

    items = response.json().get("items") or []
    return items[0]["id"] if items else None


def get_account(session: Session, user_id: int) -> Optional[YouTubeAccount]:
    return session.exec(
        select(YouTubeAccount).where(YouTubeAccount.user_id == user_id)
    ).first()


def connect_account(session: Session, user_id: int, code: str) -> YouTubeAccount:
    tokens = exchange_code(code)

    refresh_token = tokens.get("refresh_token")
    if not refresh_token:
        # Google only re-issues a refresh token after the app is removed from the account
        raise YouTubeError(
            "Google did not return a refresh token. Remove the app from your "
            "Google Account permissions and connect again."
        )

    access_token = tokens.get("access_token") or ""
    channel_id = fetch_channel_id(access_token) if access_token else None

    expires_in = tokens.get("expires_in")
    expiry = datetime.utcnow() + timedelta(seconds=int(expires_in)) if expires_in else None

    now = datetime.utcnow()
    account = get_account(session, user_id)
    if account is None:
        account = YouTubeAccount(
            user_id=user_id,
            access_token_enc="",
            refresh_token_enc="",
            created_at=now,
        )

    account.channel_id = channel_id
    account.access_token_enc = encrypt_token(access_token)
    account.refresh_token_enc = encrypt_token(refresh_token)
    account.scope = tokens.get("scope")
    account.token_type = tokens.get("token_type")
    account.expiry_date = expiry
    account.updated_at = now

    session.add(account)
    session.commit()
    session.refresh(account)

    logger.info("YouTube connected for user %s (channel %s)", user_id, channel_id)
    return account


def get_access_token(session: Session, account: YouTubeAccount) -> str:
    """Decrypt the stored access token, refreshing it through Google when expired."""
    credentials = Credentials(
        token=decrypt_token(account.access_token_enc) or None,
        refresh_token=decrypt_token(account.refresh_token_enc),
        token_uri=GOOGLE_TOKEN_URL,
        client_id=settings.YOUTUBE_CLIENT_ID,
        client_secret=settings.YOUTUBE_CLIENT_SECRET,
        scopes=YOUTUBE_SCOPES,
        expiry=account.expiry_date,
    )

    if credentials.valid:
        return credentials.token

    credentials.refresh(GoogleRequest())

    account.access_token_enc = encrypt_token(credentials.token)
    account.expiry_date = credentials.expiry
    account.updated_at = datetime.utcnow()
    session.add(account)
    session.commit()

    logger.info("Refreshed YouTube access token for user %s", account.user_id)
    return credentials.token
