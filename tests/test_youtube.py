from datetime import datetime, timedelta
from urllib.parse import parse_qs, urlparse

import pytest
from google.oauth2.credentials import Credentials

from cutflow.models.youtube_account import YouTubeAccount
from cutflow.services import youtube_service
from cutflow.services.youtube_service import YouTubeError
from cutflow.utils.token_crypto import decrypt_token, encrypt_token


@pytest.fixture
def google(monkeypatch):
    tokens = {
        "access_token": "ya29.access",
        "refresh_token": "1//refresh",
        "expires_in": 3599,
        "scope": " ".join(youtube_service.YOUTUBE_SCOPES),
        "token_type": "Bearer",
    }
    monkeypatch.setattr(youtube_service, "exchange_code", lambda code: dict(tokens))
    monkeypatch.setattr(youtube_service, "fetch_channel_id", lambda token: "UC123")
    return tokens


def _query(resp):
    return parse_qs(urlparse(resp.headers["location"]).query)


def test_auth_url(client, headers, creator):
    url = client.get("/api/youtube/auth-url", headers=headers(creator)).json()["url"]
    params = parse_qs(urlparse(url).query)

    assert params["client_id"] == ["yt-client"]
    assert params["access_type"] == ["offline"]
    assert params["prompt"] == ["consent"]
    assert youtube_service.parse_state(params["state"][0]) == creator.id


def test_editors_cannot_connect(client, headers, editor):
    assert client.get("/api/youtube/auth-url", headers=headers(editor)).status_code == 403


def test_callback_connects_account(client, session, headers, creator, google):
    state = youtube_service.create_state(creator)

    resp = client.get(
        "/api/youtube/callback",
        params={"code": "4/abc", "state": state},
        follow_redirects=False,
    )

    assert resp.status_code == 302
    assert resp.headers["location"].startswith("http://localhost:3000/dashboard")
    assert _query(resp) == {"youtube": ["connected"]}

    status = client.get("/api/youtube/status", headers=headers(creator)).json()
    assert status["connected"] is True
    assert status["channel_id"] == "UC123"

    account = youtube_service.get_account(session, creator.id)
    assert account.refresh_token_enc != "1//refresh"
    assert decrypt_token(account.refresh_token_enc) == "1//refresh"
    assert decrypt_token(account.access_token_enc) == "ya29.access"


def test_reconnect_updates_existing_account(client, session, creator, google):
    state = youtube_service.create_state(creator)
    client.get("/api/youtube/callback", params={"code": "a", "state": state}, follow_redirects=False)
    google["refresh_token"] = "1//second"
    client.get("/api/youtube/callback", params={"code": "b", "state": state}, follow_redirects=False)

    session.expire_all()
    account = youtube_service.get_account(session, creator.id)
    assert decrypt_token(account.refresh_token_enc) == "1//second"


def test_callback_without_refresh_token(client, creator, google):
    del google["refresh_token"]
    state = youtube_service.create_state(creator)

    resp = client.get(
        "/api/youtube/callback", params={"code": "x", "state": state}, follow_redirects=False
    )

    query = _query(resp)
    assert query["youtube"] == ["error"]
    assert "refresh token" in query["message"][0]


@pytest.mark.parametrize(
    "params",
    [
        {"code": "x", "state": "garbage"},
        {"state": "anything"},
        {"error": "access_denied"},
    ],
)
def test_callback_errors_redirect(client, google, params):
    resp = client.get("/api/youtube/callback", params=params, follow_redirects=False)

    assert resp.status_code == 302
    assert _query(resp)["youtube"] == ["error"]


def test_state_must_belong_to_a_creator(editor):
    state = youtube_service.create_state(editor)

    with pytest.raises(YouTubeError) as exc:
        youtube_service.parse_state(state)
    assert exc.value.status_code == 403


def _stored_account(session, creator, expiry):
    account = YouTubeAccount(
        user_id=creator.id,
        access_token_enc=encrypt_token("old-token"),
        refresh_token_enc=encrypt_token("1//refresh"),
        expiry_date=expiry,
    )
    session.add(account)
    session.commit()
    session.refresh(account)
    return account


def test_valid_access_token_is_reused(session, creator, monkeypatch):
    account = _stored_account(session, creator, datetime.utcnow() + timedelta(hours=1))

    def fail(self, request):
        raise AssertionError("should not refresh")

    monkeypatch.setattr(Credentials, "refresh", fail)

    assert youtube_service.get_access_token(session, account) == "old-token"


def test_expired_access_token_is_refreshed(session, creator, monkeypatch):
    account = _stored_account(session, creator, datetime.utcnow() - timedelta(minutes=5))
    new_expiry = datetime.utcnow() + timedelta(hours=1)

    def refresh(self, request):
        self.token = "new-token"
        self.expiry = new_expiry

    monkeypatch.setattr(Credentials, "refresh", refresh)

    assert youtube_service.get_access_token(session, account) == "new-token"

    session.refresh(account)
    assert decrypt_token(account.access_token_enc) == "new-token"
    assert account.expiry_date == new_expiry
