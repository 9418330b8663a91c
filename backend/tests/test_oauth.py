"""OAuth connection manager tests (state tokens, callbacks, disconnect, credentials)"""
from datetime import datetime, timedelta, timezone
from unittest.mock import Mock, patch
from urllib.parse import parse_qs, urlparse

import httpx
import pytest

from app.core.config import settings
from app.core.exceptions import ConfigurationError, CsrfError, VendorError
from app.db import helpers as db_helpers
from app.models.enums import Platform
from app.models.oauth_state import OAuthState
from app.services.oauth import service as oauth_service
from app.services.oauth.state import consume_state, issue_state
from app.utils.encryption import decrypt

SERVICE_CLIENT = "app.services.oauth.service.vendor_client"


def youtube_routes(request: httpx.Request) -> httpx.Response:
    url = str(request.url)
    if url.startswith("https://oauth2.googleapis.com/token"):
        return httpx.Response(200, json={
            "access_token": "ya29.access", "refresh_token": "1//refresh",
            "expires_in": 3599, "scope": "youtube.upload",
        })
    if url.startswith("https://www.googleapis.com/youtube/v3/channels"):
        return httpx.Response(200, json={"items": [{"id": "UC123", "snippet": {"title": "My Channel"}}]})
    if url.startswith("https://oauth2.googleapis.com/revoke"):
        return httpx.Response(200)
    return httpx.Response(404)


def query_of(url: str) -> dict:
    return {k: v[0] for k, v in parse_qs(urlparse(url).query).items()}


@pytest.mark.critical
class TestStateTokens:
    """State tokens are single-use and bound to user, platform and lifetime"""

    def test_issue_state_is_256_bit_hex(self, db_session):
        token = issue_state(db_session, "user-1", "youtube")
        assert len(token) == 64
        int(token, 16)
        assert db_session.query(OAuthState).count() == 1

    def test_consume_deletes_state(self, db_session):
        token = issue_state(db_session, "user-1", "youtube")
        consume_state(db_session, token, "youtube", "user-1")
        assert db_session.query(OAuthState).count() == 0

    def test_replay_is_invalid_state(self, db_session):
        token = issue_state(db_session, "user-1", "youtube")
        consume_state(db_session, token, "youtube", "user-1")
        with pytest.raises(CsrfError) as exc_info:
            consume_state(db_session, token, "youtube", "user-1")
        assert exc_info.value.code == "invalid_state"

    def test_wrong_platform_is_invalid_state(self, db_session):
        token = issue_state(db_session, "user-1", "youtube")
        with pytest.raises(CsrfError) as exc_info:
            consume_state(db_session, token, "tiktok", "user-1")
        assert exc_info.value.code == "invalid_state"

    def test_expired_state(self, db_session):
        past = datetime.now(timezone.utc) - timedelta(seconds=5)
        db_helpers.create_oauth_state(db_session, "expired-token", "user-1", "tiktok", past)
        with pytest.raises(CsrfError) as exc_info:
            consume_state(db_session, "expired-token", "tiktok", "user-1")
        assert exc_info.value.code == "state_expired"
        assert db_session.query(OAuthState).count() == 0

    def test_user_mismatch_is_unauthorized_and_consumes(self, db_session):
        token = issue_state(db_session, "user-1", "instagram")
        with pytest.raises(CsrfError) as exc_info:
            consume_state(db_session, token, "instagram", "user-2")
        assert exc_info.value.code == "unauthorized"
        assert db_session.query(OAuthState).count() == 0


@pytest.mark.critical
class TestInitiateConnect:
    def test_youtube_authorize_url(self, db_session, auth):
        url = oauth_service.initiate_connect(auth, Platform.YOUTUBE, db_session)
        params = query_of(url)
        assert url.startswith("https://accounts.google.com/o/oauth2/v2/auth?")
        assert params["client_id"] == settings.YOUTUBE_CLIENT_ID
        assert params["access_type"] == "offline"
        assert params["prompt"] == "consent"
        assert params["redirect_uri"] == f"{settings.APP_URL}/api/youtube/callback"
        assert db_helpers.get_oauth_state(db_session, params["state"], "youtube").user_id == "user-1"

    def test_tiktok_uses_client_key(self, db_session, auth):
        params = query_of(oauth_service.initiate_connect(auth, Platform.TIKTOK, db_session))
        assert params["client_key"] == settings.TIKTOK_CLIENT_KEY
        assert "video.publish" in params["scope"]

    def test_instagram_scopes(self, db_session, auth):
        url = oauth_service.initiate_connect(auth, Platform.INSTAGRAM, db_session)
        assert "facebook.com" in url
        assert "instagram_content_publish" in query_of(url)["scope"]

    def test_unconfigured_platform_creates_no_state(self, db_session, auth):
        with patch.object(settings, "TIKTOK_CLIENT_KEY", ""):
            with pytest.raises(ConfigurationError):
                oauth_service.initiate_connect(auth, Platform.TIKTOK, db_session)
        assert db_session.query(OAuthState).count() == 0


@pytest.mark.critical
class TestHandleCallback:
    """Every callback outcome becomes a dashboard redirect flag"""

    @pytest.mark.asyncio
    async def test_youtube_success_stores_encrypted_connection(self, db_session, auth, vendor):
        recorder = vendor(youtube_routes)
        state = issue_state(db_session, auth.user_id, "youtube")

        with patch(SERVICE_CLIENT, recorder.client_factory()):
            url = await oauth_service.handle_callback(auth, Platform.YOUTUBE, "auth-code", state, None, db_session)

        assert query_of(url) == {"success": "youtube_connected"}
        conn = db_helpers.get_connection(db_session, "user-1", "youtube")
        assert conn.platform_user_id == "UC123"
        assert conn.platform_username == "My Channel"
        assert conn.access_token != "ya29.access"
        assert decrypt(conn.access_token) == "ya29.access"
        assert decrypt(conn.refresh_token) == "1//refresh"
        assert conn.token_expires_at is not None
        assert db_session.query(OAuthState).count() == 0

        token_request = recorder.calls_to("oauth2.googleapis.com/token")[0]
        assert b"code=auth-code" in token_request.content

    @pytest.mark.asyncio
    async def test_state_replay_is_rejected(self, db_session, auth, vendor):
        recorder = vendor(youtube_routes)
        state = issue_state(db_session, auth.user_id, "youtube")

        with patch(SERVICE_CLIENT, recorder.client_factory()):
            await oauth_service.handle_callback(auth, Platform.YOUTUBE, "c", state, None, db_session)
            url = await oauth_service.handle_callback(auth, Platform.YOUTUBE, "c", state, None, db_session)

        assert query_of(url) == {"error": "invalid_state"}

    @pytest.mark.asyncio
    async def test_vendor_error_param(self, db_session, auth):
        url = await oauth_service.handle_callback(auth, Platform.TIKTOK, None, None, "access_denied", db_session)
        assert query_of(url) == {"error": "tiktok_auth_failed"}

    @pytest.mark.asyncio
    async def test_missing_code_or_state(self, db_session, auth):
        url = await oauth_service.handle_callback(auth, Platform.YOUTUBE, "code", None, None, db_session)
        assert query_of(url) == {"error": "invalid_callback"}

    @pytest.mark.asyncio
    async def test_no_session(self, db_session):
        url = await oauth_service.handle_callback(None, Platform.YOUTUBE, "code", "state", None, db_session)
        assert query_of(url) == {"error": "unauthorized"}

    @pytest.mark.asyncio
    async def test_no_session_still_consumes_state(self, db_session, auth):
        state = issue_state(db_session, auth.user_id, "youtube")
        url = await oauth_service.handle_callback(None, Platform.YOUTUBE, "code", state, None, db_session)
        assert query_of(url) == {"error": "unauthorized"}
        assert db_session.query(OAuthState).count() == 0

        # a later callback with a session cannot redeem it
        url = await oauth_service.handle_callback(auth, Platform.YOUTUBE, "code", state, None, db_session)
        assert query_of(url) == {"error": "invalid_state"}

    @pytest.mark.asyncio
    async def test_vendor_error_consumes_state(self, db_session, auth):
        state = issue_state(db_session, auth.user_id, "tiktok")
        url = await oauth_service.handle_callback(auth, Platform.TIKTOK, None, state, "access_denied", db_session)
        assert query_of(url) == {"error": "tiktok_auth_failed"}
        assert db_session.query(OAuthState).count() == 0

    @pytest.mark.asyncio
    async def test_state_of_another_user(self, db_session, auth, other_auth):
        state = issue_state(db_session, other_auth.user_id, "youtube")
        url = await oauth_service.handle_callback(auth, Platform.YOUTUBE, "code", state, None, db_session)
        assert query_of(url) == {"error": "unauthorized"}
        assert db_helpers.get_connection(db_session, auth.user_id, "youtube") is None

    @pytest.mark.asyncio
    async def test_expired_state_flag(self, db_session, auth):
        past = datetime.now(timezone.utc) - timedelta(seconds=1)
        db_helpers.create_oauth_state(db_session, "stale", auth.user_id, "youtube", past)
        url = await oauth_service.handle_callback(auth, Platform.YOUTUBE, "code", "stale", None, db_session)
        assert query_of(url) == {"error": "state_expired"}

    @pytest.mark.asyncio
    async def test_exchange_failure(self, db_session, auth, vendor):
        recorder = vendor(lambda r: httpx.Response(400, json={"error": "invalid_grant",
                                                              "error_description": "Bad code"}))
        state = issue_state(db_session, auth.user_id, "youtube")

        with patch(SERVICE_CLIENT, recorder.client_factory()):
            url = await oauth_service.handle_callback(auth, Platform.YOUTUBE, "bad", state, None, db_session)

        assert query_of(url) == {"error": "youtube_connection_failed"}
        assert db_helpers.get_connection(db_session, auth.user_id, "youtube") is None

    @pytest.mark.asyncio
    async def test_youtube_without_channel(self, db_session, auth, vendor):
        def routes(request):
            if "channels" in str(request.url):
                return httpx.Response(200, json={"items": []})
            return youtube_routes(request)

        state = issue_state(db_session, auth.user_id, "youtube")
        with patch(SERVICE_CLIENT, vendor(routes).client_factory()):
            url = await oauth_service.handle_callback(auth, Platform.YOUTUBE, "c", state, None, db_session)
        assert query_of(url) == {"error": "youtube_account_not_found"}

    @pytest.mark.asyncio
    async def test_tiktok_error_body_with_200(self, db_session, auth, vendor):
        recorder = vendor(lambda r: httpx.Response(200, json={
            "error": "invalid_request", "error_description": "Code expired"
        }))
        state = issue_state(db_session, auth.user_id, "tiktok")

        with patch(SERVICE_CLIENT, recorder.client_factory()):
            url = await oauth_service.handle_callback(auth, Platform.TIKTOK, "c", state, None, db_session)

        assert query_of(url) == {"error": "tiktok_connection_failed"}
        assert len(recorder.requests) == 1

    @pytest.mark.asyncio
    async def test_tiktok_success(self, db_session, auth, vendor):
        def routes(request):
            if "oauth/token" in str(request.url):
                return httpx.Response(200, json={
                    "access_token": "act.1", "refresh_token": "rft.1", "expires_in": 86400,
                    "open_id": "open-1", "scope": "user.info.basic,video.publish",
                })
            if "user/info" in str(request.url):
                return httpx.Response(200, json={"data": {"user": {"open_id": "open-1", "display_name": "Tok"}}})
            return httpx.Response(404)

        state = issue_state(db_session, auth.user_id, "tiktok")
        with patch(SERVICE_CLIENT, vendor(routes).client_factory()):
            url = await oauth_service.handle_callback(auth, Platform.TIKTOK, "c", state, None, db_session)

        assert query_of(url) == {"success": "tiktok_connected"}
        conn = db_helpers.get_connection(db_session, auth.user_id, "tiktok")
        assert conn.platform_user_id == "open-1"
        assert conn.platform_username == "Tok"

    @pytest.mark.asyncio
    async def test_instagram_stores_page_token_with_sixty_day_expiry(self, db_session, auth, vendor):
        def routes(request):
            url = str(request.url)
            if "oauth/access_token" in url:
                if "fb_exchange_token" in url:
                    return httpx.Response(200, json={"access_token": "long-lived"})
                return httpx.Response(200, json={"access_token": "short-lived"})
            if "/me/accounts" in url:
                return httpx.Response(200, json={"data": [
                    {"id": "page-0", "access_token": "page-0-token"},
                    {"id": "page-1", "access_token": "page-1-token",
                     "instagram_business_account": {"id": "ig-42"}},
                ]})
            if "/ig-42" in url:
                return httpx.Response(200, json={"username": "gram"})
            return httpx.Response(404)

        state = issue_state(db_session, auth.user_id, "instagram")
        before = datetime.now(timezone.utc)
        with patch(SERVICE_CLIENT, vendor(routes).client_factory()):
            url = await oauth_service.handle_callback(auth, Platform.INSTAGRAM, "c", state, None, db_session)

        assert query_of(url) == {"success": "instagram_connected"}
        conn = db_helpers.get_connection(db_session, auth.user_id, "instagram")
        assert conn.platform_user_id == "ig-42"
        assert conn.platform_username == "gram"
        assert decrypt(conn.access_token) == "page-1-token"
        assert conn.refresh_token is None
        expires_at = db_helpers.as_utc(conn.token_expires_at)
        assert timedelta(days=59, hours=23) < expires_at - before <= timedelta(days=60, minutes=1)

    @pytest.mark.asyncio
    async def test_instagram_without_business_account(self, db_session, auth, vendor):
        def routes(request):
            url = str(request.url)
            if "oauth/access_token" in url:
                return httpx.Response(200, json={"access_token": "tok"})
            if "/me/accounts" in url:
                return httpx.Response(200, json={"data": [{"id": "page-0", "access_token": "p"}]})
            return httpx.Response(404)

        state = issue_state(db_session, auth.user_id, "instagram")
        with patch(SERVICE_CLIENT, vendor(routes).client_factory()):
            url = await oauth_service.handle_callback(auth, Platform.INSTAGRAM, "c", state, None, db_session)
        assert query_of(url) == {"error": "instagram_account_not_found"}

    @pytest.mark.asyncio
    async def test_reconnect_keeps_single_connection(self, db_session, auth, vendor, make_connection):
        make_connection("youtube", access_token="old")
        state = issue_state(db_session, auth.user_id, "youtube")
        with patch(SERVICE_CLIENT, vendor(youtube_routes).client_factory()):
            await oauth_service.handle_callback(auth, Platform.YOUTUBE, "c", state, None, db_session)

        connections = db_helpers.list_connections(db_session, auth.user_id)
        assert len(connections) == 1
        db_session.refresh(connections[0])
        assert decrypt(connections[0].access_token) == "ya29.access"


@pytest.mark.high
class TestDisconnect:
    @pytest.mark.asyncio
    async def test_disconnect_revokes_and_deletes(self, db_session, auth, vendor, make_connection):
        make_connection("youtube", access_token="to-revoke")
        recorder = vendor(youtube_routes)

        with patch(SERVICE_CLIENT, recorder.client_factory()):
            await oauth_service.disconnect(auth, Platform.YOUTUBE, db_session)

        assert db_helpers.get_connection(db_session, auth.user_id, "youtube") is None
        revoke = recorder.calls_to("oauth2.googleapis.com/revoke")[0]
        assert revoke.url.params["token"] == "to-revoke"

    @pytest.mark.asyncio
    async def test_disconnect_twice_succeeds(self, db_session, auth, vendor, make_connection):
        make_connection("tiktok")
        with patch(SERVICE_CLIENT, vendor(lambda r: httpx.Response(200, json={})).client_factory()):
            await oauth_service.disconnect(auth, Platform.TIKTOK, db_session)
            await oauth_service.disconnect(auth, Platform.TIKTOK, db_session)
        assert db_helpers.get_connection(db_session, auth.user_id, "tiktok") is None

    @pytest.mark.asyncio
    async def test_revoke_failure_still_deletes(self, db_session, auth, vendor, make_connection):
        make_connection("tiktok")
        with patch(SERVICE_CLIENT, vendor(lambda r: httpx.Response(500)).client_factory()):
            await oauth_service.disconnect(auth, Platform.TIKTOK, db_session)
        assert db_helpers.get_connection(db_session, auth.user_id, "tiktok") is None

    @pytest.mark.asyncio
    async def test_instagram_has_no_revoke_call(self, db_session, auth, vendor, make_connection):
        make_connection("instagram")
        recorder = vendor(lambda r: httpx.Response(200))
        with patch(SERVICE_CLIENT, recorder.client_factory()):
            await oauth_service.disconnect(auth, Platform.INSTAGRAM, db_session)
        assert recorder.requests == []
        assert db_helpers.get_connection(db_session, auth.user_id, "instagram") is None


@pytest.mark.high
class TestCredentials:
    """Publishers get decrypted credentials that will not expire mid-publish"""

    @pytest.mark.asyncio
    async def test_no_expiry_needs_no_refresh(self, db_session, make_connection, vendor):
        conn = make_connection("youtube", access_token="at")
        recorder = vendor(lambda r: httpx.Response(500))
        async with recorder.client() as client:
            creds = await oauth_service.ensure_fresh_credentials(client, conn, db_session)
        assert creds.access_token == "at"
        assert recorder.requests == []

    @pytest.mark.asyncio
    async def test_tiktok_refresh_near_expiry(self, db_session, make_connection, vendor):
        conn = make_connection(
            "tiktok", access_token="old", refresh_token="rft.old",
            token_expires_at=datetime.now(timezone.utc) + timedelta(seconds=30)
        )
        recorder = vendor(lambda r: httpx.Response(200, json={
            "access_token": "new", "refresh_token": "rft.new", "expires_in": 86400
        }))
        async with recorder.client() as client:
            creds = await oauth_service.ensure_fresh_credentials(client, conn, db_session)

        assert creds.access_token == "new"
        assert b"grant_type=refresh_token" in recorder.requests[0].content
        db_session.refresh(conn)
        assert decrypt(conn.access_token) == "new"
        assert decrypt(conn.refresh_token) == "rft.new"

    @pytest.mark.asyncio
    async def test_youtube_refresh_uses_google_auth(self, db_session, make_connection, vendor):
        conn = make_connection(
            "youtube", access_token="old", refresh_token="1//r",
            token_expires_at=datetime.now(timezone.utc) - timedelta(minutes=1)
        )
        refreshed = Mock(token="fresh", refresh_token=None,
                         expiry=datetime.now(timezone.utc).replace(tzinfo=None) + timedelta(hours=1))

        with patch("app.services.oauth.platforms.youtube._refresh_credentials",
                   return_value=refreshed) as refresh_mock:
            async with vendor(lambda r: httpx.Response(500)).client() as client:
                creds = await oauth_service.ensure_fresh_credentials(client, conn, db_session)

        refresh_mock.assert_called_once_with("1//r")
        assert creds.access_token == "fresh"
        assert creds.refresh_token == "1//r"

    @pytest.mark.asyncio
    async def test_expired_without_refresh_raises(self, db_session, make_connection, vendor):
        conn = make_connection(
            "instagram", token_expires_at=datetime.now(timezone.utc) - timedelta(days=1)
        )
        async with vendor(lambda r: httpx.Response(500)).client() as client:
            with pytest.raises(VendorError) as exc_info:
                await oauth_service.ensure_fresh_credentials(client, conn, db_session)
        assert "reconnect" in exc_info.value.message

    def test_unreadable_tokens(self, db_session, make_connection):
        conn = make_connection("youtube")
        conn.access_token = "not-a-fernet-token"
        with pytest.raises(VendorError):
            oauth_service.load_credentials(conn)
