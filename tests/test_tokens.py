import asyncio
import base64
import hashlib
import json
from urllib.parse import parse_qs, urlparse

import httpx
import pytest

from maxrouter import oauth, tokens
from maxrouter.exceptions import AuthenticationError
from maxrouter.tokens import EXPIRY_BUFFER_MS, TokenStore


def test_pkce_challenge_matches_verifier():
    verifier, challenge = oauth.generate_pkce()
    expected = base64.urlsafe_b64encode(hashlib.sha256(verifier.encode()).digest()).rstrip(b"=").decode()

    assert challenge == expected
    assert "=" not in verifier and len(verifier) == 43


def test_authorization_url_parameters():
    url = oauth.get_authorization_url("challenge123", "state456")
    query = parse_qs(urlparse(url).query)

    assert url.startswith(oauth.AUTHORIZE_URL)
    assert query["code_challenge"] == ["challenge123"]
    assert query["code_challenge_method"] == ["S256"]
    assert query["state"] == ["state456"]
    assert query["client_id"] == [oauth.CLIENT_ID]
    assert query["response_type"] == ["code"]


def test_parse_authorization_response_variants():
    assert oauth.parse_authorization_response("https://x/cb?code=abc&state=s1", "s1") == "abc"
    assert oauth.parse_authorization_response("  abc#s1 \n", "s1") == "abc"
    assert oauth.parse_authorization_response("abc", "s1") == "abc"

    with pytest.raises(AuthenticationError):
        oauth.parse_authorization_response("https://x/cb?code=abc&state=other", "s1")
    with pytest.raises(AuthenticationError):
        oauth.parse_authorization_response("https://x/cb?error=access_denied", "s1")
    with pytest.raises(AuthenticationError):
        oauth.parse_authorization_response("", "s1")


def test_exchange_code_posts_form_and_stamps_expiry():
    seen = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["url"] = str(request.url)
        seen["form"] = parse_qs(request.content.decode())
        return httpx.Response(200, json={"access_token": "at", "refresh_token": "rt", "expires_in": 3600})

    async def run():
        async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as client:
            return await oauth.exchange_code_for_tokens("code1", "verifier1", client=client)

    result = asyncio.run(run())
    assert seen["url"] == oauth.TOKEN_URL
    assert seen["form"]["grant_type"] == ["authorization_code"]
    assert seen["form"]["code_verifier"] == ["verifier1"]
    assert result["access_token"] == "at"
    assert result["expires_at"] > 0 and "created_at" in result


def test_refresh_failure_raises():
    def handler(request):
        return httpx.Response(400, json={"error": "invalid_grant"})

    async def run():
        async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as client:
            await oauth.refresh_access_token("rt", client=client)

    with pytest.raises(AuthenticationError, match="Token refresh failed"):
        asyncio.run(run())


def test_load_missing_or_corrupt_file(tmp_path):
    assert TokenStore(str(tmp_path / "none.json")).load() is None

    corrupt = tmp_path / "corrupt.json"
    corrupt.write_text("{")
    assert TokenStore(str(corrupt)).load() is None


def test_save_then_load(tmp_path):
    store = TokenStore(str(tmp_path / "tokens.json"))
    store.save({"access_token": "a", "expires_at": 1})
    assert store.load() == {"access_token": "a", "expires_at": 1}


def test_expiry_uses_five_minute_buffer():
    now = 1_000_000_000
    assert TokenStore.is_expired({}, now_ms=now)
    assert TokenStore.is_expired({"expires_at": now + EXPIRY_BUFFER_MS}, now_ms=now)
    assert not TokenStore.is_expired({"expires_at": now + EXPIRY_BUFFER_MS + 1}, now_ms=now)


def test_valid_token_returned_without_refresh(tmp_path, monkeypatch):
    async def fail_refresh(refresh_token):
        raise AssertionError("should not refresh")

    monkeypatch.setattr(tokens, "refresh_access_token", fail_refresh)
    store = TokenStore(str(tmp_path / "tokens.json"))
    store.save({"access_token": "fresh", "refresh_token": "rt", "expires_at": 10 ** 15})

    assert asyncio.run(store.get_valid_access_token()) == "fresh"


def test_expired_token_is_refreshed_and_saved(tmp_path, monkeypatch):
    async def fake_refresh(refresh_token):
        assert refresh_token == "old-rt"
        return {"access_token": "new-at", "expires_at": 10 ** 15}

    monkeypatch.setattr(tokens, "refresh_access_token", fake_refresh)
    path = tmp_path / "tokens.json"
    store = TokenStore(str(path))
    store.save({"access_token": "old-at", "refresh_token": "old-rt", "expires_at": 1})

    assert asyncio.run(store.get_valid_access_token()) == "new-at"
    saved = json.loads(path.read_text())
    assert saved["access_token"] == "new-at"
    assert saved["refresh_token"] == "old-rt"


def test_token_file_read_once_per_store(tmp_path, monkeypatch):
    path = tmp_path / "tokens.json"
    path.write_text(json.dumps({"access_token": "cached", "refresh_token": "rt", "expires_at": 10 ** 15}))
    store = TokenStore(str(path))
    reads = []
    original_load = store.load
    monkeypatch.setattr(store, "load", lambda: reads.append(1) or original_load())

    async def run():
        return [await store.get_valid_access_token() for _ in range(3)]

    assert asyncio.run(run()) == ["cached"] * 3
    assert len(reads) == 1

    path.unlink()
    assert asyncio.run(store.get_valid_access_token()) == "cached"


def test_missing_tokens_raise(tmp_path):
    with pytest.raises(AuthenticationError):
        asyncio.run(TokenStore(str(tmp_path / "none.json")).get_valid_access_token())
