import pytest

from richpipe.exc import OAuth2Error
from richpipe.oauth import TOKEN_URL, OAuth2Token, exchange_code


class FakeResponse(object):
    def __init__(self, status_code, body):
        self.status_code = status_code
        self._body = body
        self.text = str(body)

    def json(self):
        return self._body


class FakeSession(object):
    def __init__(self, response):
        self.response = response
        self.requests = []

    async def post(self, **kwargs):
        self.requests.append(kwargs)
        return self.response


@pytest.mark.trio
async def test_exchange_code_posts_form():
    session = FakeSession(FakeResponse(200, {
        "access_token": "token",
        "token_type": "Bearer",
        "expires_in": 604800,
        "refresh_token": "refresh",
        "scope": "rpc identify",
    }))

    token = await exchange_code(123, "secret", "the-code", "http://localhost", session=session)

    assert isinstance(token, OAuth2Token)
    assert token.access_token == "token"
    assert token.scopes == ["rpc", "identify"]
    assert not token.expired

    request = session.requests[0]
    assert request["path"] == TOKEN_URL
    form = request["data"]
    assert form["grant_type"] == "authorization_code"
    assert form["code"] == "the-code"
    assert form["client_id"] == "123"
    assert form["client_secret"] == "secret"
    assert form["redirect_uri"] == "http://localhost"


@pytest.mark.trio
async def test_exchange_code_failure():
    session = FakeSession(FakeResponse(400, {"error": "invalid_grant"}))

    with pytest.raises(OAuth2Error) as e:
        await exchange_code(123, "secret", "bad", "http://localhost", session=session)

    assert e.value.status_code == 400
    assert e.value.error == {"error": "invalid_grant"}
