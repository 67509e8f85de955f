import pytest

from accessly.exceptions import ConfigurationError, Unauthorized
from accessly.settings import AuthConfig
from accessly.tests.helpers import JWT_SECRET, OWNER_ID, make_token
from accessly.utils.auth import decode_session_token

CONFIG = AuthConfig(key=JWT_SECRET)


def test_valid_token_returns_subject():
    assert decode_session_token(make_token(), CONFIG) == OWNER_ID


@pytest.mark.parametrize(
    "token",
    [
        make_token(secret="another-secret"),
        make_token(exp=1),
        make_token(sub=""),
        "not-a-jwt",
    ],
)
def test_invalid_tokens_are_unauthorized(token):
    with pytest.raises(Unauthorized):
        decode_session_token(token, CONFIG)


def test_issuer_and_audience_are_enforced():
    config = AuthConfig(key=JWT_SECRET, issuer="https://clerk.test", audience="accessly")
    good = make_token(iss="https://clerk.test", aud="accessly")
    assert decode_session_token(good, config) == OWNER_ID
    with pytest.raises(Unauthorized):
        decode_session_token(make_token(iss="https://evil.test", aud="accessly"), config)


def test_missing_key_is_a_configuration_error():
    with pytest.raises(ConfigurationError):
        decode_session_token(make_token(), AuthConfig(key=None))


def test_routes_require_identity(client):
    assert client.get("/api/pdfs").status_code == 401
    bad = client.get("/api/pdfs", headers={"Authorization": "Bearer junk"})
    assert bad.status_code == 401
    assert bad.json() == {"success": False, "error": "Unauthorized"}


def test_session_cookie_is_accepted(client, repository):
    client.cookies.set("__session", make_token())
    response = client.get("/api/pdfs")
    assert response.status_code == 200
