import asyncio

import pytest

from conftest import FakeGateway
from core.config.settings import get_settings
from core.dependencies.auth import SessionContext, get_current_account, require_session
from core.errors.exceptions import AuthenticationError


def _cookie_session(user_id, secret):
    return SessionContext(authenticated=True, session_token=secret, user_id=user_id)


def test_caller_comes_from_the_secret():
    cloud = FakeGateway(get_settings())
    cloud.add_account("user-b", "Bea", "b@x.com")
    cloud.sessions["opaque"] = "user-b"

    session = asyncio.run(require_session(_cookie_session("user-a", "opaque"), cloud))

    assert session.user_id == "user-b"
    assert session.account["email"] == "b@x.com"
    assert cloud.user_sessions == ["opaque"]
    assert asyncio.run(get_current_account(session))["$id"] == "user-b"


def test_rejected_secret_is_authentication_error():
    cloud = FakeGateway(get_settings())

    with pytest.raises(AuthenticationError):
        asyncio.run(require_session(_cookie_session("user-a", "forged"), cloud))


def test_missing_cookie_never_reaches_appwrite():
    cloud = FakeGateway(get_settings())

    with pytest.raises(AuthenticationError):
        asyncio.run(require_session(SessionContext(authenticated=False), cloud))
    assert cloud.user_sessions == []
