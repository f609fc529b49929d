from dataclasses import dataclass
from typing import Any, Dict, Optional

from fastapi import Depends, Request
from appwrite.exception import AppwriteException

from core.cloud.appwrite import AppwriteGateway, call, get_appwrite
from core.cookies.session_cookie import SESSION_COOKIE_NAME, decode_session
from core.errors.exceptions import AuthenticationError
from core.logging.logger import get_logger

logger = get_logger(__name__)


@dataclass
class SessionContext:
    authenticated: bool
    session_token: Optional[str] = None
    user_id: Optional[str] = None
    account: Optional[Dict[str, Any]] = None


def resolve_session(request: Request) -> SessionContext:
    """
    Reads the session cookie. Read-only: cookies are only written by the
    auth endpoints. The cookie's userId is unverified at this point.
    """
    payload = decode_session(request.cookies.get(SESSION_COOKIE_NAME))
    if payload is None:
        return SessionContext(authenticated=False)
    return SessionContext(
        authenticated=True,
        session_token=payload.secret,
        user_id=payload.user_id,
    )


async def require_session(
    session: SessionContext = Depends(resolve_session),
    cloud: AppwriteGateway = Depends(get_appwrite),
) -> SessionContext:
    """
    Dependency for routes that need a caller. The secret is checked with
    Appwrite through a session-scoped client; the account it resolves to is
    the caller. An invalid or expired secret is 401.
    """
    if not session.authenticated:
        raise AuthenticationError()

    try:
        account = await call(cloud.as_user(session.session_token).account.get)
    except AppwriteException as e:
        logger.info("Session rejected by Appwrite. Status: %s", e.code)
        raise AuthenticationError()

    user_id = account.get("$id")
    if not user_id:
        raise AuthenticationError()
    if user_id != session.user_id:
        logger.warning("Session cookie names a different user than its secret; using %s", user_id)

    return SessionContext(
        authenticated=True,
        session_token=session.session_token,
        user_id=user_id,
        account=account,
    )


async def get_current_account(
    session: SessionContext = Depends(require_session),
) -> Dict[str, Any]:
    """The caller's Appwrite account, as returned for their own session."""
    return session.account
