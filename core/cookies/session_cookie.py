import base64
import binascii
import json
from dataclasses import dataclass
from typing import Any, Dict, Optional

from fastapi import Response

from core.config.settings import Settings

SESSION_COOKIE_NAME = "session"
SESSION_MAX_AGE = 60 * 60 * 24 * 30  # 30 days


@dataclass
class SessionPayload:
    secret: str
    user_id: str
    expire: Optional[str] = None


def encode_session(session: Dict[str, Any]) -> str:
    """
    Serializes an Appwrite session document into the cookie value.
    The JSON is base64url-encoded without padding so the value needs no
    cookie quoting.
    """
    raw = json.dumps({
        "secret": session.get("secret"),
        "userId": session.get("userId"),
        "expire": session.get("expire"),
    }, separators=(",", ":"))
    return base64.urlsafe_b64encode(raw.encode("utf-8")).decode("ascii").rstrip("=")


def decode_session(value: Optional[str]) -> Optional[SessionPayload]:
    """Returns None for an absent, empty, or unreadable cookie."""
    if not value:
        return None
    try:
        padded = value + "=" * (-len(value) % 4)
        data = json.loads(base64.urlsafe_b64decode(padded.encode("ascii")))
    except (ValueError, binascii.Error, UnicodeError):
        return None
    if not isinstance(data, dict):
        return None

    secret = data.get("secret")
    user_id = data.get("userId")
    if not secret or not user_id:
        return None
    return SessionPayload(secret=secret, user_id=user_id, expire=data.get("expire"))


def set_session_cookie(response: Response, session: Dict[str, Any], settings: Settings) -> None:
    response.set_cookie(
        key=SESSION_COOKIE_NAME,
        value=encode_session(session),
        max_age=SESSION_MAX_AGE,
        path="/",
        httponly=True,
        secure=settings.is_production,
        samesite="lax",
    )


def clear_session_cookie(response: Response, settings: Settings) -> None:
    response.delete_cookie(
        key=SESSION_COOKIE_NAME,
        path="/",
        httponly=True,
        secure=settings.is_production,
        samesite="lax",
    )
