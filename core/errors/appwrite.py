from typing import Iterable, Optional

from appwrite.exception import AppwriteException
from pydantic import ValidationError as PydanticValidationError

from core.config.settings import get_settings
from core.errors.exceptions import GenieLearnError, NotFoundError, UpstreamError

GENERIC_UPSTREAM_MESSAGE = "Remote service error"
_SENSITIVE_MARKERS = ("key", "secret", "token", "password")


def safe_upstream_message(message: Optional[str], secrets: Iterable[str] = ()) -> str:
    """
    Returns the remote message if it is fit to show to a client,
    otherwise a generic one.
    """
    if not message:
        return GENERIC_UPSTREAM_MESSAGE

    lowered = message.lower()
    if any(marker in lowered for marker in _SENSITIVE_MARKERS):
        return GENERIC_UPSTREAM_MESSAGE
    if any(secret and secret in message for secret in secrets):
        return GENERIC_UPSTREAM_MESSAGE
    return message


def translate_appwrite_error(
    exc: AppwriteException,
    resource: str = "Resource",
    secrets: Iterable[str] = (),
) -> GenieLearnError:
    """Maps an Appwrite failure onto the application's error taxonomy."""
    if exc.code == 404:
        return NotFoundError(f"{resource} not found")

    secrets = list(secrets)
    try:
        secrets.append(get_settings().appwrite_api_key)
    except PydanticValidationError:
        # Settings unavailable: the marker check still applies
        pass
    return UpstreamError(safe_upstream_message(exc.message, secrets))
