from dataclasses import dataclass
from functools import lru_cache, partial
from typing import Any, Callable, Optional
from urllib.parse import quote, urlencode

from appwrite.client import Client
from appwrite.services.account import Account
from appwrite.services.databases import Databases
from appwrite.services.storage import Storage
from appwrite.services.users import Users
from starlette.concurrency import run_in_threadpool

from core.config.settings import Settings, get_settings


@dataclass
class AppwriteServices:
    """SDK services bound to a single credential (API key or user session)."""

    client: Client
    account: Account
    databases: Databases
    storage: Storage
    users: Optional[Users] = None


class AppwriteGateway:
    """
    Hands out Appwrite services for either the administrative API key or a
    user's session. Handlers never build SDK clients themselves.
    """

    def __init__(self, settings: Settings):
        self.settings = settings
        self._admin: Optional[AppwriteServices] = None

    def _base_client(self) -> Client:
        client = Client()
        (client
            .set_endpoint(self.settings.appwrite_endpoint)
            .set_project(self.settings.appwrite_project_id)
        )
        return client

    def as_admin(self) -> AppwriteServices:
        if self._admin is None:
            client = self._base_client().set_key(self.settings.appwrite_api_key)
            self._admin = AppwriteServices(
                client=client,
                account=Account(client),
                databases=Databases(client),
                storage=Storage(client),
                users=Users(client),
            )
        return self._admin

    def as_user(self, session_secret: str) -> AppwriteServices:
        # A fresh client per request: the session header must never leak
        # between callers
        client = self._base_client().set_session(session_secret)
        return AppwriteServices(
            client=client,
            account=Account(client),
            databases=Databases(client),
            storage=Storage(client),
        )


@lru_cache
def get_appwrite() -> AppwriteGateway:
    """FastAPI dependency: the process-wide gateway."""
    return AppwriteGateway(get_settings())


async def call(fn: Callable[..., Any], *args: Any, **kwargs: Any) -> Any:
    """Runs one synchronous SDK call in the threadpool."""
    return await run_in_threadpool(partial(fn, *args, **kwargs))


def file_url(settings: Settings, file_id: str, mode: str) -> str:
    """Public view/download URL of a file in the configured bucket."""
    endpoint = settings.appwrite_endpoint.rstrip("/")
    return (
        f"{endpoint}/storage/buckets/{quote(settings.appwrite_bucket_id, safe='')}"
        f"/files/{quote(file_id, safe='')}/{mode}"
        f"?{urlencode({'project': settings.appwrite_project_id})}"
    )


def oauth_fallback_url(settings: Settings, provider: str, success_url: str, failure_url: str) -> str:
    """OAuth2 session URL built by hand, for when the SDK cannot produce one."""
    endpoint = settings.appwrite_endpoint.rstrip("/")
    query = urlencode({
        "project": settings.appwrite_project_id,
        "success": success_url,
        "failure": failure_url,
    })
    return f"{endpoint}/account/sessions/oauth2/{provider}?{query}"
