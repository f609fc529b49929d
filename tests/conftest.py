"""
Shared fixtures: an in-memory stand-in for the Appwrite services and a
TestClient wired to it through dependency overrides.
"""

import copy
import os
from itertools import count
from typing import Any, Dict, List, Optional
from unittest.mock import MagicMock

import pytest

# Required settings must exist before the app is imported
os.environ.setdefault("APPWRITE_ENDPOINT", "https://appwrite.test/v1")
os.environ.setdefault("APPWRITE_PROJECT_ID", "proj-test")
os.environ.setdefault("APPWRITE_API_KEY", "api-key-test-0123456789")
os.environ.setdefault("APPWRITE_DATABASE_ID", "db")
os.environ.setdefault("GROUPS_COLLECTION_ID", "groups")
os.environ.setdefault("MESSAGES_COLLECTION_ID", "messages")
os.environ.setdefault("USER_PROFILES_COLLECTION_ID", "user_profiles")
os.environ.setdefault("APPWRITE_BUCKET_ID", "files")
os.environ.setdefault("APP_URL", "http://localhost:3000")

from appwrite.exception import AppwriteException  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402

from core.cloud.appwrite import AppwriteServices, get_appwrite  # noqa: E402
from core.config.settings import get_settings  # noqa: E402
from core.cookies.session_cookie import SESSION_COOKIE_NAME, encode_session  # noqa: E402
from main import app  # noqa: E402

_ids = count(1)

SESSION_SECRET_PREFIX = "secret-for-"


def not_found(what: str = "Document") -> AppwriteException:
    return AppwriteException(f"{what} with the requested ID could not be found.", 404)


class FakeDatabases:
    """Collections of documents keyed by ID. Queries are recorded, not applied."""

    def __init__(self):
        self.collections: Dict[str, Dict[str, Dict[str, Any]]] = {}
        self.list_calls: List[Dict[str, Any]] = []
        self.fail_get: Dict[str, Exception] = {}

    def seed(self, collection_id: str, document: Dict[str, Any]) -> Dict[str, Any]:
        document = dict(document)
        document.setdefault("$createdAt", "2024-01-01T00:00:00.000+00:00")
        self.collections.setdefault(collection_id, {})[document["$id"]] = document
        return document

    def get_document(self, database_id, collection_id, document_id, queries=None):
        if document_id in self.fail_get:
            raise self.fail_get[document_id]
        document = self.collections.get(collection_id, {}).get(document_id)
        if document is None:
            raise not_found()
        return copy.deepcopy(document)

    def list_documents(self, database_id, collection_id, queries=None):
        self.list_calls.append({"collection_id": collection_id, "queries": list(queries or [])})
        documents = [copy.deepcopy(d) for d in self.collections.get(collection_id, {}).values()]
        return {"total": len(documents), "documents": documents}

    def create_document(self, database_id, collection_id, document_id, data, permissions=None):
        if document_id == "unique()":
            document_id = f"doc-{next(_ids)}"
        return self.seed(collection_id, {"$id": document_id, **data})

    def update_document(self, database_id, collection_id, document_id, data=None, permissions=None):
        document = self.collections.get(collection_id, {}).get(document_id)
        if document is None:
            raise not_found()
        document.update(data or {})
        return copy.deepcopy(document)

    def delete_document(self, database_id, collection_id, document_id):
        if self.collections.get(collection_id, {}).pop(document_id, None) is None:
            raise not_found()
        return {}


class FakeUsers:
    def __init__(self):
        self.accounts: Dict[str, Dict[str, Any]] = {}
        self.passwords: Dict[str, str] = {}

    def create(self, user_id, email=None, phone=None, password=None, name=None):
        if any(account["email"] == email for account in self.accounts.values()):
            raise AppwriteException("A user with the same id, email, or phone already exists.", 409)
        if user_id == "unique()":
            user_id = f"user-{next(_ids)}"
        self.accounts[user_id] = {"$id": user_id, "name": name, "email": email}
        self.passwords[user_id] = password
        return dict(self.accounts[user_id])

    def get(self, user_id):
        if user_id not in self.accounts:
            raise not_found("User")
        return dict(self.accounts[user_id])

    def update_email(self, user_id, email):
        self.accounts[user_id]["email"] = email
        return dict(self.accounts[user_id])


class FakeAdminAccount:
    """Email/password sessions checked against FakeUsers."""

    def __init__(self, users: FakeUsers):
        self.users = users
        self.create_session = MagicMock()
        self.create_o_auth2_token = MagicMock()

    def create_email_password_session(self, email, password):
        for user_id, account in self.users.accounts.items():
            if account["email"] == email and self.users.passwords[user_id] == password:
                return {
                    "$id": f"sess-{next(_ids)}",
                    "userId": user_id,
                    "secret": f"{SESSION_SECRET_PREFIX}{user_id}",
                    "expire": "2099-01-01T00:00:00.000+00:00",
                }
        raise AppwriteException("Invalid credentials. Please check the email and password.", 401)


class FakeSessionAccount:
    """Account service of a session-scoped client: knows only its own secret."""

    def __init__(self, gateway: "FakeGateway", secret: str):
        self.gateway = gateway
        self.secret = secret

    def get(self):
        user_id = self.gateway.session_user(self.secret)
        if user_id is None:
            raise AppwriteException("User (role: guests) missing scope (account)", 401)
        account = self.gateway.users.accounts.get(user_id)
        return dict(account) if account else {"$id": user_id, "name": None, "email": None}

    def delete_session(self, session_id):
        self.gateway.deleted_sessions.append((self.secret, session_id))
        if self.gateway.delete_session_error is not None:
            raise self.gateway.delete_session_error
        self.gateway.revoked.add(self.secret)
        return {}


class FakeGateway:
    """
    Admin calls go to the in-memory services. Session secrets of the form
    `secret-for-<userId>` (what FakeAdminAccount issues) or registered in
    `sessions` are valid until deleted; anything else is rejected.
    """

    def __init__(self, settings):
        self.settings = settings
        self.databases = FakeDatabases()
        self.users = FakeUsers()
        self.storage = MagicMock()
        self.admin = AppwriteServices(
            client=MagicMock(),
            account=FakeAdminAccount(self.users),
            databases=self.databases,
            storage=self.storage,
            users=self.users,
        )
        self.sessions: Dict[str, str] = {}
        self.revoked = set()
        self.user_sessions: List[str] = []
        self.deleted_sessions: List[tuple] = []
        self.delete_session_error: Optional[Exception] = None

    def as_admin(self):
        return self.admin

    def as_user(self, session_secret):
        self.user_sessions.append(session_secret)
        return AppwriteServices(
            client=MagicMock(),
            account=FakeSessionAccount(self, session_secret),
            databases=MagicMock(),
            storage=MagicMock(),
        )

    def session_user(self, secret: str) -> Optional[str]:
        if not secret or secret in self.revoked:
            return None
        if secret in self.sessions:
            return self.sessions[secret]
        if secret.startswith(SESSION_SECRET_PREFIX):
            return secret[len(SESSION_SECRET_PREFIX):] or None
        return None

    # --- seeding helpers ---

    def add_account(self, user_id: str, name: str, email: str, password: str = "password123", **extra) -> None:
        self.users.accounts[user_id] = {"$id": user_id, "name": name, "email": email, **extra}
        self.users.passwords[user_id] = password

    def add_profile(self, user_id: str, name: str, email: Optional[str] = None, **extra) -> None:
        self.databases.seed("user_profiles", {
            "$id": user_id,
            "user_id": user_id,
            "name": name,
            "email": email or f"{user_id}@example.com",
            "subjects_of_interest": extra.pop("subjects_of_interest", []),
            "created_at": extra.pop("created_at", "2024-02-01T00:00:00+00:00"),
            **extra,
        })

    def add_group(self, group_id: str, members: List[str], creator_id: Optional[str] = None,
                  is_public: bool = True, **extra) -> None:
        self.databases.seed("groups", {
            "$id": group_id,
            "name": extra.pop("name", f"Group {group_id}"),
            "description": extra.pop("description", ""),
            "subject": extra.pop("subject", "math"),
            "creator_id": creator_id or (members[0] if members else None),
            "members": list(members),
            "is_public": is_public,
            **extra,
        })

    def group(self, group_id: str) -> Dict[str, Any]:
        return self.databases.collections["groups"][group_id]

    def messages(self) -> List[Dict[str, Any]]:
        return list(self.databases.collections.get("messages", {}).values())


@pytest.fixture
def cloud():
    return FakeGateway(get_settings())


@pytest.fixture
def client(cloud):
    app.dependency_overrides[get_appwrite] = lambda: cloud
    yield TestClient(app)
    app.dependency_overrides.clear()


def session_cookie(user_id: str = "user-a", secret: Optional[str] = None) -> Dict[str, str]:
    """Cookie header for a logged-in user."""
    value = encode_session({
        "secret": secret or f"{SESSION_SECRET_PREFIX}{user_id}",
        "userId": user_id,
        "expire": "2099-01-01T00:00:00.000+00:00",
    })
    return {"Cookie": f"{SESSION_COOKIE_NAME}={value}"}
