from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from fastapi import Request, Response
from fastapi.responses import RedirectResponse
from pydantic import BaseModel
from appwrite.exception import AppwriteException
from appwrite.id import ID

from core.cloud.appwrite import AppwriteGateway, call, oauth_fallback_url
from core.cookies.session_cookie import (
    SESSION_COOKIE_NAME,
    clear_session_cookie,
    decode_session,
    set_session_cookie,
)
from core.errors.appwrite import translate_appwrite_error
from core.errors.exceptions import ConflictError, ValidationError
from core.logging.logger import get_logger
from core.messages.system import utc_now_iso
from core.profiles.profiles import find_profile
from core.results.outcome import Outcome

logger = get_logger(__name__)

ALLOWED_OAUTH_PROVIDERS = ("google", "github")
NEW_USER_WINDOW_SECONDS = 60
MIN_PASSWORD_LENGTH = 8


class LoginRequest(BaseModel):
    email: Optional[str] = None
    password: Optional[str] = None


class RegisterRequest(BaseModel):
    name: Optional[str] = None
    email: Optional[str] = None
    password: Optional[str] = None
    subjects_of_interest: Optional[List[str]] = None


class OAuthRequest(BaseModel):
    provider: Optional[str] = None


def _normalize_email(email: Optional[str]) -> str:
    return (email or "").strip().lower()


async def login_endpoint(
    request_data: LoginRequest,
    response: Response,
    cloud: AppwriteGateway,
) -> Dict[str, Any]:
    email = _normalize_email(request_data.email)
    if not email:
        raise ValidationError("Valid email is required")
    if not request_data.password:
        raise ValidationError("Password is required")

    # The admin client gets the session secret back; a keyless client does not
    try:
        session = await call(
            cloud.as_admin().account.create_email_password_session,
            email=email,
            password=request_data.password,
        )
    except AppwriteException as e:
        if e.code in (400, 401):
            # Same answer whether or not the email exists
            raise ValidationError("Incorrect email or password")
        logger.error("Login failed. Status: %s. Message: %s", e.code, e.message)
        raise translate_appwrite_error(e, "Account")

    set_session_cookie(response, session, cloud.settings)
    logger.info("User %s logged in", session.get("userId"))
    return {"message": "Login successful", "userId": session.get("userId")}


async def register_endpoint(
    request_data: RegisterRequest,
    cloud: AppwriteGateway,
) -> Dict[str, Any]:
    name = (request_data.name or "").strip()
    email = _normalize_email(request_data.email)
    password = request_data.password or ""

    if not name:
        raise ValidationError("Name is required")
    if not email:
        raise ValidationError("Valid email is required")
    if len(password) < MIN_PASSWORD_LENGTH:
        raise ValidationError(f"Password must be at least {MIN_PASSWORD_LENGTH} characters long")

    admin = cloud.as_admin()
    settings = cloud.settings

    try:
        # --- 1. Create the identity ---
        user = await call(
            admin.users.create,
            user_id=ID.unique(),
            email=email,
            phone=None,
            password=password,
            name=name,
        )

        # --- 2. Create the matching profile (same ID as the account) ---
        await call(
            admin.databases.create_document,
            database_id=settings.appwrite_database_id,
            collection_id=settings.user_profiles_collection_id,
            document_id=user["$id"],
            data={
                "user_id": user["$id"],
                "name": name,
                "email": email,
                "subjects_of_interest": request_data.subjects_of_interest or [],
                "created_at": utc_now_iso(),
            },
        )
    except AppwriteException as e:
        if e.code == 409:
            raise ConflictError("Email already registered.")
        logger.error("Registration failed. Status: %s. Message: %s", e.code, e.message)
        raise translate_appwrite_error(e, "User")

    logger.info("Registered user %s", user["$id"])
    return {"message": "User registered successfully", "userId": user["$id"]}


async def _delete_remote_session(cloud: AppwriteGateway, session_secret: str) -> Outcome[None]:
    try:
        await call(cloud.as_user(session_secret).account.delete_session, session_id="current")
    except AppwriteException as e:
        return Outcome.failure(f"{e.code}: {e.message}")
    return Outcome.success()


async def logout_endpoint(
    request: Request,
    response: Response,
    cloud: AppwriteGateway,
) -> Dict[str, Any]:
    """
    Never fails: the cookie is cleared whatever the remote store says, since
    the session may already be gone there.
    """
    try:
        payload = decode_session(request.cookies.get(SESSION_COOKIE_NAME))
        if payload is not None:
            outcome = await _delete_remote_session(cloud, payload.secret)
            if not outcome.ok:
                logger.warning("Session deletion error: %s", outcome.errors[0])
    except Exception as e:
        logger.error("Logout error: %s: %s", type(e).__name__, e)

    clear_session_cookie(response, cloud.settings)
    return {"message": "Logout successful"}


def status_endpoint(request: Request) -> Dict[str, bool]:
    """Reports only whether a session cookie exists. Fails to False."""
    try:
        value = request.cookies.get(SESSION_COOKIE_NAME)
        return {"hasSession": isinstance(value, str) and bool(value)}
    except Exception as e:
        logger.error("Auth status check error: %s", type(e).__name__)
        return {"hasSession": False}


async def me_endpoint(account: Dict[str, Any], cloud: AppwriteGateway) -> Dict[str, Any]:
    try:
        profile = await find_profile(cloud, account["$id"])
    except AppwriteException as e:
        logger.warning("Profile lookup failed for %s: %s", account["$id"], e.message)
        profile = None

    if profile is None:
        return {
            "id": account["$id"],
            "name": account.get("name"),
            "email": account.get("email"),
            "subjects_of_interest": [],
        }

    return {
        "id": account["$id"],
        "name": profile.get("name"),
        "email": profile.get("email"),
        "subjects_of_interest": profile.get("subjects_of_interest") or [],
    }


async def oauth_initiate_endpoint(
    request_data: OAuthRequest,
    cloud: AppwriteGateway,
) -> Dict[str, Any]:
    provider = request_data.provider
    if provider not in ALLOWED_OAUTH_PROVIDERS:
        raise ValidationError("Invalid provider. Supported providers: google, github")

    base_url = cloud.settings.base_url
    success_url = f"{base_url}/auth/oauth/callback"
    failure_url = f"{base_url}/login?error=oauth_failed"

    redirect_url = None
    try:
        redirect_url = await call(
            cloud.as_admin().account.create_o_auth2_token,
            provider=provider,
            success=success_url,
            failure=failure_url,
        )
    except Exception as e:
        logger.warning("OAuth token URL from SDK failed (%s), building it by hand", type(e).__name__)

    if not redirect_url or not isinstance(redirect_url, str):
        redirect_url = oauth_fallback_url(cloud.settings, provider, success_url, failure_url)

    return {"success": True, "redirectUrl": redirect_url}


def _registered_recently(registration: Optional[str]) -> bool:
    if not registration:
        return False
    try:
        registered_at = datetime.fromisoformat(registration.replace("Z", "+00:00"))
    except ValueError:
        return False
    if registered_at.tzinfo is None:
        registered_at = registered_at.replace(tzinfo=timezone.utc)
    age = datetime.now(timezone.utc) - registered_at
    return age.total_seconds() < NEW_USER_WINDOW_SECONDS


async def oauth_callback_endpoint(
    user_id: Optional[str],
    secret: Optional[str],
    cloud: AppwriteGateway,
) -> RedirectResponse:
    base_url = cloud.settings.base_url

    if not user_id or not secret:
        return RedirectResponse(f"{base_url}/login?error=missing_oauth_params", status_code=303)

    try:
        # --- 1. Exchange the OAuth token for a session ---
        session = await call(cloud.as_admin().account.create_session, user_id=user_id, secret=secret)

        # --- 2. Read the account through the new session ---
        user = await call(cloud.as_user(session["secret"]).account.get)
    except AppwriteException as e:
        logger.error("OAuth session creation failed. Status: %s. Message: %s", e.code, e.message)
        return RedirectResponse(f"{base_url}/login?error=oauth_session_failed", status_code=303)

    target = "/dashboard?welcome=true" if _registered_recently(user.get("registration")) else "/dashboard"
    response = RedirectResponse(f"{base_url}{target}", status_code=303)
    set_session_cookie(response, session, cloud.settings)
    return response
