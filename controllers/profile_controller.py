from typing import Any, Dict, List, Optional

from pydantic import BaseModel
from appwrite.exception import AppwriteException

from core.cloud.appwrite import AppwriteGateway, call
from core.dependencies.auth import SessionContext
from core.errors.appwrite import translate_appwrite_error
from core.errors.exceptions import ValidationError
from core.logging.logger import get_logger
from core.messages.system import utc_now_iso
from core.profiles.profiles import find_profile

logger = get_logger(__name__)


class ProfileUpdateRequest(BaseModel):
    name: Optional[str] = None
    email: Optional[str] = None
    subjects_of_interest: Optional[List[str]] = None


def _profile_summary(profile: Dict[str, Any]) -> Dict[str, Any]:
    return {
        "id": profile.get("$id"),
        "name": profile.get("name"),
        "email": profile.get("email"),
        "subjects_of_interest": profile.get("subjects_of_interest") or [],
    }


async def get_profile_endpoint(session: SessionContext, cloud: AppwriteGateway) -> Dict[str, Any]:
    user_id = session.user_id
    try:
        profile = await find_profile(cloud, user_id)
    except AppwriteException as e:
        raise translate_appwrite_error(e, "Profile")

    if profile is None:
        return {
            "id": None,
            "userId": user_id,
            "name": "",
            "email": "",
            "subjects_of_interest": [],
            "totalStudyMinutes": 0,
        }

    return {
        "id": profile.get("$id"),
        "userId": profile.get("user_id") or profile.get("userId") or user_id,
        "name": profile.get("name"),
        "email": profile.get("email"),
        "subjects_of_interest": profile.get("subjects_of_interest") or [],
        "totalStudyMinutes": profile.get("totalStudyMinutes") or 0,
    }


async def update_profile_endpoint(
    request_data: ProfileUpdateRequest,
    session: SessionContext,
    cloud: AppwriteGateway,
) -> Dict[str, Any]:
    name = (request_data.name or "").strip()
    email = (request_data.email or "").strip().lower()
    if not name:
        raise ValidationError("Name is required")
    if not email:
        raise ValidationError("Email is required")

    admin = cloud.as_admin()
    settings = cloud.settings
    user_id = session.user_id
    data = {
        "user_id": user_id,
        "name": name,
        "email": email,
        "subjects_of_interest": request_data.subjects_of_interest or [],
    }

    try:
        existing = await find_profile(cloud, user_id)

        if existing is None:
            profile = await call(
                admin.databases.create_document,
                database_id=settings.appwrite_database_id,
                collection_id=settings.user_profiles_collection_id,
                document_id=user_id,
                data={**data, "created_at": utc_now_iso()},
            )
            return {"message": "Profile created successfully", "profile": _profile_summary(profile)}

        profile = await call(
            admin.databases.update_document,
            database_id=settings.appwrite_database_id,
            collection_id=settings.user_profiles_collection_id,
            document_id=user_id,
            data=data,
        )
    except AppwriteException as e:
        logger.error("Profile update failed. Status: %s. Message: %s", e.code, e.message)
        raise translate_appwrite_error(e, "Profile")

    # Keep the account email in step with the profile (best-effort)
    try:
        account = await call(admin.users.get, user_id=user_id)
        if account.get("email") != email:
            await call(admin.users.update_email, user_id=user_id, email=email)
    except AppwriteException as e:
        logger.warning("Account email update failed for %s: %s", user_id, e.message)

    return {"message": "Profile updated successfully", "profile": _profile_summary(profile)}
