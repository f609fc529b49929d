from typing import Any, Dict, Optional

from pydantic import BaseModel
from appwrite.exception import AppwriteException
from appwrite.id import ID
from appwrite.query import Query as AppwriteQuery  # Alias to avoid conflict with FastAPI's Query

from core.cloud.appwrite import AppwriteGateway, call
from core.dependencies.auth import SessionContext
from core.errors.appwrite import translate_appwrite_error
from core.errors.exceptions import ForbiddenError, ValidationError
from core.logging.logger import get_logger
from core.messages.system import utc_now_iso
from core.profiles.profiles import add_study_minutes

logger = get_logger(__name__)

DEFAULT_BACKGROUND = "creative_flow"


class FocusSessionCreateRequest(BaseModel):
    duration: Optional[int] = None
    completedMinutes: Optional[int] = None
    backgroundId: Optional[str] = None
    isCompleted: bool = False


class FocusSessionUpdateRequest(BaseModel):
    sessionId: Optional[str] = None
    completedMinutes: Optional[int] = None
    isCompleted: Optional[bool] = None


def focus_session_projection(focus_session: Dict[str, Any]) -> Dict[str, Any]:
    return {
        "id": focus_session.get("$id"),
        "duration": focus_session.get("duration"),
        "completedMinutes": focus_session.get("completedMinutes"),
        "backgroundId": focus_session.get("backgroundId"),
        "isCompleted": bool(focus_session.get("isCompleted")),
        "createdAt": focus_session.get("createdAt"),
    }


async def _credit_study_minutes(cloud: AppwriteGateway, user_id: str, minutes: int) -> None:
    """Study time goes to the profile best-effort; the session is saved regardless."""
    if minutes <= 0:
        return
    outcome = await add_study_minutes(cloud, user_id, minutes)
    if not outcome.ok:
        logger.warning("Study minutes not added for %s: %s", user_id, outcome.errors[0])


async def list_focus_sessions_endpoint(
    limit: int,
    offset: int,
    session: SessionContext,
    cloud: AppwriteGateway,
) -> Dict[str, Any]:
    settings = cloud.settings
    try:
        result = await call(
            cloud.as_admin().databases.list_documents,
            database_id=settings.appwrite_database_id,
            collection_id=settings.focus_sessions_collection_id,
            queries=[
                AppwriteQuery.equal("userId", session.user_id),
                AppwriteQuery.order_desc("createdAt"),
                AppwriteQuery.limit(limit),
                AppwriteQuery.offset(offset),
            ],
        )
    except AppwriteException as e:
        logger.error("Fetch focus sessions error. Status: %s. Message: %s", e.code, e.message)
        raise translate_appwrite_error(e, "Focus session")

    return {
        "total": result.get("total", 0),
        "sessions": [focus_session_projection(item) for item in result.get("documents", [])],
    }


async def create_focus_session_endpoint(
    request_data: FocusSessionCreateRequest,
    session: SessionContext,
    cloud: AppwriteGateway,
) -> Dict[str, Any]:
    if not request_data.duration or request_data.completedMinutes is None:
        raise ValidationError("Duration and completedMinutes are required")
    if request_data.duration < 0 or request_data.completedMinutes < 0:
        raise ValidationError("Duration and completedMinutes cannot be negative")

    settings = cloud.settings
    try:
        focus_session = await call(
            cloud.as_admin().databases.create_document,
            database_id=settings.appwrite_database_id,
            collection_id=settings.focus_sessions_collection_id,
            document_id=ID.unique(),
            data={
                "userId": session.user_id,
                "duration": request_data.duration,
                "completedMinutes": request_data.completedMinutes,
                "backgroundId": request_data.backgroundId or DEFAULT_BACKGROUND,
                "isCompleted": request_data.isCompleted,
                "createdAt": utc_now_iso(),
            },
        )
    except AppwriteException as e:
        logger.error("Create focus session error. Status: %s. Message: %s", e.code, e.message)
        raise translate_appwrite_error(e, "Focus session")

    await _credit_study_minutes(cloud, session.user_id, request_data.completedMinutes)
    return focus_session_projection(focus_session)


async def update_focus_session_endpoint(
    request_data: FocusSessionUpdateRequest,
    session: SessionContext,
    cloud: AppwriteGateway,
) -> Dict[str, Any]:
    """
    Progress update for a running session. Only the increase over the stored
    `completedMinutes` is credited to the profile.
    """
    if not request_data.sessionId:
        raise ValidationError("Session ID is required")
    if request_data.completedMinutes is None:
        raise ValidationError("completedMinutes is required")

    settings = cloud.settings
    databases = cloud.as_admin().databases
    try:
        focus_session = await call(
            databases.get_document,
            database_id=settings.appwrite_database_id,
            collection_id=settings.focus_sessions_collection_id,
            document_id=request_data.sessionId,
        )
    except AppwriteException as e:
        raise translate_appwrite_error(e, "Focus session")

    if focus_session.get("userId") != session.user_id:
        raise ForbiddenError("Not your focus session")

    added = request_data.completedMinutes - int(focus_session.get("completedMinutes") or 0)
    is_completed = focus_session.get("isCompleted") if request_data.isCompleted is None else request_data.isCompleted

    try:
        updated = await call(
            databases.update_document,
            database_id=settings.appwrite_database_id,
            collection_id=settings.focus_sessions_collection_id,
            document_id=request_data.sessionId,
            data={
                "completedMinutes": request_data.completedMinutes,
                "isCompleted": bool(is_completed),
            },
        )
    except AppwriteException as e:
        logger.error("Update focus session error. Status: %s. Message: %s", e.code, e.message)
        raise translate_appwrite_error(e, "Focus session")

    await _credit_study_minutes(cloud, session.user_id, added)
    return focus_session_projection(updated)
