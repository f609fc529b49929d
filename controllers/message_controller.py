from typing import Any, Dict, List, Optional

from pydantic import BaseModel
from appwrite.exception import AppwriteException
from appwrite.id import ID
from appwrite.query import Query as AppwriteQuery  # Alias to avoid conflict with FastAPI's Query

from core.cloud.appwrite import AppwriteGateway, call
from core.dependencies.auth import SessionContext
from core.errors.appwrite import translate_appwrite_error
from core.errors.exceptions import ValidationError
from core.groups.access import require_member
from core.groups.stats import is_member
from core.logging.logger import get_logger
from core.messages.system import build_system_message, utc_now_iso
from core.profiles.profiles import display_name

logger = get_logger(__name__)

MAX_MESSAGE_LENGTH = 1000
GROUPS_PAGE_SIZE = 1000


class SystemMessageRequest(BaseModel):
    type: Optional[str] = None
    userId: Optional[str] = None
    userName: Optional[str] = None


class SendMessageRequest(BaseModel):
    content: Optional[str] = None


def message_projection(message: Dict[str, Any]) -> Dict[str, Any]:
    return {
        "id": message.get("$id"),
        "content": message.get("content"),
        "group_id": message.get("group_id"),
        "sender_id": message.get("sender_id"),
        "sender_name": message.get("sender_name"),
        "timestamp": message.get("timestamp"),
        "is_system_message": bool(message.get("is_system_message")),
    }


async def system_message_endpoint(
    group_id: str,
    request_data: SystemMessageRequest,
    cloud: AppwriteGateway,
) -> Dict[str, Any]:
    if not request_data.type:
        raise ValidationError("Message type is required")

    event_type = request_data.type
    data = build_system_message(group_id, event_type, request_data.userId, request_data.userName)
    settings = cloud.settings

    try:
        message = await call(
            cloud.as_admin().databases.create_document,
            database_id=settings.appwrite_database_id,
            collection_id=settings.messages_collection_id,
            document_id=ID.unique(),
            data=data,
        )
    except AppwriteException as e:
        logger.error("Create system message error. Status: %s. Message: %s", e.code, e.message)
        raise translate_appwrite_error(e, "Message")

    return {
        "id": message.get("$id"),
        "content": message.get("content"),
        "group_id": message.get("group_id"),
        "sender_id": message.get("sender_id"),
        "sender_name": message.get("sender_name"),
        "timestamp": message.get("timestamp"),
        "is_system_message": True,
        "system_message_type": event_type,
    }


async def list_messages_endpoint(
    group_id: str,
    limit: int,
    offset: int,
    session: SessionContext,
    cloud: AppwriteGateway,
) -> List[Dict[str, Any]]:
    await require_member(cloud, group_id, session.user_id)

    settings = cloud.settings
    try:
        result = await call(
            cloud.as_admin().databases.list_documents,
            database_id=settings.appwrite_database_id,
            collection_id=settings.messages_collection_id,
            queries=[
                AppwriteQuery.equal("group_id", group_id),
                AppwriteQuery.order_asc("timestamp"),
                AppwriteQuery.limit(limit),
                AppwriteQuery.offset(offset),
            ],
        )
    except AppwriteException as e:
        logger.error("Get messages error. Status: %s. Message: %s", e.code, e.message)
        raise translate_appwrite_error(e, "Message")

    return [message_projection(message) for message in result.get("documents", [])]


async def send_message_endpoint(
    group_id: str,
    request_data: SendMessageRequest,
    session: SessionContext,
    cloud: AppwriteGateway,
) -> Dict[str, Any]:
    content = (request_data.content or "").strip()
    if not content:
        raise ValidationError("Message content is required")
    if len(content) > MAX_MESSAGE_LENGTH:
        raise ValidationError(f"Message must be less than {MAX_MESSAGE_LENGTH} characters")

    await require_member(cloud, group_id, session.user_id)
    sender_name = await display_name(cloud, session.user_id)

    settings = cloud.settings
    try:
        message = await call(
            cloud.as_admin().databases.create_document,
            database_id=settings.appwrite_database_id,
            collection_id=settings.messages_collection_id,
            document_id=ID.unique(),
            data={
                "content": content,
                "group_id": group_id,
                "sender_id": session.user_id,
                "sender_name": sender_name,
                "timestamp": utc_now_iso(),
                "is_system_message": False,
            },
        )
    except AppwriteException as e:
        logger.error("Create message error. Status: %s. Message: %s", e.code, e.message)
        raise translate_appwrite_error(e, "Message")

    return message_projection(message)


async def message_stats_endpoint(session: SessionContext, cloud: AppwriteGateway) -> Dict[str, int]:
    """Messages the caller has sent and the groups they belong to."""
    settings = cloud.settings
    databases = cloud.as_admin().databases
    user_id = session.user_id

    try:
        sent = await call(
            databases.list_documents,
            database_id=settings.appwrite_database_id,
            collection_id=settings.messages_collection_id,
            queries=[AppwriteQuery.equal("sender_id", user_id), AppwriteQuery.limit(1)],
        )
        groups = await call(
            databases.list_documents,
            database_id=settings.appwrite_database_id,
            collection_id=settings.groups_collection_id,
            queries=[AppwriteQuery.limit(GROUPS_PAGE_SIZE)],
        )
    except AppwriteException as e:
        logger.error("Message stats error. Status: %s. Message: %s", e.code, e.message)
        raise translate_appwrite_error(e, "Message")

    message_count = int(sent.get("total") or 0)
    groups_joined = sum(1 for group in groups.get("documents", []) if is_member(group, user_id))

    return {
        "messagesSent": message_count,
        "groupsJoined": groups_joined,
        "total_messages": message_count,
        "groups_joined": groups_joined,
        "active_conversations": groups_joined,
    }
