import asyncio
from typing import Any, Dict, List, Optional

from pydantic import BaseModel
from appwrite.exception import AppwriteException
from appwrite.id import ID
from appwrite.query import Query as AppwriteQuery  # Alias to avoid conflict with FastAPI's Query

from core.cloud.appwrite import AppwriteGateway, call
from core.dependencies.auth import SessionContext
from core.errors.appwrite import translate_appwrite_error
from core.errors.exceptions import ConflictError, ForbiddenError, ValidationError
from core.groups.access import NOT_A_MEMBER, get_group, require_member
from core.groups.locks import group_locks
from core.groups.stats import compute_group_stats, is_member
from core.logging.logger import get_logger
from core.messages.system import build_system_message
from core.profiles.profiles import display_name, find_profile, resolve_members
from core.storage.files import delete_stored_file

logger = get_logger(__name__)

STATS_PAGE_SIZE = 1000
MAX_GROUP_NAME_LENGTH = 100
MAX_DESCRIPTION_LENGTH = 500


class CreateGroupRequest(BaseModel):
    name: Optional[str] = None
    description: Optional[str] = None
    subject: Optional[str] = None
    is_public: Optional[bool] = None


def group_projection(group: Dict[str, Any]) -> Dict[str, Any]:
    return {
        "id": group.get("$id"),
        "name": group.get("name"),
        "description": group.get("description"),
        "subject": group.get("subject"),
        "member_count": len(group.get("members") or []),
        "creator_id": group.get("creator_id"),
        "created_at": group.get("$createdAt"),
    }


async def _list_groups(cloud: AppwriteGateway, queries: List[str]) -> List[Dict[str, Any]]:
    settings = cloud.settings
    result = await call(
        cloud.as_admin().databases.list_documents,
        database_id=settings.appwrite_database_id,
        collection_id=settings.groups_collection_id,
        queries=queries,
    )
    return result.get("documents", [])


async def _save_members(cloud: AppwriteGateway, group_id: str, members: List[str]) -> None:
    settings = cloud.settings
    await call(
        cloud.as_admin().databases.update_document,
        database_id=settings.appwrite_database_id,
        collection_id=settings.groups_collection_id,
        document_id=group_id,
        data={"members": members},
    )


async def _post_system_message(cloud: AppwriteGateway, group_id: str, event_type: str, user_id: str) -> None:
    """Membership event for the group chat. Failures are logged, not raised."""
    settings = cloud.settings
    try:
        user_name = await display_name(cloud, user_id)
        await call(
            cloud.as_admin().databases.create_document,
            database_id=settings.appwrite_database_id,
            collection_id=settings.messages_collection_id,
            document_id=ID.unique(),
            data=build_system_message(group_id, event_type, user_id, user_name),
        )
    except AppwriteException as e:
        logger.warning("Failed to create %s system message for group %s: %s", event_type, group_id, e.message)


async def list_groups_endpoint(limit: int, offset: int, cloud: AppwriteGateway) -> List[Dict[str, Any]]:
    try:
        groups = await _list_groups(cloud, [
            AppwriteQuery.order_desc("$createdAt"),
            AppwriteQuery.limit(limit),
            AppwriteQuery.offset(offset),
        ])
    except AppwriteException as e:
        logger.error("Get groups error. Status: %s. Message: %s", e.code, e.message)
        raise translate_appwrite_error(e, "Group")

    return [group_projection(group) for group in groups]


async def group_stats_endpoint(session: SessionContext, cloud: AppwriteGateway) -> Dict[str, int]:
    try:
        groups = await _list_groups(cloud, [AppwriteQuery.limit(STATS_PAGE_SIZE)])
    except AppwriteException as e:
        logger.error("Get stats error. Status: %s. Message: %s", e.code, e.message)
        raise translate_appwrite_error(e, "Group")

    return compute_group_stats(groups, session.user_id)


async def my_groups_endpoint(session: SessionContext, cloud: AppwriteGateway) -> List[Dict[str, Any]]:
    try:
        groups = await _list_groups(cloud, [AppwriteQuery.limit(STATS_PAGE_SIZE)])
    except AppwriteException as e:
        raise translate_appwrite_error(e, "Group")

    joined = [group for group in groups if is_member(group, session.user_id)]

    async def creator_name(group: Dict[str, Any]) -> str:
        try:
            profile = await find_profile(cloud, group.get("creator_id"))
        except AppwriteException as e:
            logger.info("Creator profile lookup failed for group %s: %s", group.get("$id"), e.message)
            return "Unknown"
        return (profile or {}).get("name") or "Unknown"

    names = await asyncio.gather(*(creator_name(group) for group in joined))
    return [
        {
            **group_projection(group),
            "is_public": bool(group.get("is_public")),
            "creator_name": name,
            "is_member": True,
        }
        for group, name in zip(joined, names)
    ]


async def create_group_endpoint(
    request_data: CreateGroupRequest,
    session: SessionContext,
    cloud: AppwriteGateway,
) -> Dict[str, Any]:
    name = (request_data.name or "").strip()
    description = (request_data.description or "").strip()

    if not name:
        raise ValidationError("Group name is required")
    if len(name) > MAX_GROUP_NAME_LENGTH:
        raise ValidationError(f"Group name must be less than {MAX_GROUP_NAME_LENGTH} characters")
    if len(description) > MAX_DESCRIPTION_LENGTH:
        raise ValidationError(f"Description must be less than {MAX_DESCRIPTION_LENGTH} characters")

    settings = cloud.settings
    try:
        group = await call(
            cloud.as_admin().databases.create_document,
            database_id=settings.appwrite_database_id,
            collection_id=settings.groups_collection_id,
            document_id=ID.unique(),
            data={
                "name": name,
                "description": description,
                "subject": (request_data.subject or "").strip(),
                "is_public": True if request_data.is_public is None else request_data.is_public,
                "creator_id": session.user_id,
                "members": [session.user_id],
            },
        )
    except AppwriteException as e:
        logger.error("Create group error. Status: %s. Message: %s", e.code, e.message)
        raise translate_appwrite_error(e, "Group")

    logger.info("User %s created group %s", session.user_id, group.get("$id"))
    return {
        **group_projection(group),
        "is_public": bool(group.get("is_public")),
        "is_member": True,
    }


async def join_group_endpoint(group_id: str, session: SessionContext, cloud: AppwriteGateway) -> Dict[str, str]:
    user_id = session.user_id

    # Read, check and write under one lock so two joins cannot drop each other
    async with group_locks.for_group(group_id):
        group = await get_group(cloud, group_id)
        members = list(group.get("members") or [])
        if user_id in members:
            raise ConflictError("Already a member of this group")

        try:
            await _save_members(cloud, group_id, members + [user_id])
        except AppwriteException as e:
            logger.error("Join group error. Status: %s. Message: %s", e.code, e.message)
            raise translate_appwrite_error(e, "Group")

    logger.info("User %s joined group %s", user_id, group_id)
    await _post_system_message(cloud, group_id, "join", user_id)
    return {"message": "Successfully joined the group"}


async def _delete_group_documents(
    cloud: AppwriteGateway,
    collection_id: str,
    group_id: str,
) -> List[Dict[str, Any]]:
    """Deletes a group's documents in one collection and returns those deleted."""
    settings = cloud.settings
    databases = cloud.as_admin().databases
    try:
        result = await call(
            databases.list_documents,
            database_id=settings.appwrite_database_id,
            collection_id=collection_id,
            queries=[AppwriteQuery.equal("group_id", group_id), AppwriteQuery.limit(STATS_PAGE_SIZE)],
        )
    except AppwriteException as e:
        logger.warning("Could not list %s of group %s: %s", collection_id, group_id, e.message)
        return []

    deleted = []
    for document in result.get("documents", []):
        try:
            await call(
                databases.delete_document,
                database_id=settings.appwrite_database_id,
                collection_id=collection_id,
                document_id=document["$id"],
            )
            deleted.append(document)
        except AppwriteException as e:
            logger.warning("Error deleting %s document %s: %s", collection_id, document.get("$id"), e.message)
    return deleted


async def _delete_group_data(cloud: AppwriteGateway, group_id: str) -> None:
    """Messages, file records and their stored files of a group being deleted."""
    settings = cloud.settings
    await _delete_group_documents(cloud, settings.messages_collection_id, group_id)

    file_records = await _delete_group_documents(cloud, settings.group_files_collection_id, group_id)
    for record in file_records:
        if not record.get("file_id"):
            continue
        outcome = await delete_stored_file(cloud, record["file_id"])
        if not outcome.ok:
            logger.warning("Error deleting stored file %s: %s", record["file_id"], outcome.errors[0])


async def leave_group_endpoint(group_id: str, session: SessionContext, cloud: AppwriteGateway) -> Dict[str, str]:
    user_id = session.user_id
    settings = cloud.settings

    async with group_locks.for_group(group_id):
        group = await get_group(cloud, group_id)
        members = list(group.get("members") or [])

        if user_id not in members:
            raise ConflictError("You are not a member of this group")
        if group.get("creator_id") == user_id and len(members) > 1:
            raise ConflictError("Group creator cannot leave while there are other members")

        remaining = [member for member in members if member != user_id]

        try:
            if remaining:
                await _save_members(cloud, group_id, remaining)
            else:
                logger.info("Deleting group %s with its messages and files", group_id)
                await _delete_group_data(cloud, group_id)
                await call(
                    cloud.as_admin().databases.delete_document,
                    database_id=settings.appwrite_database_id,
                    collection_id=settings.groups_collection_id,
                    document_id=group_id,
                )
        except AppwriteException as e:
            logger.error("Leave group error. Status: %s. Message: %s", e.code, e.message)
            raise translate_appwrite_error(e, "Group")

    if not remaining:
        group_locks.discard(group_id)
        return {
            "message": "Successfully left the group. Group and all related data were deleted "
                       "as it had no remaining members.",
        }

    await _post_system_message(cloud, group_id, "leave", user_id)
    return {"message": "Successfully left the group"}


async def group_members_endpoint(group_id: str, session: SessionContext, cloud: AppwriteGateway) -> List[Dict[str, Any]]:
    group = await require_member(cloud, group_id, session.user_id)

    outcome = await resolve_members(cloud, group, cloud.settings.member_lookup_concurrency)
    if not outcome.ok:
        logger.warning("Group %s: %d member profile(s) could not be loaded", group_id, len(outcome.errors))
    return outcome.value or []


async def _count_group_documents(cloud: AppwriteGateway, collection_id: str, group_id: str) -> int:
    settings = cloud.settings
    result = await call(
        cloud.as_admin().databases.list_documents,
        database_id=settings.appwrite_database_id,
        collection_id=collection_id,
        queries=[AppwriteQuery.equal("group_id", group_id), AppwriteQuery.limit(1)],
    )
    return int(result.get("total") or 0)


async def group_detail_endpoint(group_id: str, session: SessionContext, cloud: AppwriteGateway) -> Dict[str, Any]:
    """
    One group with its member IDs and message/file counts. Public groups are
    visible to any signed-in user, private ones to members only.
    """
    group = await get_group(cloud, group_id)
    member = is_member(group, session.user_id)
    if not group.get("is_public") and not member:
        raise ForbiddenError(NOT_A_MEMBER)

    settings = cloud.settings
    try:
        message_count, file_count = await asyncio.gather(
            _count_group_documents(cloud, settings.messages_collection_id, group_id),
            _count_group_documents(cloud, settings.group_files_collection_id, group_id),
        )
    except AppwriteException as e:
        logger.error("Group detail counts failed. Status: %s. Message: %s", e.code, e.message)
        raise translate_appwrite_error(e, "Group")

    return {
        **group_projection(group),
        "is_public": bool(group.get("is_public")),
        "members": list(group.get("members") or []),
        "is_member": member,
        "message_count": message_count,
        "file_count": file_count,
    }
