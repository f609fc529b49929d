from typing import Any, Dict

from appwrite.exception import AppwriteException

from core.cloud.appwrite import AppwriteGateway, call
from core.errors.appwrite import translate_appwrite_error
from core.errors.exceptions import ForbiddenError
from core.groups.stats import is_member

NOT_A_MEMBER = "Not a member of this group"


async def get_group(cloud: AppwriteGateway, group_id: str) -> Dict[str, Any]:
    """Group document; a missing group is NotFoundError("Group not found")."""
    settings = cloud.settings
    try:
        return await call(
            cloud.as_admin().databases.get_document,
            database_id=settings.appwrite_database_id,
            collection_id=settings.groups_collection_id,
            document_id=group_id,
        )
    except AppwriteException as e:
        raise translate_appwrite_error(e, "Group")


async def require_member(cloud: AppwriteGateway, group_id: str, user_id: str) -> Dict[str, Any]:
    """
    Group-scoped reads and writes (members, messages, files) are for
    members only, whether or not the group is public.
    """
    group = await get_group(cloud, group_id)
    if not is_member(group, user_id):
        raise ForbiddenError(NOT_A_MEMBER)
    return group
