import asyncio
from typing import Any, Dict, List, Optional

from appwrite.exception import AppwriteException

from core.cloud.appwrite import AppwriteGateway, call
from core.logging.logger import get_logger
from core.results.outcome import Outcome

logger = get_logger(__name__)


async def get_profile(cloud: AppwriteGateway, user_id: str) -> Dict[str, Any]:
    """Profile document for a user (document ID == account ID). Raises AppwriteException."""
    settings = cloud.settings
    return await call(
        cloud.as_admin().databases.get_document,
        database_id=settings.appwrite_database_id,
        collection_id=settings.user_profiles_collection_id,
        document_id=user_id,
    )


async def find_profile(cloud: AppwriteGateway, user_id: str) -> Optional[Dict[str, Any]]:
    """Like get_profile, but an absent profile is None."""
    try:
        return await get_profile(cloud, user_id)
    except AppwriteException as e:
        if e.code == 404:
            return None
        raise


async def display_name(cloud: AppwriteGateway, user_id: str, fallback: str = "User") -> str:
    """
    Name shown for a user in messages: profile name first, then the account
    name, then `fallback`.
    """
    try:
        profile = await get_profile(cloud, user_id)
        if profile.get("name"):
            return profile["name"]
    except AppwriteException as e:
        logger.info("Profile not found for %s (status %s), using account name", user_id, e.code)

    try:
        account = await call(cloud.as_admin().users.get, user_id=user_id)
        return account.get("name") or fallback
    except AppwriteException as e:
        logger.warning("Account lookup failed for %s: %s", user_id, e.message)
        return fallback


def member_projection(profile: Dict[str, Any], member_id: str, creator_id: Optional[str]) -> Dict[str, Any]:
    return {
        "id": profile.get("$id"),
        "user_id": profile.get("user_id") or profile.get("userId") or member_id,
        "name": profile.get("name") or profile.get("display_name"),
        "email": profile.get("email"),
        "role": "creator" if member_id == creator_id else "member",
        "joined_at": profile.get("created_at"),
    }


async def resolve_members(
    cloud: AppwriteGateway,
    group: Dict[str, Any],
    concurrency: int = 5,
) -> Outcome[List[Dict[str, Any]]]:
    """
    Looks up every member's profile with at most `concurrency` calls in
    flight. Members whose lookup fails are left out; the result keeps the
    order of `members`.
    """
    member_ids: List[str] = list(group.get("members") or [])
    creator_id = group.get("creator_id")
    semaphore = asyncio.Semaphore(max(1, concurrency))

    async def lookup(member_id: str) -> Optional[Dict[str, Any]]:
        async with semaphore:
            return await get_profile(cloud, member_id)

    results = await asyncio.gather(
        *(lookup(member_id) for member_id in member_ids),
        return_exceptions=True,
    )

    members: List[Dict[str, Any]] = []
    errors: List[str] = []
    for member_id, result in zip(member_ids, results):
        if isinstance(result, Exception):
            logger.warning("Error fetching profile for member %s: %s", member_id, result)
            errors.append(member_id)
            continue
        if isinstance(result, BaseException):
            raise result
        members.append(member_projection(result, member_id, creator_id))

    if errors:
        return Outcome.partial(members, errors)
    return Outcome.success(members)


async def add_study_minutes(cloud: AppwriteGateway, user_id: str, minutes: int) -> Outcome[int]:
    """
    Adds to the profile's `totalStudyMinutes` and returns the new total. A
    user without a profile is a failure outcome, not an error.
    """
    try:
        profile = await find_profile(cloud, user_id)
        if profile is None:
            return Outcome.failure(f"No profile for {user_id}")

        total = int(profile.get("totalStudyMinutes") or 0) + minutes
        settings = cloud.settings
        await call(
            cloud.as_admin().databases.update_document,
            database_id=settings.appwrite_database_id,
            collection_id=settings.user_profiles_collection_id,
            document_id=user_id,
            data={"totalStudyMinutes": total},
        )
    except AppwriteException as e:
        return Outcome.failure(f"{e.code}: {e.message}")
    return Outcome.success(total)
