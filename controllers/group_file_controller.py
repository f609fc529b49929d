import asyncio
from typing import Any, Dict, List, Optional

from pydantic import BaseModel
from appwrite.exception import AppwriteException
from appwrite.id import ID
from appwrite.query import Query as AppwriteQuery  # Alias to avoid conflict with FastAPI's Query

from core.cloud.appwrite import AppwriteGateway, call
from core.dependencies.auth import SessionContext
from core.errors.appwrite import translate_appwrite_error
from core.errors.exceptions import ForbiddenError, NotFoundError, ValidationError
from core.groups.access import require_member
from core.logging.logger import get_logger
from core.messages.system import utc_now_iso
from core.profiles.profiles import find_profile
from core.storage.files import delete_stored_file

logger = get_logger(__name__)

FILES_PAGE_SIZE = 100
UNKNOWN_UPLOADER = "Unknown"


class FileMetadataRequest(BaseModel):
    file_id: Optional[str] = None
    filename: Optional[str] = None
    original_name: Optional[str] = None
    file_type: Optional[str] = None
    file_size: Optional[int] = None
    description: Optional[str] = None


def file_projection(record: Dict[str, Any], uploader_name: str) -> Dict[str, Any]:
    return {
        "id": record.get("$id"),
        "file_id": record.get("file_id"),
        "group_id": record.get("group_id"),
        "filename": record.get("filename"),
        "original_name": record.get("original_name"),
        "file_type": record.get("file_type"),
        "file_size": record.get("file_size"),
        "description": record.get("description") or "",
        "uploaded_by": record.get("uploaded_by"),
        "uploaded_by_name": uploader_name,
        "uploaded_at": record.get("uploaded_at"),
    }


async def _uploader_name(cloud: AppwriteGateway, user_id: Optional[str]) -> str:
    if not user_id:
        return UNKNOWN_UPLOADER
    try:
        profile = await find_profile(cloud, user_id)
    except AppwriteException as e:
        logger.info("Uploader profile lookup failed for %s: %s", user_id, e.message)
        return UNKNOWN_UPLOADER
    return (profile or {}).get("name") or UNKNOWN_UPLOADER


async def list_group_files_endpoint(
    group_id: str,
    session: SessionContext,
    cloud: AppwriteGateway,
) -> List[Dict[str, Any]]:
    await require_member(cloud, group_id, session.user_id)

    settings = cloud.settings
    try:
        result = await call(
            cloud.as_admin().databases.list_documents,
            database_id=settings.appwrite_database_id,
            collection_id=settings.group_files_collection_id,
            queries=[
                AppwriteQuery.equal("group_id", group_id),
                AppwriteQuery.order_desc("uploaded_at"),
                AppwriteQuery.limit(FILES_PAGE_SIZE),
            ],
        )
    except AppwriteException as e:
        logger.error("Get group files error. Status: %s. Message: %s", e.code, e.message)
        raise translate_appwrite_error(e, "File")

    records = result.get("documents", [])

    # One lookup per distinct uploader
    uploaders = sorted({record.get("uploaded_by") for record in records if record.get("uploaded_by")})
    names = await asyncio.gather(*(_uploader_name(cloud, user_id) for user_id in uploaders))
    name_by_id = dict(zip(uploaders, names))

    return [
        file_projection(record, name_by_id.get(record.get("uploaded_by"), UNKNOWN_UPLOADER))
        for record in records
    ]


async def create_file_metadata_endpoint(
    group_id: str,
    request_data: FileMetadataRequest,
    session: SessionContext,
    cloud: AppwriteGateway,
) -> Dict[str, Any]:
    """
    Records a file the client has already uploaded to the bucket, so it shows
    up in the group's file list.
    """
    if not request_data.file_id or not request_data.filename:
        raise ValidationError("Missing required fields")

    await require_member(cloud, group_id, session.user_id)

    settings = cloud.settings
    now = utc_now_iso()
    try:
        record = await call(
            cloud.as_admin().databases.create_document,
            database_id=settings.appwrite_database_id,
            collection_id=settings.group_files_collection_id,
            document_id=ID.unique(),
            data={
                "file_id": request_data.file_id,
                "group_id": group_id,
                "uploaded_by": session.user_id,
                "filename": request_data.filename,
                "original_name": request_data.original_name,
                "file_type": request_data.file_type,
                "file_size": request_data.file_size,
                "description": request_data.description or "",
                "uploaded_at": now,
                "upload_date": now,
            },
        )
    except AppwriteException as e:
        logger.error("Create file metadata error. Status: %s. Message: %s", e.code, e.message)
        raise translate_appwrite_error(e, "File")

    logger.info("User %s added file %s to group %s", session.user_id, request_data.file_id, group_id)
    return file_projection(record, await _uploader_name(cloud, session.user_id))


async def delete_group_file_endpoint(
    group_id: str,
    record_id: str,
    session: SessionContext,
    cloud: AppwriteGateway,
) -> Dict[str, str]:
    """
    Deletes a file record of the group and, best-effort, the stored file.
    Only the uploader or the group creator may delete.
    """
    group = await require_member(cloud, group_id, session.user_id)

    settings = cloud.settings
    databases = cloud.as_admin().databases
    try:
        record = await call(
            databases.get_document,
            database_id=settings.appwrite_database_id,
            collection_id=settings.group_files_collection_id,
            document_id=record_id,
        )
    except AppwriteException as e:
        raise translate_appwrite_error(e, "File")

    if record.get("group_id") != group_id:
        raise NotFoundError("File not found")
    if session.user_id not in (record.get("uploaded_by"), group.get("creator_id")):
        raise ForbiddenError("Only the uploader or the group creator can delete this file")

    try:
        await call(
            databases.delete_document,
            database_id=settings.appwrite_database_id,
            collection_id=settings.group_files_collection_id,
            document_id=record_id,
        )
    except AppwriteException as e:
        logger.error("Delete file record error. Status: %s. Message: %s", e.code, e.message)
        raise translate_appwrite_error(e, "File")

    if record.get("file_id"):
        outcome = await delete_stored_file(cloud, record["file_id"])
        if not outcome.ok:
            logger.warning("Stored file %s was not deleted: %s", record["file_id"], outcome.errors[0])

    return {"message": "File deleted successfully"}
