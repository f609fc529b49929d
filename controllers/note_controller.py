from typing import Any, Dict, List, Optional

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

logger = get_logger(__name__)

NOTE_SOURCE_TYPES = ("pdf", "youtube", "manual")


class NoteCreateRequest(BaseModel):
    title: Optional[str] = None
    content: Optional[str] = None
    source_type: Optional[str] = None
    source_url: Optional[str] = None
    file_id: Optional[str] = None
    tags: Optional[List[str]] = None


class NoteUpdateRequest(BaseModel):
    noteId: Optional[str] = None
    title: Optional[str] = None
    content: Optional[str] = None
    tags: Optional[List[str]] = None


def note_projection(note: Dict[str, Any]) -> Dict[str, Any]:
    return {
        "id": note.get("$id"),
        "title": note.get("title"),
        "content": note.get("content"),
        "source_type": note.get("source_type"),
        "source_url": note.get("source_url"),
        "file_id": note.get("file_id"),
        "tags": note.get("tags") or [],
        "created_at": note.get("created_at"),
        "updated_at": note.get("updated_at"),
    }


async def _owned_note(cloud: AppwriteGateway, note_id: str, user_id: str) -> Dict[str, Any]:
    settings = cloud.settings
    try:
        note = await call(
            cloud.as_admin().databases.get_document,
            database_id=settings.appwrite_database_id,
            collection_id=settings.personal_notes_collection_id,
            document_id=note_id,
        )
    except AppwriteException as e:
        raise translate_appwrite_error(e, "Note")

    if note.get("user_id") != user_id:
        raise ForbiddenError("You don't have permission to modify this note")
    return note


async def list_notes_endpoint(
    source_type: Optional[str],
    limit: int,
    offset: int,
    session: SessionContext,
    cloud: AppwriteGateway,
) -> Dict[str, Any]:
    queries = [
        AppwriteQuery.equal("user_id", session.user_id),
        AppwriteQuery.order_desc("created_at"),
        AppwriteQuery.limit(limit),
        AppwriteQuery.offset(offset),
    ]
    # "all" means no filter
    if source_type and source_type != "all":
        queries.append(AppwriteQuery.equal("source_type", source_type))

    settings = cloud.settings
    try:
        result = await call(
            cloud.as_admin().databases.list_documents,
            database_id=settings.appwrite_database_id,
            collection_id=settings.personal_notes_collection_id,
            queries=queries,
        )
    except AppwriteException as e:
        logger.error("Fetch notes error. Status: %s. Message: %s", e.code, e.message)
        raise translate_appwrite_error(e, "Note")

    return {
        "success": True,
        "notes": [note_projection(note) for note in result.get("documents", [])],
        "total": result.get("total", 0),
    }


async def create_note_endpoint(
    request_data: NoteCreateRequest,
    session: SessionContext,
    cloud: AppwriteGateway,
) -> Dict[str, Any]:
    if not request_data.title or not request_data.content or not request_data.source_type:
        raise ValidationError("Title, content, and source_type are required")
    if request_data.source_type not in NOTE_SOURCE_TYPES:
        raise ValidationError(f"Invalid source_type. Must be one of: {', '.join(NOTE_SOURCE_TYPES)}")

    settings = cloud.settings
    now = utc_now_iso()
    try:
        note = await call(
            cloud.as_admin().databases.create_document,
            database_id=settings.appwrite_database_id,
            collection_id=settings.personal_notes_collection_id,
            document_id=ID.unique(),
            data={
                "user_id": session.user_id,
                "title": request_data.title,
                "content": request_data.content,
                "source_type": request_data.source_type,
                "source_url": request_data.source_url or None,
                "file_id": request_data.file_id or None,
                "tags": request_data.tags or [],
                "created_at": now,
                "updated_at": now,
            },
        )
    except AppwriteException as e:
        logger.error("Create note error. Status: %s. Message: %s", e.code, e.message)
        raise translate_appwrite_error(e, "Note")

    return {"success": True, "note": note_projection(note)}


async def update_note_endpoint(
    request_data: NoteUpdateRequest,
    session: SessionContext,
    cloud: AppwriteGateway,
) -> Dict[str, Any]:
    if not request_data.noteId:
        raise ValidationError("Note ID is required")

    await _owned_note(cloud, request_data.noteId, session.user_id)

    # Only the fields the client sent change
    data: Dict[str, Any] = {"updated_at": utc_now_iso()}
    for name in ("title", "content", "tags"):
        value = getattr(request_data, name)
        if value is not None:
            data[name] = value

    settings = cloud.settings
    try:
        note = await call(
            cloud.as_admin().databases.update_document,
            database_id=settings.appwrite_database_id,
            collection_id=settings.personal_notes_collection_id,
            document_id=request_data.noteId,
            data=data,
        )
    except AppwriteException as e:
        logger.error("Update note error. Status: %s. Message: %s", e.code, e.message)
        raise translate_appwrite_error(e, "Note")

    return {"success": True, "note": note_projection(note)}


async def delete_note_endpoint(
    note_id: Optional[str],
    session: SessionContext,
    cloud: AppwriteGateway,
) -> Dict[str, Any]:
    if not note_id:
        raise ValidationError("Note ID is required")

    await _owned_note(cloud, note_id, session.user_id)

    settings = cloud.settings
    try:
        await call(
            cloud.as_admin().databases.delete_document,
            database_id=settings.appwrite_database_id,
            collection_id=settings.personal_notes_collection_id,
            document_id=note_id,
        )
    except AppwriteException as e:
        logger.error("Delete note error. Status: %s. Message: %s", e.code, e.message)
        raise translate_appwrite_error(e, "Note")

    return {"success": True, "message": "Note deleted successfully"}
