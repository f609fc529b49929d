from contextlib import asynccontextmanager
from typing import Any, Dict, Optional

from fastapi import FastAPI, Body, Depends, Path, Query, Request, Response
from fastapi.middleware.cors import CORSMiddleware
from pydantic import ValidationError as PydanticValidationError

from controllers.auth_controller import (
    LoginRequest,
    OAuthRequest,
    RegisterRequest,
    login_endpoint,
    logout_endpoint,
    me_endpoint,
    oauth_callback_endpoint,
    oauth_initiate_endpoint,
    register_endpoint,
    status_endpoint,
)
from controllers.focus_controller import (
    FocusSessionCreateRequest,
    FocusSessionUpdateRequest,
    create_focus_session_endpoint,
    list_focus_sessions_endpoint,
    update_focus_session_endpoint,
)
from controllers.group_controller import (
    CreateGroupRequest,
    create_group_endpoint,
    group_detail_endpoint,
    group_members_endpoint,
    group_stats_endpoint,
    join_group_endpoint,
    leave_group_endpoint,
    list_groups_endpoint,
    my_groups_endpoint,
)
from controllers.group_file_controller import (
    FileMetadataRequest,
    create_file_metadata_endpoint,
    delete_group_file_endpoint,
    list_group_files_endpoint,
)
from controllers.message_controller import (
    SendMessageRequest,
    SystemMessageRequest,
    list_messages_endpoint,
    message_stats_endpoint,
    send_message_endpoint,
    system_message_endpoint,
)
from controllers.note_controller import (
    NoteCreateRequest,
    NoteUpdateRequest,
    create_note_endpoint,
    delete_note_endpoint,
    list_notes_endpoint,
    update_note_endpoint,
)
from controllers.profile_controller import ProfileUpdateRequest, get_profile_endpoint, update_profile_endpoint
from controllers.storage_controller import FILE_DOWNLOAD, FILE_VIEW, file_redirect_endpoint
from core.cloud.appwrite import AppwriteGateway, get_appwrite
from core.config.settings import get_settings
from core.dependencies.auth import SessionContext, get_current_account, require_session
from core.errors.handlers import register_exception_handlers
from core.logging.logger import configure_logging, get_logger

# Import environment variables
from dotenv import load_dotenv
load_dotenv()

logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(_app: FastAPI):
    # Fails fast when a required variable is missing
    settings = get_settings()
    configure_logging(settings.log_level)
    logger.info("GenieLearn API starting (environment: %s)", settings.environment)
    yield
    logger.info("GenieLearn API shutting down")


# Initialize FastAPI app
app = FastAPI(
    title="GenieLearn API",
    description="Study groups, messages, notes and files for GenieLearn, backed by Appwrite",
    version="0.1.0",
    lifespan=lifespan,
)

register_exception_handlers(app)


def _cors_origins():
    try:
        return get_settings().cors_origins
    except PydanticValidationError:
        # Startup reports the configuration problem
        return ["*"]


app.add_middleware(
    CORSMiddleware,
    allow_origins=_cors_origins(),
    allow_credentials=True, # The session cookie must travel with requests
    allow_methods=["*"],
    allow_headers=["*"],
)


# Root endpoint
@app.get("/")
async def root():
    return {"message": "Welcome to GenieLearn API"}


# ======================================
# Auth
# ======================================

@app.post("/auth/login")
async def login(
        response: Response,
        request_data: LoginRequest = Body(...),
        cloud: AppwriteGateway = Depends(get_appwrite),
    ):
    return await login_endpoint(request_data, response, cloud)


@app.post("/auth/register")
async def register(
        request_data: RegisterRequest = Body(...),
        cloud: AppwriteGateway = Depends(get_appwrite),
    ):
    return await register_endpoint(request_data, cloud)


@app.post("/auth/logout")
async def logout(
        request: Request,
        response: Response,
        cloud: AppwriteGateway = Depends(get_appwrite),
    ):
    return await logout_endpoint(request, response, cloud)


@app.get("/auth/status")
async def auth_status(request: Request):
    return status_endpoint(request)


@app.get("/auth/me")
async def me(
        account: Dict[str, Any] = Depends(get_current_account),
        cloud: AppwriteGateway = Depends(get_appwrite),
    ):
    return await me_endpoint(account, cloud)


@app.post("/auth/oauth")
async def oauth_initiate(
        request_data: OAuthRequest = Body(...),
        cloud: AppwriteGateway = Depends(get_appwrite),
    ):
    return await oauth_initiate_endpoint(request_data, cloud)


# OAuth providers come back with a GET; some clients post the token instead
@app.api_route("/auth/oauth/callback", methods=["GET", "POST"])
async def oauth_callback(
        request: Request,
        userId: Optional[str] = Query(None),
        secret: Optional[str] = Query(None),
        cloud: AppwriteGateway = Depends(get_appwrite),
    ):
    if (not userId or not secret) and request.method == "POST":
        try:
            body = await request.json()
        except ValueError:
            body = {}
        if isinstance(body, dict):
            userId = userId or body.get("userId")
            secret = secret or body.get("secret")
    return await oauth_callback_endpoint(userId, secret, cloud)


@app.get("/auth/profile")
async def get_profile(
        session: SessionContext = Depends(require_session),
        cloud: AppwriteGateway = Depends(get_appwrite),
    ):
    return await get_profile_endpoint(session, cloud)


@app.put("/auth/profile")
async def update_profile(
        request_data: ProfileUpdateRequest = Body(...),
        session: SessionContext = Depends(require_session),
        cloud: AppwriteGateway = Depends(get_appwrite),
    ):
    return await update_profile_endpoint(request_data, session, cloud)


# ======================================
# Groups
# ======================================

@app.get("/groups")
async def list_groups(
        limit: int = Query(20, ge=1, le=100, description="Page size."),
        offset: int = Query(0, ge=0, description="Number of groups to skip."),
        cloud: AppwriteGateway = Depends(get_appwrite),
    ):
    return await list_groups_endpoint(limit, offset, cloud)


@app.post("/groups")
async def create_group(
        request_data: CreateGroupRequest = Body(...),
        session: SessionContext = Depends(require_session),
        cloud: AppwriteGateway = Depends(get_appwrite),
    ):
    return await create_group_endpoint(request_data, session, cloud)


@app.get("/groups/stats")
async def group_stats(
        session: SessionContext = Depends(require_session),
        cloud: AppwriteGateway = Depends(get_appwrite),
    ):
    return await group_stats_endpoint(session, cloud)


@app.get("/groups/mine")
async def my_groups(
        session: SessionContext = Depends(require_session),
        cloud: AppwriteGateway = Depends(get_appwrite),
    ):
    return await my_groups_endpoint(session, cloud)


@app.get("/groups/{group_id}")
async def group_detail(
        group_id: str = Path(..., description="The Appwrite document ID of the group."),
        session: SessionContext = Depends(require_session),
        cloud: AppwriteGateway = Depends(get_appwrite),
    ):
    return await group_detail_endpoint(group_id, session, cloud)


@app.post("/groups/{group_id}/join")
async def join_group(
        group_id: str = Path(..., description="The Appwrite document ID of the group."),
        session: SessionContext = Depends(require_session),
        cloud: AppwriteGateway = Depends(get_appwrite),
    ):
    return await join_group_endpoint(group_id, session, cloud)


@app.post("/groups/{group_id}/leave")
async def leave_group(
        group_id: str = Path(...),
        session: SessionContext = Depends(require_session),
        cloud: AppwriteGateway = Depends(get_appwrite),
    ):
    return await leave_group_endpoint(group_id, session, cloud)


@app.get("/groups/{group_id}/members")
async def group_members(
        group_id: str = Path(...),
        session: SessionContext = Depends(require_session),
        cloud: AppwriteGateway = Depends(get_appwrite),
    ):
    return await group_members_endpoint(group_id, session, cloud)


@app.get("/groups/{group_id}/messages")
async def list_messages(
        group_id: str = Path(...),
        limit: int = Query(50, ge=1, le=100),
        offset: int = Query(0, ge=0),
        session: SessionContext = Depends(require_session),
        cloud: AppwriteGateway = Depends(get_appwrite),
    ):
    return await list_messages_endpoint(group_id, limit, offset, session, cloud)


@app.post("/groups/{group_id}/messages")
async def send_message(
        group_id: str = Path(...),
        request_data: SendMessageRequest = Body(...),
        session: SessionContext = Depends(require_session),
        cloud: AppwriteGateway = Depends(get_appwrite),
    ):
    return await send_message_endpoint(group_id, request_data, session, cloud)


# Called by trusted server-side code only
@app.post("/groups/{group_id}/system-message")
async def system_message(
        group_id: str = Path(...),
        request_data: SystemMessageRequest = Body(...),
        cloud: AppwriteGateway = Depends(get_appwrite),
    ):
    return await system_message_endpoint(group_id, request_data, cloud)


@app.get("/groups/{group_id}/files")
async def list_group_files(
        group_id: str = Path(...),
        session: SessionContext = Depends(require_session),
        cloud: AppwriteGateway = Depends(get_appwrite),
    ):
    return await list_group_files_endpoint(group_id, session, cloud)


# The file bytes go to the bucket from the client; this records them for the group
@app.post("/groups/{group_id}/files/metadata")
async def create_file_metadata(
        group_id: str = Path(...),
        request_data: FileMetadataRequest = Body(...),
        session: SessionContext = Depends(require_session),
        cloud: AppwriteGateway = Depends(get_appwrite),
    ):
    return await create_file_metadata_endpoint(group_id, request_data, session, cloud)


@app.delete("/groups/{group_id}/files/{file_id}")
async def delete_group_file(
        group_id: str = Path(...),
        file_id: str = Path(..., description="The ID of the group's file record."),
        session: SessionContext = Depends(require_session),
        cloud: AppwriteGateway = Depends(get_appwrite),
    ):
    return await delete_group_file_endpoint(group_id, file_id, session, cloud)


# ======================================
# Current user
# ======================================

@app.get("/users/me/messages/stats")
async def my_message_stats(
        session: SessionContext = Depends(require_session),
        cloud: AppwriteGateway = Depends(get_appwrite),
    ):
    return await message_stats_endpoint(session, cloud)


# ======================================
# Notes
# ======================================

@app.get("/notes")
async def list_notes(
        source_type: Optional[str] = Query(None, description="pdf, youtube, manual or all."),
        limit: int = Query(100, ge=1, le=100),
        offset: int = Query(0, ge=0),
        session: SessionContext = Depends(require_session),
        cloud: AppwriteGateway = Depends(get_appwrite),
    ):
    return await list_notes_endpoint(source_type, limit, offset, session, cloud)


@app.post("/notes")
async def create_note(
        request_data: NoteCreateRequest = Body(...),
        session: SessionContext = Depends(require_session),
        cloud: AppwriteGateway = Depends(get_appwrite),
    ):
    return await create_note_endpoint(request_data, session, cloud)


@app.patch("/notes")
async def update_note(
        request_data: NoteUpdateRequest = Body(...),
        session: SessionContext = Depends(require_session),
        cloud: AppwriteGateway = Depends(get_appwrite),
    ):
    return await update_note_endpoint(request_data, session, cloud)


@app.delete("/notes")
async def delete_note(
        noteId: Optional[str] = Query(None),
        session: SessionContext = Depends(require_session),
        cloud: AppwriteGateway = Depends(get_appwrite),
    ):
    return await delete_note_endpoint(noteId, session, cloud)


# ======================================
# Focus sessions
# ======================================

@app.get("/focus/sessions")
async def list_focus_sessions(
        limit: int = Query(50, ge=1, le=100),
        offset: int = Query(0, ge=0),
        session: SessionContext = Depends(require_session),
        cloud: AppwriteGateway = Depends(get_appwrite),
    ):
    return await list_focus_sessions_endpoint(limit, offset, session, cloud)


@app.post("/focus/sessions", status_code=201)
async def create_focus_session(
        request_data: FocusSessionCreateRequest = Body(...),
        session: SessionContext = Depends(require_session),
        cloud: AppwriteGateway = Depends(get_appwrite),
    ):
    return await create_focus_session_endpoint(request_data, session, cloud)


@app.patch("/focus/sessions")
async def update_focus_session(
        request_data: FocusSessionUpdateRequest = Body(...),
        session: SessionContext = Depends(require_session),
        cloud: AppwriteGateway = Depends(get_appwrite),
    ):
    return await update_focus_session_endpoint(request_data, session, cloud)


# ======================================
# Storage
# ======================================

@app.get("/storage/{file_id}/view")
async def view_file(
        file_id: str = Path(..., description="The ID of the file to view (Appwrite file_id)."),
        session: SessionContext = Depends(require_session),
        cloud: AppwriteGateway = Depends(get_appwrite),
    ):
    return await file_redirect_endpoint(file_id, FILE_VIEW, cloud)


@app.get("/storage/{file_id}/download")
async def download_file(
        file_id: str = Path(..., description="The ID of the file to download (Appwrite file_id)."),
        session: SessionContext = Depends(require_session),
        cloud: AppwriteGateway = Depends(get_appwrite),
    ):
    return await file_redirect_endpoint(file_id, FILE_DOWNLOAD, cloud)
