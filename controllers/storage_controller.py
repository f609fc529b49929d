from fastapi import status
from fastapi.responses import RedirectResponse
from appwrite.exception import AppwriteException

from core.cloud.appwrite import AppwriteGateway, call, file_url
from core.errors.exceptions import NotFoundError
from core.logging.logger import get_logger

logger = get_logger(__name__)

FILE_VIEW = "view"
FILE_DOWNLOAD = "download"


async def file_redirect_endpoint(file_id: str, mode: str, cloud: AppwriteGateway) -> RedirectResponse:
    """
    Confirms the file exists, then sends the client to Appwrite's own
    view/download URL. File bytes never pass through this service.
    """
    settings = cloud.settings

    try:
        await call(
            cloud.as_admin().storage.get_file,
            bucket_id=settings.appwrite_bucket_id,
            file_id=file_id,
        )
    except AppwriteException as e:
        logger.info("File %s not found in storage. Status: %s", file_id, e.code)
        raise NotFoundError("File not found")

    return RedirectResponse(
        url=file_url(settings, file_id, mode),
        status_code=status.HTTP_307_TEMPORARY_REDIRECT,
    )
