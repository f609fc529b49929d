from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from appwrite.exception import AppwriteException

from core.errors.appwrite import translate_appwrite_error
from core.errors.exceptions import GenieLearnError
from core.logging.logger import get_logger

logger = get_logger(__name__)


async def genielearn_error_handler(request: Request, exc: GenieLearnError) -> JSONResponse:
    if exc.status_code >= 500:
        logger.error("%s %s failed: %s", request.method, request.url.path, exc.message)
    return JSONResponse(status_code=exc.status_code, content={"detail": exc.message})


async def request_validation_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    errors = [
        {"field": ".".join(str(part) for part in error.get("loc", ())[1:]), "message": error.get("msg")}
        for error in exc.errors()
    ]
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content={"detail": "Invalid request body", "errors": errors},
    )


async def appwrite_error_handler(request: Request, exc: AppwriteException) -> JSONResponse:
    logger.error(
        "Unhandled Appwrite failure on %s %s. Status: %s. Message: %s",
        request.method, request.url.path, exc.code, exc.message,
    )
    return await genielearn_error_handler(request, translate_appwrite_error(exc))


async def unhandled_error_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.exception("Unexpected error on %s %s: %s", request.method, request.url.path, type(exc).__name__)
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={"detail": "Internal server error"},
    )


def register_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(GenieLearnError, genielearn_error_handler)
    app.add_exception_handler(RequestValidationError, request_validation_handler)
    app.add_exception_handler(AppwriteException, appwrite_error_handler)
    app.add_exception_handler(Exception, unhandled_error_handler)
