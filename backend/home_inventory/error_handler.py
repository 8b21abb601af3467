import logging

from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse

from home_inventory.common.exceptions import (
    AppError,
    ResourceAlreadyExistsError,
    ResourceNotFoundError,
)
from home_inventory.categories.exceptions import CategoryInUseError
from home_inventory.locations.exceptions import (
    LocationCycleError,
    LocationHasChildrenError,
    LocationInUseError,
)
from home_inventory.ocr.exceptions import (
    EngineInitFailedError,
    OcrTimeoutError,
    RecognitionError,
)
from home_inventory.preprocessing.exceptions import UnsupportedFormatError
from home_inventory.processing.exceptions import ProcessingError
from home_inventory.receipts.exceptions import (
    AlreadyConfirmedError,
    ConfirmationInProgressError,
    ConfirmationTransactionError,
    ConfirmedReceiptDeletionError,
    EmptyConfirmationError,
    FileValidationError,
    ReceiptNotEditableError,
    ReviewChangedError,
)

logger = logging.getLogger(__name__)

# Domain exception -> HTTP status. The body always carries the user's next step.
STATUS_CODES: dict[type[AppError], int] = {
    ResourceNotFoundError: status.HTTP_404_NOT_FOUND,
    ResourceAlreadyExistsError: status.HTTP_409_CONFLICT,
    CategoryInUseError: status.HTTP_409_CONFLICT,
    LocationCycleError: status.HTTP_400_BAD_REQUEST,
    LocationHasChildrenError: status.HTTP_409_CONFLICT,
    LocationInUseError: status.HTTP_409_CONFLICT,
    FileValidationError: status.HTTP_400_BAD_REQUEST,
    UnsupportedFormatError: status.HTTP_415_UNSUPPORTED_MEDIA_TYPE,
    EngineInitFailedError: status.HTTP_503_SERVICE_UNAVAILABLE,
    OcrTimeoutError: status.HTTP_504_GATEWAY_TIMEOUT,
    RecognitionError: status.HTTP_422_UNPROCESSABLE_ENTITY,
    ReceiptNotEditableError: status.HTTP_409_CONFLICT,
    AlreadyConfirmedError: status.HTTP_409_CONFLICT,
    ConfirmationInProgressError: status.HTTP_409_CONFLICT,
    ReviewChangedError: status.HTTP_409_CONFLICT,
    EmptyConfirmationError: status.HTTP_422_UNPROCESSABLE_ENTITY,
    ConfirmedReceiptDeletionError: status.HTTP_409_CONFLICT,
    ConfirmationTransactionError: status.HTTP_503_SERVICE_UNAVAILABLE,
    ProcessingError: status.HTTP_500_INTERNAL_SERVER_ERROR,
}


def error_response(exc: AppError, status_code: int) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content={"detail": exc.message, "next_action": exc.next_action.value},
    )


def exception_handler(app: FastAPI) -> None:
    """
    Registers global exception handlers for the FastAPI application.
    Translates domain exceptions into HTTP responses.
    """

    @app.exception_handler(AppError)
    async def app_error_handler(request: Request, exc: AppError):
        # Most specific registered class wins
        for exc_class in type(exc).__mro__:
            status_code = STATUS_CODES.get(exc_class)
            if status_code is not None:
                break
        else:
            status_code = status.HTTP_500_INTERNAL_SERVER_ERROR

        if status_code >= 500:
            logger.error(f"{type(exc).__name__} on {request.method} {request.url.path}: {exc.message}")
        return error_response(exc, status_code)
