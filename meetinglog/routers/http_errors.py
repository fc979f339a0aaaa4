import logging

from fastapi import HTTPException

from meetinglog.errors import (
    ConflictError,
    GenerationError,
    MeetingLogError,
    NotFoundError,
    ValidationError,
)

_STATUS_CODES = (
    (ValidationError, 400),
    (NotFoundError, 404),
    (ConflictError, 409),
    (GenerationError, 502),
)


def to_http_exception(exc: MeetingLogError, logger: logging.Logger) -> HTTPException:
    for error_type, status_code in _STATUS_CODES:
        if isinstance(exc, error_type):
            break
    else:
        status_code = 500
    if status_code >= 500:
        logger.error("Request failed: %s", exc)
    else:
        logger.info("Request rejected (%s): %s", status_code, exc)
    return HTTPException(status_code=status_code, detail=str(exc))
