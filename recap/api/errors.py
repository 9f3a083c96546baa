"""
Component error codes to HTTP responses.

Only user-facing messages leave the API; store details stay in the logs.
"""

from fastapi import HTTPException, status

ERROR_STATUS = {
    "invalid_input": status.HTTP_400_BAD_REQUEST,
    "unauthenticated": status.HTTP_401_UNAUTHORIZED,
    "not_found": status.HTTP_404_NOT_FOUND,
    "invalid_video": status.HTTP_422_UNPROCESSABLE_ENTITY,
    "save_failed": status.HTTP_503_SERVICE_UNAVAILABLE,
    "corrupt_session": status.HTTP_503_SERVICE_UNAVAILABLE,
    "load_failed": status.HTTP_503_SERVICE_UNAVAILABLE,
}

ERROR_DETAIL = {
    "invalid_input": "Invalid request",
    "unauthenticated": "Not authenticated",
    "not_found": "Tutorial not found",
    "invalid_video": "Invalid video link",
    "save_failed": "Could not save watch time",
    "corrupt_session": "Could not save watch time",
    "load_failed": "Could not load statistics",
}


def http_error(code: str, detail: str | None = None) -> HTTPException:
    return HTTPException(
        status_code=ERROR_STATUS.get(code, status.HTTP_500_INTERNAL_SERVER_ERROR),
        detail=detail or ERROR_DETAIL.get(code, "Internal error"),
    )
