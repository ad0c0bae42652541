from fastapi import HTTPException, status

from cybermozhi.core.exceptions import (
    AllQuotaExhaustedError,
    ConfigurationError,
    CyberMozhiError,
    EmptyOutputError,
    InvalidInputError,
    PersistenceError,
    TransportError,
)


def to_http_exception(error: CyberMozhiError) -> HTTPException:
    """Map a service error onto the status code the API reports for it."""
    if isinstance(error, InvalidInputError):
        return HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail={"message": str(error), "errors": error.errors},
        )
    if isinstance(error, AllQuotaExhaustedError):
        return HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="The service is receiving very high traffic. Please try again in a few minutes.",
        )
    if isinstance(error, ConfigurationError):
        return HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail="The model provider is not configured.")
    if isinstance(error, EmptyOutputError):
        return HTTPException(
            status_code=status.HTTP_502_BAD_GATEWAY,
            detail="The model returned no usable output. Please try rephrasing your request.",
        )
    if isinstance(error, TransportError):
        return HTTPException(status_code=status.HTTP_502_BAD_GATEWAY, detail=f"Model provider error: {error.detail}")
    if isinstance(error, PersistenceError):
        return HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="Database error")
    return HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="Internal Server Error")
