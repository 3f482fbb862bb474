# app/api/exception_handlers.py

from typing import TYPE_CHECKING
from fastapi import Request
from fastapi.responses import JSONResponse
from exceptions.domain_exceptions import DomainException

if TYPE_CHECKING:
    from fastapi import FastAPI


async def domain_exception_handler(request: Request, exc: DomainException) -> JSONResponse:
    """
    Global exception handler for domain exceptions in FastAPI

    Returns a consistent JSON response format for all domain exceptions,
    including the game errors (RoomNotFoundError, ...) raised by the services
    """
    return JSONResponse(
        status_code=exc.status_code,
        content={
            "error": exc.__class__.__name__,
            "error_code": exc.error_code,
            "message": exc.message,
            "details": exc.details,
            "path": request.url.path
        }
    )


def register_exception_handlers(app: "FastAPI") -> None:
    """
    Register the domain exception handler with a FastAPI app

    Subclasses (NotFoundException, AuthenticationError, ...) resolve to the
    DomainException handler.
    """
    app.add_exception_handler(DomainException, domain_exception_handler)
