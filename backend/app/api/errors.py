"""Map service exceptions onto HTTP error bodies of the form {"error": ..., "details": [...]}."""

import logging

from fastapi import FastAPI, Request
from fastapi.exception_handlers import request_validation_exception_handler
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from app.services.exceptions import (
    DatabaseError,
    ResubmissionNotAllowed,
    StudyNotFound,
    SurveyNotFound,
    SurveyValidationError,
)

logger = logging.getLogger(__name__)

_BODY_MESSAGES = {
    "missing": "Request body is required",
    "json_invalid": "Malformed JSON body",
}


def _body_error_detail(err: dict) -> dict[str, str]:
    loc = err["loc"][1:]
    if err["type"] == "json_invalid" or not loc:
        return {"field": "body", "message": _BODY_MESSAGES.get(err["type"], err["msg"])}
    return {"field": ".".join(str(part) for part in loc), "message": err["msg"]}


async def validation_error_handler(request: Request, exc: SurveyValidationError) -> JSONResponse:
    return JSONResponse(status_code=400, content={"error": "Validation failed", "details": exc.details})


async def request_body_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Body errors share the 400 contract; path and query errors keep FastAPI's 422."""
    errors = exc.errors()
    if not errors or any(err["loc"][0] != "body" for err in errors):
        return await request_validation_exception_handler(request, exc)
    details = [_body_error_detail(err) for err in errors]
    return JSONResponse(status_code=400, content={"error": "Validation failed", "details": details})


async def not_found_handler(request: Request, exc: SurveyNotFound | StudyNotFound) -> JSONResponse:
    return JSONResponse(status_code=404, content={"error": str(exc)})


async def resubmission_handler(request: Request, exc: ResubmissionNotAllowed) -> JSONResponse:
    return JSONResponse(status_code=409, content={"error": str(exc)})


async def database_error_handler(request: Request, exc: DatabaseError) -> JSONResponse:
    logger.error("%s %s failed: %s", request.method, request.url.path, exc)
    return JSONResponse(status_code=500, content={"error": str(exc)})


def register_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(SurveyValidationError, validation_error_handler)
    app.add_exception_handler(RequestValidationError, request_body_error_handler)
    app.add_exception_handler(SurveyNotFound, not_found_handler)
    app.add_exception_handler(StudyNotFound, not_found_handler)
    app.add_exception_handler(ResubmissionNotAllowed, resubmission_handler)
    app.add_exception_handler(DatabaseError, database_error_handler)
