import logging

import uvicorn
from fastapi import FastAPI, HTTPException
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.requests import Request
from fastapi.responses import JSONResponse

from tollroute.config import settings
from tollroute.errors import AppError
from tollroute.facility_repository import facility_repository
from tollroute.logging_setup import LOGGER_NAME, configure_logging
from tollroute.middleware import (
    InMemoryRateLimitMiddleware,
    RequestContextMiddleware,
    RequestTimeoutMiddleware,
    error_response,
)
from tollroute.routers.facilities import router as facilities_router
from tollroute.routers.health import router as health_router
from tollroute.routers.routing import router as routing_router

configure_logging()
logger = logging.getLogger(LOGGER_NAME)

app = FastAPI(
    title=settings.app_name,
    description=settings.app_description,
    version=settings.app_version,
)

origins = [origin.strip() for origin in settings.cors_allow_origins.split(",") if origin.strip()]
app.add_middleware(
    CORSMiddleware,
    allow_origins=origins or ["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)
app.add_middleware(RequestContextMiddleware)
app.add_middleware(InMemoryRateLimitMiddleware)
app.add_middleware(RequestTimeoutMiddleware)


@app.exception_handler(AppError)
async def app_error_handler(request: Request, exc: AppError):
    return error_response(exc.status_code, exc.code, exc.message, getattr(request.state, "request_id", None))


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError):
    details = exc.errors()
    malformed_json = any(err.get("type") == "json_invalid" for err in details)
    return JSONResponse(
        status_code=422,
        content={
            "error": {
                "code": "malformed_json" if malformed_json else "validation_error",
                "message": "Malformed JSON request body." if malformed_json else "Request payload validation failed.",
                "details": details,
            },
            "request_id": getattr(request.state, "request_id", None),
        },
    )


@app.exception_handler(HTTPException)
async def http_exception_handler(request: Request, exc: HTTPException):
    detail = exc.detail
    if isinstance(detail, dict) and "code" in detail and "message" in detail:
        code, message = detail["code"], detail["message"]
    else:
        code, message = "http_error", str(detail)
    return error_response(exc.status_code, code, message, getattr(request.state, "request_id", None))


@app.exception_handler(Exception)
async def unhandled_error_handler(request: Request, exc: Exception):
    logger.exception(
        "unhandled_exception",
        extra={
            "request_id": getattr(request.state, "request_id", None),
            "path": request.url.path,
            "method": request.method,
        },
    )
    return error_response(
        500,
        "internal_error",
        "An internal server error occurred.",
        getattr(request.state, "request_id", None),
    )


app.include_router(health_router)
app.include_router(facilities_router)
app.include_router(routing_router)


@app.on_event("startup")
def startup_event():
    facility_repository.ensure_schema()


if __name__ == "__main__":
    uvicorn.run("main:app", host="0.0.0.0", port=8000, reload=True)
