import logging
from typing import Any

from fastapi import FastAPI, Request, status
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy.exc import IntegrityError
from starlette.exceptions import HTTPException as StarletteHTTPException

from default_registry import serializers
from default_registry.exceptions import RegistryError
from default_registry.i18n import _
from default_registry.routers import default_applications, default_customers, default_reasons, meta, renewals
from default_registry.settings import app_settings

logger = logging.getLogger(__name__)

app = FastAPI(title="Default Registry")

app.add_middleware(
    CORSMiddleware,
    allow_origins=["http://localhost:3000", app_settings.frontend_url],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(meta.router)
app.include_router(default_reasons.router)
app.include_router(default_applications.router)
app.include_router(default_customers.router)
app.include_router(renewals.router)


def error_response(
    status_code: int, message: str, data: Any = None, headers: dict[str, str] | None = None
) -> JSONResponse:
    """Return an error response in the same envelope as a successful response."""
    body = serializers.ApiResponse(code=status_code, message=message, data=data)
    return JSONResponse(jsonable_encoder(body), status_code=status_code, headers=headers)


@app.exception_handler(RegistryError)
async def registry_error_handler(request: Request, exc: RegistryError) -> JSONResponse:
    logger.warning("%s %s: %s", request.method, request.url.path, exc.message)
    return error_response(exc.status_code, exc.message)


@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    return error_response(exc.status_code, str(exc.detail), headers=exc.headers)


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    errors = [{"loc": list(error["loc"]), "msg": error["msg"], "type": error["type"]} for error in exc.errors()]
    return error_response(status.HTTP_400_BAD_REQUEST, _("Invalid request parameters"), data=errors)


@app.exception_handler(IntegrityError)
async def integrity_error_handler(request: Request, exc: IntegrityError) -> JSONResponse:
    logger.warning("%s %s: %s", request.method, request.url.path, exc.orig)
    return error_response(status.HTTP_400_BAD_REQUEST, _("Data conflict: the record is referenced or already exists"))


@app.exception_handler(500)
async def internal_server_error_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.exception("Unhandled error on %s %s", request.method, request.url.path, exc_info=exc)
    return error_response(status.HTTP_500_INTERNAL_SERVER_ERROR, _("An unexpected error occurred"))
