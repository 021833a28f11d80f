from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from pos.api.v1 import api_router
from pos.core.config import settings
from pos.core.logging_config import configure_logging
from pos.middleware import RequestLoggingMiddleware
from pos.schemas.error import ErrorResponse


def _request_id(request: Request) -> str | None:
    return getattr(request.state, "request_id", None)


def get_application() -> FastAPI:
    configure_logging(settings.log_json)
    tags_metadata = [
        {"name": "coupons", "description": "Coupon and dish coupon catalogs per location"},
        {"name": "coupon-selection", "description": "Coupon picker: options, toggles, apply and totals"},
    ]
    app = FastAPI(
        title=settings.app_name,
        version=settings.app_version,
        openapi_tags=tags_metadata,
    )
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=settings.cors_allow_credentials,
        allow_methods=settings.cors_allow_methods,
        allow_headers=settings.cors_allow_headers,
    )
    app.add_middleware(RequestLoggingMiddleware)
    app.include_router(api_router, prefix="/api/v1")

    @app.exception_handler(StarletteHTTPException)
    async def http_exception_handler(request: Request, exc: StarletteHTTPException):
        payload = ErrorResponse(detail=exc.detail, code=getattr(exc, "code", None), request_id=_request_id(request))
        return JSONResponse(status_code=exc.status_code, content=jsonable_encoder(payload.model_dump()))

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(request: Request, exc: RequestValidationError):
        errors = jsonable_encoder(exc.errors())
        payload = ErrorResponse(detail=errors, code="validation_error", request_id=_request_id(request))
        return JSONResponse(status_code=422, content=payload.model_dump())

    return app


app = get_application()
