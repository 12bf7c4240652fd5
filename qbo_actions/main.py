from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from time import perf_counter
from typing import Any, Awaitable, Callable, Optional
from uuid import uuid4

import uvicorn
from fastapi import APIRouter, Depends, FastAPI, Header, HTTPException, Request, Response, status
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.middleware.cors import CORSMiddleware

from qbo_actions.api import routes_actions
from qbo_actions.core import logging as logging_utils
from qbo_actions.core.config import Settings, get_settings
from qbo_actions.services.errors import QuickBooksActionError, QuickBooksApiError

RequestHandler = Callable[[Request], Awaitable[Response]]

logger = logging.getLogger("qbo_actions.app")


async def enforce_api_key(
    api_key_header: str | None = Header(default=None, alias="X-API-Key"),
    settings: Settings = Depends(get_settings),
) -> None:
    if api_key_header is None or api_key_header != settings.api_key:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid or missing API key",
        )


@asynccontextmanager
async def lifespan(_: FastAPI):
    settings = get_settings()
    logging_utils.configure_logging()
    logger.info(
        "application_startup",
        extra={
            "environment": settings.environment,
            "qbo_minor_version": settings.qbo_minor_version,
        },
    )
    yield
    logger.info("application_shutdown")


def error_response(
    request: Request,
    status_code: int,
    message: str,
    details: Optional[Any] = None,
) -> JSONResponse:
    """Every error leaves the service in the same envelope."""
    request_id = getattr(request.state, "request_id", None)
    response = JSONResponse(
        status_code=status_code,
        content={
            "code": status_code,
            "message": message,
            "details": details,
            "correlation_id": request_id,
        },
    )
    if request_id:
        response.headers["X-Request-Id"] = request_id
    return response


def quickbooks_error_response(request: Request, exc: QuickBooksActionError) -> JSONResponse:
    # Upstream failures are a gateway problem; anything else is the caller's input.
    if isinstance(exc, QuickBooksApiError):
        return error_response(
            request,
            status.HTTP_502_BAD_GATEWAY,
            str(exc),
            {
                "qbo_status_code": exc.status_code,
                "qbo_error_code": exc.error_code,
                "errors": exc.details,
            },
        )
    return error_response(request, status.HTTP_400_BAD_REQUEST, str(exc))


def _install_request_context(app: FastAPI) -> None:
    request_logger = logging.getLogger("qbo_actions.request")

    @app.middleware("http")
    async def request_context_middleware(request: Request, call_next: RequestHandler):
        request_id = request.headers.get("X-Request-Id") or str(uuid4())
        request.state.request_id = request_id
        logging_utils.set_request_context(request_id=request_id)
        start = perf_counter()
        response_status = status.HTTP_500_INTERNAL_SERVER_ERROR
        try:
            response = await call_next(request)
            response_status = response.status_code
            response.headers["X-Request-Id"] = request_id
            return response
        finally:
            request_logger.info(
                "request_completed",
                extra={
                    "method": request.method,
                    "path": request.url.path,
                    "status": response_status,
                    "duration_ms": round((perf_counter() - start) * 1000, 2),
                },
            )
            logging_utils.clear_request_context()


def _install_exception_handlers(app: FastAPI) -> None:
    @app.exception_handler(QuickBooksActionError)
    async def quickbooks_exception_handler(request: Request, exc: QuickBooksActionError) -> JSONResponse:
        logger.warning(
            "qbo_action_rejected",
            extra={
                "path": request.url.path,
                "error_type": type(exc).__name__,
                "error_message": str(exc),
            },
        )
        return quickbooks_error_response(request, exc)

    @app.exception_handler(HTTPException)
    async def http_exception_handler(request: Request, exc: HTTPException) -> JSONResponse:
        if isinstance(exc.detail, str):
            return error_response(request, exc.status_code, exc.detail)
        return error_response(request, exc.status_code, "Request failed", exc.detail)

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
        return error_response(
            request,
            status.HTTP_422_UNPROCESSABLE_ENTITY,
            "Validation error",
            jsonable_encoder(exc.errors()),
        )

    @app.exception_handler(Exception)
    async def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
        logger.exception(
            "unhandled_error",
            extra={"correlation_id": getattr(request.state, "request_id", None)},
        )
        return error_response(request, status.HTTP_500_INTERNAL_SERVER_ERROR, "Internal server error")


def create_app() -> FastAPI:
    settings = get_settings()
    app = FastAPI(
        title="QBO Actions",
        version=settings.app_version,
        lifespan=lifespan,
        dependencies=[] if settings.allow_docs_without_auth else [Depends(enforce_api_key)],
    )
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    _install_request_context(app)
    _install_exception_handlers(app)

    actions = APIRouter(dependencies=[Depends(enforce_api_key)])
    actions.include_router(routes_actions.router)
    app.include_router(actions)

    @app.get("/health", include_in_schema=False)
    async def health() -> dict[str, str]:
        return {"status": "ok", "version": settings.app_version}

    return app


app = create_app()


def run() -> None:
    uvicorn.run("qbo_actions.main:app", host="0.0.0.0", port=8000)


if __name__ == "__main__":
    run()
