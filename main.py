"""FastAPI entry point for the image processing service.

Run locally with ``uvicorn main:app --reload`` or ``python main.py``.
Uploaded originals are served from ``/uploads`` and results from
``/processed``; both directories come from ``imaging.config``.
"""

import logging
import os

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastapi.staticfiles import StaticFiles

from imaging.config import get_settings
from imaging.errors import ErrorCode, ServiceError, error_body
from imaging.log import setup_logging
from imaging.middleware import install_middleware
from imaging.routes import router as images_router
from imaging.routes_health import router as health_router


logger = logging.getLogger("imaging")


def _request_id(request: Request):
    return getattr(request.state, "request_id", None) or request.headers.get("x-request-id")


def create_app() -> FastAPI:
    settings = get_settings()
    setup_logging(settings.LOG_LEVEL)

    # --- Directories ---
    for directory in (settings.UPLOAD_DIR, settings.PROCESSED_DIR):
        os.makedirs(directory, exist_ok=True)

    app = FastAPI(title="Image Processor", version=settings.SERVICE_VERSION)
    install_middleware(app)
    # Added last so it is outermost and error responses carry CORS headers too.
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.CORS_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Expose originals and results so the URLs in responses resolve.
    app.mount("/uploads", StaticFiles(directory=settings.UPLOAD_DIR), name="uploads")
    app.mount("/processed", StaticFiles(directory=settings.PROCESSED_DIR), name="processed")

    app.include_router(health_router)
    app.include_router(images_router)

    @app.exception_handler(ServiceError)
    async def service_error_handler(request: Request, exc: ServiceError):
        logger.warning(
            exc.message,
            extra={"request_id": _request_id(request), "error_code": exc.code.value},
        )
        return JSONResponse(
            status_code=exc.http_status,
            content=error_body(exc.code, exc.message, _request_id(request)),
        )

    @app.exception_handler(RequestValidationError)
    async def validation_error_handler(request: Request, exc: RequestValidationError):
        message = "; ".join(
            f"{'.'.join(str(p) for p in err.get('loc', ()))}: {err.get('msg')}" for err in exc.errors()
        )
        return JSONResponse(
            status_code=422,
            content=error_body(ErrorCode.VALIDATION_ERROR, message or "Validation error", _request_id(request)),
        )

    @app.exception_handler(Exception)
    async def unhandled_error_handler(request: Request, exc: Exception):
        logger.exception("unhandled error", extra={"request_id": _request_id(request)})
        return JSONResponse(
            status_code=500,
            content=error_body(ErrorCode.INTERNAL_ERROR, str(exc) or "Something went wrong", _request_id(request)),
        )

    logger.info(
        "image processor ready",
        extra={"path": os.path.abspath(settings.PROCESSED_DIR)},
    )
    return app


app = create_app()


if __name__ == "__main__":  # pragma: no cover
    import uvicorn

    _settings = get_settings()
    uvicorn.run("main:app", host=_settings.HOST, port=_settings.PORT)
