import sys
import time
from contextlib import asynccontextmanager
from uuid import uuid4

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, Response
from loguru import logger
from starlette.exceptions import HTTPException as StarletteHTTPException

from api.config import Settings, settings
from api.models.upload import UploadResponse
from api.routes.health import router as health_router
from api.routes.upload import router as upload_router
from api.services.storage import ObjectStore
from api.services.uploads import UploadService, build_profiles


def _configure_logging(app_settings: Settings) -> None:
    logger.configure(patcher=lambda record: record["extra"].setdefault("request_id", "-"))
    logger.remove()
    logger.add(
        sys.stderr,
        level=app_settings.log_level.upper(),
        format="{time:YYYY-MM-DD HH:mm:ss.SSS} | {level} | req={extra[request_id]} | {name}:{function}:{line} | {message}",
    )


@asynccontextmanager
async def lifespan(app: FastAPI):
    app_settings = settings
    _configure_logging(app_settings)
    app.state.settings = app_settings
    # An unusable endpoint raises here and aborts startup.
    store = ObjectStore.from_settings(app_settings)
    app.state.object_store = store
    app.state.upload_service = UploadService(store, build_profiles(app_settings))
    logger.bind(request_id="-").info(
        "Starting app app_name={} debug={} log_level={} storage_endpoint={} public_read={}",
        app_settings.app_name,
        app_settings.debug,
        app_settings.log_level,
        app_settings.minio_endpoint,
        app_settings.public_read,
    )
    yield
    logger.bind(request_id="-").info("Shutting down app app_name={}", app_settings.app_name)


app = FastAPI(title=settings.app_name, debug=settings.debug, lifespan=lifespan)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_allow_origins,
    allow_credentials="*" not in settings.cors_allow_origins,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(health_router)
app.include_router(upload_router)


@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    logger.warning("HTTP error path={} status={} detail={}", request.url.path, exc.status_code, exc.detail)
    body = UploadResponse(message=str(exc.detail), success=False)
    return JSONResponse(
        status_code=exc.status_code,
        content=body.model_dump(exclude_none=True),
        headers=getattr(exc, "headers", None),
    )


@app.exception_handler(RequestValidationError)
async def request_validation_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    logger.warning("Request validation failed path={} errors={}", request.url.path, exc.errors())
    body = UploadResponse(message="Malformed request body", success=False)
    return JSONResponse(status_code=422, content=body.model_dump(exclude_none=True))


@app.middleware("http")
async def add_request_context(request: Request, call_next) -> Response:
    request_id = request.headers.get("x-request-id", str(uuid4()))
    bound_logger = logger.bind(request_id=request_id)
    start = time.perf_counter()
    bound_logger.info("Request start method={} path={}", request.method, request.url.path)
    try:
        with logger.contextualize(request_id=request_id):
            response = await call_next(request)
    except Exception:
        bound_logger.exception("Request failed method={} path={}", request.method, request.url.path)
        raise
    duration_ms = (time.perf_counter() - start) * 1000
    bound_logger.info(
        "Request finish method={} path={} status={} duration_ms={:.2f}",
        request.method,
        request.url.path,
        response.status_code,
        duration_ms,
    )
    response.headers["X-Request-ID"] = request_id
    return response
