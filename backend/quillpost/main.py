from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from datetime import datetime, timezone

from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from opentelemetry import trace
from opentelemetry.exporter.otlp.proto.http.trace_exporter import OTLPSpanExporter
from opentelemetry.instrumentation.fastapi import FastAPIInstrumentor
from opentelemetry.sdk.resources import Resource
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.export import BatchSpanProcessor
from prometheus_fastapi_instrumentator import Instrumentator
from sqladmin import Admin, ModelView

from quillpost import models
from quillpost.errors import InternalError, StoreError
from quillpost.routes import router
from quillpost.settings import Settings, settings as default_settings
from quillpost.storage import DatabaseStorage, Storage, build_storage

logger = logging.getLogger(__name__)


class UserAdmin(ModelView, model=models.User):
    column_list = [models.User.id, models.User.username, models.User.email, models.User.display_name]
    column_searchable_list = [models.User.username, models.User.email]


class BlogAdmin(ModelView, model=models.Blog):
    column_list = [models.Blog.id, models.Blog.published_at, models.Blog.category, models.Blog.title, models.Blog.user_id]
    column_searchable_list = [models.Blog.title, models.Blog.content]
    column_sortable_list = [models.Blog.published_at]


class CommentAdmin(ModelView, model=models.Comment):
    column_list = [models.Comment.id, models.Comment.blog_id, models.Comment.created_at, models.Comment.user_id]
    column_searchable_list = [models.Comment.content]
    column_sortable_list = [models.Comment.created_at]


def _now_utc() -> datetime:
    return datetime.now(tz=timezone.utc)


def _instrument_tracing(app: FastAPI, app_settings: Settings) -> None:
    resource = Resource.create({"service.name": "quillpost-api", "deployment.environment": app_settings.environment})
    trace_provider = TracerProvider(resource=resource)
    trace_provider.add_span_processor(BatchSpanProcessor(OTLPSpanExporter()))
    trace.set_tracer_provider(trace_provider)
    FastAPIInstrumentor.instrument_app(app, tracer_provider=trace_provider)


def _register_error_handlers(app: FastAPI) -> None:
    @app.exception_handler(StoreError)
    async def _store_error(request: Request, exc: StoreError) -> JSONResponse:
        if exc.status_code >= 500:
            logger.error("%s %s failed: %s", request.method, request.url.path, exc.message)
        else:
            logger.info("%s %s -> %s: %s", request.method, request.url.path, exc.status_code, exc.message)
        return JSONResponse(status_code=exc.status_code, content=exc.to_body())

    @app.exception_handler(RequestValidationError)
    async def _request_validation_error(request: Request, exc: RequestValidationError) -> JSONResponse:
        logger.info("%s %s -> 400: invalid request", request.method, request.url.path)
        return JSONResponse(
            status_code=400,
            content={"message": "Validation error", "errors": jsonable_encoder(exc.errors())},
        )

    @app.exception_handler(Exception)
    async def _unhandled_error(request: Request, exc: Exception) -> JSONResponse:
        logger.exception("Unhandled error on %s %s", request.method, request.url.path)
        error = InternalError()
        return JSONResponse(status_code=error.status_code, content=error.to_body())


def create_app(storage: Storage | None = None, app_settings: Settings | None = None) -> FastAPI:
    """Build the API around one storage backend.

    The storage is owned by the returned app: it is started when the app
    starts serving and closed when it shuts down. Pass ``storage`` to inject
    a prepared backend; otherwise one is built from ``app_settings``.
    """
    app_settings = app_settings or default_settings
    logging.basicConfig(level=app_settings.log_level.upper())

    if storage is None:
        storage = build_storage(app_settings)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        await storage.start()
        logger.info("Storage %s started", type(storage).__name__)
        try:
            yield
        finally:
            await storage.close()
            logger.info("Storage %s closed", type(storage).__name__)

    app = FastAPI(title=app_settings.app_name, lifespan=lifespan)
    app.state.storage = storage
    app.state.settings = app_settings

    app.add_middleware(
        CORSMiddleware,
        allow_origins=app_settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    _register_error_handlers(app)

    @app.get("/healthz")
    async def healthz() -> dict:
        return {"ok": True, "ts": _now_utc().isoformat()}

    @app.middleware("http")
    async def add_app_header(request: Request, call_next):
        response = await call_next(request)
        response.headers["x-app"] = "quillpost"
        return response

    app.include_router(router)

    if app_settings.metrics_enabled:
        # Prometheus metrics at /metrics
        Instrumentator().instrument(app).expose(app)

    if app_settings.otel_enabled:
        _instrument_tracing(app, app_settings)

    if app_settings.admin_enabled and isinstance(storage, DatabaseStorage):
        admin = Admin(app, storage.engine)
        admin.add_view(UserAdmin)
        admin.add_view(BlogAdmin)
        admin.add_view(CommentAdmin)

    return app


app = create_app()
