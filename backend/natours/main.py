"""
Natours API — FastAPI Application Factory
==========================================

What:  Creates and configures the FastAPI application instance.
How:   ``create_app()`` builds the error converter, assembles the pipeline
       through ``PipelineBuilder``, mounts the route table and registers the
       framework exception handlers. Everything environment-dependent comes
       from the ``Settings`` passed in (or the module singleton).
Who:   uvicorn (``uvicorn natours.main:app``) and the test suite, which calls
       ``create_app`` with explicit settings, collaborators and a fake clock.

Application Architecture:
    ┌──────────────────────────────────────────────────────────────┐
    │                         FastAPI App                          │
    │                                                              │
    │  Pipeline (outermost first):                                 │
    │   CORS → Static → Security Headers → Request Context         │
    │   → Access Log* → Error Conversion → Rate Limit (/api)       │
    │   → Raw Body (/webhook-checkout) → Body Parser               │
    │   → Sanitization → GZip                                      │
    │                                                * development │
    │  Routes (first match wins):                                  │
    │   /health, /webhook-checkout, /, /api/v1/tours, /users,      │
    │   /reviews, /bookings, fallback (OPTIONS 204, * 404)         │
    └──────────────────────────────────────────────────────────────┘
"""

import logging
import sys
from contextlib import asynccontextmanager
from typing import AsyncGenerator, Iterable, Optional

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.gzip import GZipMiddleware
from starlette.exceptions import HTTPException as StarletteHTTPException

from natours import __version__
from natours.config import Settings, settings as default_settings
from natours.context import request_id_var
from natours.error_handling import ErrorConverter, Translator
from natours.middleware.body import BodyParserMiddleware, RawBodyMiddleware
from natours.middleware.errors import ErrorConversionMiddleware
from natours.middleware.logging import RequestLoggingMiddleware
from natours.middleware.rate_limit import Clock, RateLimitMiddleware, RateLimitStore
from natours.middleware.request_context import RequestContextMiddleware
from natours.middleware.sanitize import SanitizationMiddleware
from natours.middleware.security_headers import SecurityHeadersMiddleware
from natours.middleware.static import StaticAssetsMiddleware
from natours.pipeline import PipelineBuilder, Stage
from natours.routing import Collaborators, default_route_table, mount_routes

logger = logging.getLogger(__name__)


# ══════════════════════════════════════════════════════════════════════════
# Logging Configuration
# ══════════════════════════════════════════════════════════════════════════


class RequestIdFilter(logging.Filter):
    """Adds the current request ID (or "-") to every log record."""

    def filter(self, record: logging.LogRecord) -> bool:
        record.request_id = request_id_var.get("") or "-"
        return True


def setup_logging(config: Settings) -> None:
    """
    Configure logging for the whole process.

    Format: %(asctime)s [%(levelname)s] %(name)s [%(request_id)s]: %(message)s
    When:   Once, at startup (lifespan), before anything else logs.
    """
    handler = logging.StreamHandler(sys.stdout)
    handler.addFilter(RequestIdFilter())

    logging.basicConfig(
        level=getattr(logging, config.log_level, logging.INFO),
        format="%(asctime)s [%(levelname)s] %(name)s [%(request_id)s]: %(message)s",
        datefmt="%Y-%m-%dT%H:%M:%S",
        handlers=[handler],
        force=True,
    )

    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)
    logging.getLogger("httpx").setLevel(logging.WARNING)


# ══════════════════════════════════════════════════════════════════════════
# Application Lifespan
# ══════════════════════════════════════════════════════════════════════════


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    config: Settings = app.state.settings
    setup_logging(config)
    logger.info("=" * 60)
    logger.info("Natours API starting up (NODE_ENV=%s)", config.node_env)
    logger.info("Pipeline: %s", " → ".join(stage.name for stage in app.state.pipeline))
    logger.info("Server ready at http://%s:%d", config.backend_host, config.backend_port)
    logger.info("=" * 60)

    yield

    logger.info("Natours API shutting down...")


# ══════════════════════════════════════════════════════════════════════════
# Exception Handlers
# ══════════════════════════════════════════════════════════════════════════


def register_exception_handlers(app: FastAPI, converter: ErrorConverter) -> None:
    """
    Route FastAPI's own failures through the error converter.

    Routing (404/405 raised by Starlette) and request validation are handled
    inside the framework before they could reach ErrorConversionMiddleware;
    these handlers hand them to the same converter so every error response
    has the same shape. Everything else propagates to the middleware.
    """

    @app.exception_handler(StarletteHTTPException)
    async def handle_http_exception(request: Request, exc: StarletteHTTPException):
        return converter.render(request, exc)

    @app.exception_handler(RequestValidationError)
    async def handle_request_validation(request: Request, exc: RequestValidationError):
        return converter.render(request, exc)


# ══════════════════════════════════════════════════════════════════════════
# Pipeline Assembly
# ══════════════════════════════════════════════════════════════════════════


def build_pipeline(
    config: Settings,
    converter: ErrorConverter,
    rate_limit_store: Optional[RateLimitStore] = None,
    clock: Optional[Clock] = None,
) -> PipelineBuilder:
    builder = PipelineBuilder()
    builder.register(
        Stage.CORS,
        CORSMiddleware,
        allow_origins=config.cors_origins_list,
        allow_methods=["*"],
        allow_headers=["*"],
        expose_headers=["X-Request-ID", "Retry-After", "X-RateLimit-Remaining"],
    )
    builder.register(Stage.STATIC_ASSETS, StaticAssetsMiddleware, directory=config.public_dir)
    builder.register(Stage.SECURITY_HEADERS, SecurityHeadersMiddleware)
    builder.register(Stage.REQUEST_CONTEXT, RequestContextMiddleware, trust_proxy=config.trust_proxy)
    if config.is_development:
        builder.register(Stage.ACCESS_LOG, RequestLoggingMiddleware)
    builder.register(Stage.ERROR_CONVERSION, ErrorConversionMiddleware, converter=converter)
    builder.register(
        Stage.RATE_LIMIT,
        RateLimitMiddleware,
        max_requests=config.rate_limit_requests,
        window=config.rate_limit_window,
        path_prefix=config.api_prefix,
        store=rate_limit_store,
        clock=clock,
        trust_proxy=config.trust_proxy,
    )
    builder.register(
        Stage.RAW_BODY,
        RawBodyMiddleware,
        path=config.webhook_path,
        media_type=config.webhook_media_type,
        limit=config.webhook_body_limit,
    )
    builder.require(
        Stage.RAW_BODY,
        f"POST {config.webhook_path} is verified against the raw request bytes",
    )
    builder.register(Stage.BODY_PARSER, BodyParserMiddleware, limit=config.body_limit)
    builder.register(
        Stage.SANITIZATION,
        SanitizationMiddleware,
        whitelist=config.parameter_whitelist_list,
    )
    builder.register(Stage.COMPRESSION, GZipMiddleware, minimum_size=config.compression_min_size)
    return builder


# ══════════════════════════════════════════════════════════════════════════
# Application Factory
# ══════════════════════════════════════════════════════════════════════════


def create_app(
    config: Optional[Settings] = None,
    collaborators: Optional[Collaborators] = None,
    rate_limit_store: Optional[RateLimitStore] = None,
    clock: Optional[Clock] = None,
    translators: Iterable[Translator] = (),
) -> FastAPI:
    """
    Assemble the application.

    Args:
        config:            Settings; defaults to the environment-loaded singleton.
        collaborators:     Resource routers and webhook handler.
        rate_limit_store:  Counter store; a fresh in-memory one by default.
        clock:             Monotonic clock for the rate limiter.
        translators:       Extra exception → AppError mappings for the converter.
    """
    config = config or default_settings
    collaborators = collaborators or Collaborators()

    app = FastAPI(
        title="Natours API",
        description="Tours, users, reviews and bookings.",
        version=__version__,
        lifespan=lifespan,
    )
    app.state.settings = config

    converter = ErrorConverter(
        development=config.is_development,
        translators=translators,
        api_prefix=config.api_prefix,
    )
    app.state.error_converter = converter

    pipeline = build_pipeline(config, converter, rate_limit_store, clock)
    pipeline.build(app)
    app.state.pipeline = pipeline.stages()

    register_exception_handlers(app, converter)

    mount_routes(
        app,
        default_route_table(collaborators),
        collaborators.webhook_checkout,
        webhook_path=config.webhook_path,
    )

    return app


app = create_app()
