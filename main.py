"""
FastAPI server for the reply engine and knowledge loop.

Exposes reply generation, knowledge search, extraction, organization and
embedding maintenance over HTTP. All components are wired once at startup
from the YAML/env configuration.
"""

import logging
from contextlib import asynccontextmanager
from typing import Callable

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException

from replyloop.api.handlers.embeddings import router as embeddings_router
from replyloop.api.handlers.health import check_health
from replyloop.api.handlers.knowledge import router as knowledge_router
from replyloop.api.handlers.replies import router as replies_router
from replyloop.api.middleware.request_logger import RequestLoggerMiddleware
from replyloop.api.models.errors import (
    create_error_response,
    error_for_exception,
    invalid_request_error,
)
from replyloop.api.models.health import HealthStatus
from replyloop.core.services import Services, build_services
from replyloop.lib.config import ConfigLoader, EngineConfig
from replyloop.lib.errors import ReplyLoopError
from replyloop.lib.logger import configure_logging

logger = logging.getLogger(__name__)

ServicesFactory = Callable[[EngineConfig], Services]


def create_app(
    config: EngineConfig | None = None,
    services_factory: ServicesFactory | None = None,
) -> FastAPI:
    """Build the FastAPI application.

    Args:
        config: Engine configuration (loaded from config/replyloop.yaml if omitted)
        services_factory: Builds the component graph at startup (default: build_services)
    """
    config = config or ConfigLoader().load()
    services_factory = services_factory or build_services

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        logger.info("Starting reply engine API server")
        services = services_factory(config)
        app.state.services = services
        logger.info(f"Storage at {config.storage.sqlite_path}")

        yield

        logger.info("Shutting down reply engine API server")
        await services.close()

    app = FastAPI(
        title="replyloop",
        description="Retrieval-augmented customer service replies with a self-improving knowledge base",
        version="0.1.0",
        docs_url="/docs",
        redoc_url="/redoc",
        lifespan=lifespan,
    )
    app.state.config = config

    app.add_middleware(
        CORSMiddleware,
        allow_origins=config.server.cors_origins,
        allow_credentials=True,
        allow_methods=["GET", "POST", "PATCH", "DELETE", "OPTIONS"],
        allow_headers=["Content-Type", "Authorization", "X-Request-ID"],
    )
    app.add_middleware(RequestLoggerMiddleware)

    @app.exception_handler(ReplyLoopError)
    async def engine_error_handler(request: Request, exc: ReplyLoopError):
        status_code, body = error_for_exception(exc)
        if status_code >= 500:
            logger.error(f"{type(exc).__name__} on {request.url.path}: {exc}")
        else:
            logger.warning(f"{type(exc).__name__} on {request.url.path}: {exc}")
        return JSONResponse(status_code=status_code, content=body.model_dump())

    @app.exception_handler(RequestValidationError)
    async def request_validation_handler(request: Request, exc: RequestValidationError):
        errors = exc.errors()
        first = errors[0] if errors else {}
        param = ".".join(str(part) for part in first.get("loc", ())[1:]) or None
        body = invalid_request_error(first.get("msg", "Invalid request"), param=param)
        return JSONResponse(status_code=400, content=body.model_dump())

    @app.exception_handler(HTTPException)
    async def http_exception_handler(request: Request, exc: HTTPException):
        error_type = "invalid_request_error" if exc.status_code < 500 else "server_error"
        body = create_error_response(str(exc.detail), error_type)
        return JSONResponse(status_code=exc.status_code, content=body.model_dump())

    @app.exception_handler(Exception)
    async def global_exception_handler(request: Request, exc: Exception):
        logger.error(f"Unhandled exception on {request.url.path}: {exc}", exc_info=True)
        status_code, body = error_for_exception(exc)
        return JSONResponse(status_code=status_code, content=body.model_dump())

    app.include_router(replies_router)
    app.include_router(knowledge_router)
    app.include_router(embeddings_router)

    @app.get("/")
    async def root():
        return {
            "message": "replyloop API",
            "version": "0.1.0",
            "docs": "/docs",
            "endpoints": {
                "replies": "/v1/replies",
                "knowledge": "/v1/knowledge",
                "embeddings": "/v1/embeddings",
                "health": "/health",
            },
        }

    @app.get("/health", response_model=HealthStatus)
    async def health(request: Request):
        return await check_health(request.app.state.services)

    return app


if __name__ == "__main__":
    import uvicorn

    engine_config = ConfigLoader().load()
    configure_logging(engine_config.logging)
    uvicorn.run(
        create_app(engine_config),
        host=engine_config.server.host,
        port=engine_config.server.port,
        log_level=engine_config.logging.level.lower(),
    )
