import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette import status
from starlette.exceptions import HTTPException as StarletteHTTPException

from fraudit.lib.config import ConfigSingleton
from fraudit.lib.connection_manager import ConnectionManager
from fraudit.lib.logging_config import setup_logging
from fraudit.lib.scheduler import AsyncioScheduler
from fraudit.lib.session_manager import NotificationSessionManager
from fraudit.lib.websocket_manager import WebSocketManager
from fraudit.middleware.access_token_middleware import AccessTokenMiddleware
from fraudit.routers import alerts, health, notifications, session, toasts, websocket


async def initialize_managers(app: FastAPI):
    """Initialize all application managers in the correct dependency order."""
    try:
        connection_manager = app.state.connection_manager
        config = app.state.config

        redis_client = await connection_manager.get_redis_client()

        app.state.scheduler = AsyncioScheduler()
        app.state.session_manager = NotificationSessionManager(
            redis_client, app.state.scheduler, config
        )
        logging.info("NotificationSessionManager initialized")

        app.state.websocket_manager = WebSocketManager(app.state.session_manager)
        app.state.session_manager.publisher_factory = (
            app.state.websocket_manager.publisher_for
        )
        logging.info("WebSocketManager initialized")

    except Exception as e:
        logging.error(f"Error initializing managers: {e}")
        raise


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifecycle management"""
    try:
        config = await ConfigSingleton.initialize()
        setup_logging(config.get("log_level", "INFO"))
        logging.info("Starting up the notification gateway")
        app.state.config = config

        connection_manager = await ConnectionManager.create(
            app, redis_config=config.get("redis")
        )
        app.state.connection_manager = connection_manager
        logging.info("ConnectionManager initialized")

        await initialize_managers(app)
        logging.info("Application initialization complete")
    except Exception as e:
        logging.error(f"Critical error during application initialization: {e}")
        raise

    yield

    # Shutdown
    logging.info("Starting application shutdown")
    try:
        if hasattr(app.state, "session_manager"):
            await app.state.session_manager.close_all()
            logging.info("Notification sessions closed")
        if hasattr(app.state, "scheduler"):
            await app.state.scheduler.aclose()
        if hasattr(app.state, "connection_manager"):
            await app.state.connection_manager.close_clients()
            logging.info("Connection manager closed successfully")
    except Exception as e:
        logging.error(f"Error during application shutdown: {e}")
    finally:
        logging.info("Application shutdown complete")


def create_app(use_lifespan: bool = True) -> FastAPI:
    app = FastAPI(
        title="Fraudit Notification Gateway",
        lifespan=lifespan if use_lifespan else None,
    )

    for router in [health, session, notifications, toasts, alerts, websocket]:
        app.include_router(router.router)

    @app.exception_handler(StarletteHTTPException)
    async def custom_http_exception_handler(request: Request, exc: StarletteHTTPException):
        """Handle HTTP exceptions with custom format."""
        return JSONResponse(
            status_code=exc.status_code,
            content={
                "status": "error",
                "message": (
                    exc.detail["message"]
                    if isinstance(exc.detail, dict) and "message" in exc.detail
                    else str(exc.detail)
                ),
                "data": (
                    exc.detail["data"]
                    if isinstance(exc.detail, dict) and "data" in exc.detail
                    else "error"
                ),
                "details": (
                    exc.detail["details"]
                    if isinstance(exc.detail, dict) and "details" in exc.detail
                    else None
                ),
            },
        )

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(request: Request, exc: RequestValidationError):
        """Handle request validation errors."""
        return JSONResponse(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            content={
                "status": "error",
                "message": "Validation error",
                "data": "validation_error",
                "details": jsonable_encoder(exc.errors()),
            },
        )

    @app.exception_handler(Exception)
    async def custom_exception_handler(request: Request, exc: Exception):
        """Handle all other exceptions."""
        logging.error(f"Unhandled exception: {exc}", exc_info=True)
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={
                "status": "error",
                "message": "Internal server error",
                "data": "internal_server_error",
                "details": str(exc),
            },
        )

    app.add_middleware(AccessTokenMiddleware)
    return app


app = create_app()
