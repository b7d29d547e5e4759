#!/usr/bin/env python3
"""
Pushdeploy - Main FastAPI Application

Git push-to-deploy server: git smart-HTTP reception, builds, releases and
the host-routing proxy in front of the running instances.
"""

import argparse
import logging
import sys
from contextlib import asynccontextmanager

import uvicorn
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from pushdeploy.config import ServerConfig, RoutingConfig
from pushdeploy.config.logging_config import LoggingConfig
from pushdeploy.config.settings import get_settings
from pushdeploy.core.deployer import HostRoutingMiddleware, close_proxy_client
from pushdeploy.db.base import init_db, dispose_db
from pushdeploy.service.platform import get_platform
from pushdeploy.utils.auth.jwt_utils import JWTConfig
from pushdeploy.utils.exceptions import register_exception_handlers

from pushdeploy.api import (
    auth_router,
    project_router,
    owner_router,
    dashboard_router,
    terminal_router,
    git_router,
    health_router,
)

# Initialize logging
LoggingConfig().setup_logging()

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Application lifecycle

    Startup: settings check, database, routing table and build recovery.
    Shutdown: build lanes, terminals, proxy client and database.
    """
    logger.info("=" * 80)
    logger.info("Starting Pushdeploy...")
    logger.info("=" * 80)

    JWTConfig.validate_security_settings()
    get_settings()

    await init_db()
    logger.info("Database initialized successfully")

    platform = get_platform()
    await platform.start()

    logger.info("Application startup complete")
    logger.info(f"Server URL: http://{ServerConfig.HOST}:{ServerConfig.PORT}")
    logger.info(f"Deployments served under *.{RoutingConfig.DOMAIN}")
    logger.info("=" * 80)

    yield

    logger.info("Shutting down application...")
    await platform.stop()

    try:
        await close_proxy_client()
    except Exception as e:
        logger.error(f"Error closing proxy client: {e}")

    try:
        await dispose_db()
        logger.info("Database connections closed")
    except Exception as e:
        logger.error(f"Error closing database: {e}")

    logger.info("Application shutdown complete")


def create_app() -> FastAPI:
    """
    Create and configure the FastAPI application

    Returns:
        The configured application
    """
    app = FastAPI(
        title="Pushdeploy",
        version="1.0.0",
        description="Push-to-deploy build and release server",
        docs_url="/docs",
        redoc_url="/redoc",
        lifespan=lifespan,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=ServerConfig.CORS_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Added last so it is outermost: project hosts never reach the API routes
    if RoutingConfig.PROXY_ENABLED:
        app.add_middleware(HostRoutingMiddleware)

    register_exception_handlers(app)

    app.include_router(auth_router, prefix="/api")
    app.include_router(project_router, prefix="/api")
    app.include_router(terminal_router, prefix="/api")
    app.include_router(owner_router, prefix="/api")
    app.include_router(dashboard_router, prefix="/api")
    app.include_router(git_router)
    app.include_router(health_router)

    return app


def run_api(host: str, port: int, **kwargs):
    """Run the API server with the given configuration"""
    try:
        uvicorn.run(
            "pushdeploy.main:app",
            host=host,
            port=port,
            reload=kwargs.get("reload") or ServerConfig.RELOAD
        )
    except Exception as e:
        logger.error(f"Failed to start API server: {e}")
        raise


def main() -> None:
    """Pushdeploy entry point"""
    parser = argparse.ArgumentParser(prog='pushdeploy',
                                     description='Pushdeploy Server')
    parser.add_argument("--host", type=str, default=ServerConfig.HOST)
    parser.add_argument("--port", type=int, default=ServerConfig.PORT)
    parser.add_argument("--reload", action="store_true", default=ServerConfig.RELOAD)

    args = parser.parse_args()

    logger.info("=" * 80)
    logger.info("Starting Pushdeploy Server...")
    logger.info(f"  - Server URL: http://{args.host}:{args.port}")
    logger.info(f"  - Documentation: http://{args.host}:{args.port}/docs")
    logger.info(f"  - Health Check: http://{args.host}:{args.port}/health")
    logger.info("=" * 80)

    try:
        run_api(host=args.host, port=args.port, reload=args.reload)
    except KeyboardInterrupt:
        logger.info("Shutting down Pushdeploy gracefully...")
    except Exception as e:
        logger.error(f"Application startup failed: {e}")
        sys.exit(1)


# Create the app instance
app = create_app()

if __name__ == "__main__":
    main()
