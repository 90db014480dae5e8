"""
Main application factory for remotefs
"""

import logging
import logging.handlers
import os
import sys
from pathlib import Path

import uvicorn
from fastapi import FastAPI

from . import __version__
from .config import load_config, CONFIG_ENV, ROOT_ENV, DEFAULT_CONFIG_PATH
from .models import Config
from .middleware import setup_middleware
from .api import setup_api_routes
from .storage_server import StorageServer
from .metrics import metrics_manager


logger = logging.getLogger(__name__)


def setup_logging(config: Config):
    """Setup logging configuration"""
    log_config = config.logging

    # Configure root logger
    root_logger = logging.getLogger()
    root_logger.setLevel(getattr(logging, log_config.level.upper(), logging.INFO))

    # Clear existing handlers
    root_logger.handlers.clear()

    # Create formatter
    if log_config.json:
        formatter = logging.Formatter(
            '{"time":"%(asctime)s","level":"%(levelname)s","logger":"%(name)s","msg":"%(message)s"}'
        )
    else:
        formatter = logging.Formatter(
            '%(asctime)s - %(name)s - %(levelname)s - %(message)s'
        )

    # Console handler
    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setFormatter(formatter)
    root_logger.addHandler(console_handler)

    # File handler if configured
    if log_config.file:
        log_file = Path(log_config.file)
        log_file.parent.mkdir(parents=True, exist_ok=True)

        file_handler = logging.handlers.RotatingFileHandler(
            log_file,
            maxBytes=log_config.max_size_mb * 1024 * 1024,
            backupCount=log_config.backup_count,
            encoding='utf-8'
        )
        file_handler.setFormatter(formatter)
        root_logger.addHandler(file_handler)


def create_directories(config: Config):
    """Create the storage root if configured to"""
    root = config.storage.root
    try:
        if config.storage.create:
            root.mkdir(parents=True, exist_ok=True)
            logger.info(f"Ensured storage root exists: {root}")
        elif not root.is_dir():
            logger.warning(f"Storage root does not exist: {root}")

    except OSError as e:
        logger.error(f"Failed to create directories: {e}")
        raise


def create_app(config_path: str = None) -> FastAPI:
    """Create FastAPI application"""

    # Falls back to $REMOTEFS_CONFIG, then the default file name
    config = load_config(config_path)

    setup_logging(config)
    create_directories(config)

    app = FastAPI(
        title="remotefs",
        description="Remote filesystem over HTTP",
        version=__version__,
        docs_url="/docs" if os.getenv("REMOTEFS_DEBUG") else None,
        redoc_url="/redoc" if os.getenv("REMOTEFS_DEBUG") else None,
    )

    # The storage root is fixed for the lifetime of the app
    app.state.config = config
    app.state.storage = StorageServer(config.storage)
    app.state.metrics = metrics_manager

    setup_middleware(app)
    setup_api_routes(app)

    @app.get("/healthz")
    async def health_check():
        return {"ok": True, "version": __version__}

    @app.get("/metrics")
    async def get_metrics():
        return metrics_manager.get_metrics()

    @app.on_event("startup")
    async def startup_event():
        logger.info(f"remotefs starting on {config.server.addr}:{config.server.port}")
        logger.info(f"Storage root: {config.storage.root}")
        logger.info(f"TLS: {'enabled' if config.server.tls.enabled else 'disabled'}")

    @app.on_event("shutdown")
    async def shutdown_event():
        logger.info("remotefs shutdown complete")

    return app


def main():
    """Main entry point for running the server"""
    import argparse

    parser = argparse.ArgumentParser(description="remotefs file server")
    parser.add_argument("--config", "-c", default=DEFAULT_CONFIG_PATH, help="Configuration file path")
    parser.add_argument("--host", default=None, help="Host to bind to")
    parser.add_argument("--port", type=int, default=None, help="Port to bind to")
    parser.add_argument("--root", default=None, help="Storage root directory")
    parser.add_argument("--reload", action="store_true", help="Enable auto-reload")
    parser.add_argument("--debug", action="store_true", help="Enable debug mode")

    args = parser.parse_args()

    # The app factory runs in uvicorn, so settings travel through the environment
    os.environ[CONFIG_ENV] = args.config
    if args.root:
        os.environ[ROOT_ENV] = args.root
    if args.debug:
        os.environ["REMOTEFS_DEBUG"] = "1"

    # Load config to get server settings
    config = load_config(args.config)

    # Override with command line args
    host = args.host or config.server.addr
    port = args.port or config.server.port

    # SSL context
    ssl_keyfile = None
    ssl_certfile = None
    if config.server.tls.enabled:
        ssl_keyfile = config.server.tls.keyfile
        ssl_certfile = config.server.tls.certfile

    uvicorn.run(
        "remotefs.main:create_app",
        factory=True,
        host=host,
        port=port,
        reload=args.reload,
        ssl_keyfile=ssl_keyfile,
        ssl_certfile=ssl_certfile,
        access_log=False,  # We handle access logging ourselves
        server_header=False,
        date_header=False,
    )


if __name__ == "__main__":
    main()
