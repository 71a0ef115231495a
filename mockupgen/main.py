import logging
import os
from contextlib import asynccontextmanager
from typing import Optional

from dotenv import load_dotenv
from fastapi import FastAPI, HTTPException
from fastapi.middleware.cors import CORSMiddleware

# Load env from the package directory before settings are read
package_dir = os.path.dirname(os.path.abspath(__file__))
if "PYTEST_CURRENT_TEST" not in os.environ:
    load_dotenv(dotenv_path=os.path.join(package_dir, ".env"))

from mockupgen.core.config import settings, validate_config  # noqa: E402
from mockupgen.core.database import check_connection, dispose_engine  # noqa: E402
from mockupgen.core.logging import configure_logging  # noqa: E402
from mockupgen.core.middleware.request_id import RequestIdMiddleware  # noqa: E402
from mockupgen.core.errors import (  # noqa: E402
    AppError,
    app_error_handler,
    http_error_handler,
    unhandled_exception_handler,
)
from mockupgen.api import feature_usage, usage, plans, health  # noqa: E402
from mockupgen.features.access.service import AccessEvaluator, build_access_evaluator  # noqa: E402


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger = logging.getLogger("mockupgen")
    logger.info("Starting mockup generator backend...")
    if not check_connection():
        logger.warning("Database not reachable at startup; usage reads will degrade to zero")
    try:
        yield
    finally:
        logger.info("Stopping mockup generator backend...")
        dispose_engine()


def create_app(evaluator: Optional[AccessEvaluator] = None) -> FastAPI:
    """Build the API. The access evaluator (and its plan catalog) is fixed here."""
    configure_logging(settings.ENV)
    validate_config()

    app = FastAPI(title="Mockup Generator - Backend", lifespan=lifespan)
    app.state.access_evaluator = evaluator or build_access_evaluator()

    app.add_middleware(RequestIdMiddleware)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins(),
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.add_exception_handler(AppError, app_error_handler)
    app.add_exception_handler(HTTPException, http_error_handler)
    app.add_exception_handler(Exception, unhandled_exception_handler)

    app.include_router(feature_usage.router)
    app.include_router(usage.router)
    app.include_router(plans.router)
    app.include_router(health.router)
    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn

    uvicorn.run("mockupgen.main:app", host="0.0.0.0", port=int(os.getenv("PORT", "8000")), reload=False)
