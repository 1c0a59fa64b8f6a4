"""FastAPI application: the claims REST API mounted under ``/api``."""

from contextlib import asynccontextmanager
from typing import AsyncGenerator

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from claim_workflow import __version__
from claim_workflow.api.dependencies import build_services
from claim_workflow.api.router import api_router
from claim_workflow.db.database import init_db
from claim_workflow.exceptions import ClaimWorkflowError, ValidationError
from claim_workflow.observability import get_logger

logger = get_logger(__name__)

API_PREFIX = "/api"


def _validation_message(exc: RequestValidationError) -> str:
    parts = []
    for error in exc.errors():
        loc = [str(p) for p in error.get("loc", ()) if p not in ("body", "query", "path", "form")]
        field = ".".join(loc)
        msg = error.get("msg", "Invalid value")
        parts.append(f"{field}: {msg}" if field else msg)
    return "; ".join(parts) or "Invalid request."


async def workflow_error_handler(request: Request, exc: ClaimWorkflowError) -> JSONResponse:
    logger.info(
        "Request rejected",
        extra={"path": request.url.path, "error": exc.code, "status_code": exc.status_code},
    )
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


async def request_validation_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    error = ValidationError(_validation_message(exc))
    return JSONResponse(status_code=error.status_code, content=error.to_dict())


def create_app(db_path: str | None = None, upload_dir: str | None = None) -> FastAPI:
    """Build the API. ``db_path`` and ``upload_dir`` default to the environment settings."""

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
        logger.info("Starting claims API", extra={"version": __version__})
        init_db(db_path)
        yield
        logger.info("Shutting down claims API")

    app = FastAPI(
        title="Claim Workflow API",
        version=__version__,
        description="Maker-checker workflow for insurance claims",
        lifespan=lifespan,
    )
    app.state.services = build_services(db_path, upload_dir)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.add_exception_handler(ClaimWorkflowError, workflow_error_handler)
    app.add_exception_handler(RequestValidationError, request_validation_handler)
    app.include_router(api_router, prefix=API_PREFIX)
    return app


app = create_app()
