"""
FastAPI Application for the Tutor Gateway

This module provides the HTTP endpoints of the gateway. Identity is not read
from the body: the authenticating edge proxy injects trusted headers that
are turned into a CallerContext here.

Endpoints:
    - POST /api/ai/tutor - Tutor or marketing assistant request
    - GET /api/health - Health check
    - GET /api/ops/tutor - Ops snapshot of recent tutor outcomes

Usage:
    uvicorn tutor_gateway.main:app --reload
"""

from typing import Optional

from fastapi import Depends, FastAPI, Header, Query, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from tutor_gateway import __version__
from tutor_gateway.agents.orchestrator import TutorGateway, create_gateway
from tutor_gateway.config import settings
from tutor_gateway.exceptions import GatewayError
from tutor_gateway.logging_config import get_logger, setup_logging
from tutor_gateway.models.context import CallerContext
from tutor_gateway.models.messages import TutorRequest, TutorResponse, create_error_response
from tutor_gateway.monitoring import init_monitoring
from tutor_gateway.services.plan_limits import PlanCatalog
from tutor_gateway.services.student_context import SupabaseStudentDataSource


# ===========================================
# Application Setup
# ===========================================

setup_logging()
logger = get_logger("main")

app = FastAPI(
    title="Tutor Gateway",
    description="Safety, quota and grounding gateway for the ElevatED AI tutor",
    version=__version__,
)

plan_catalog = PlanCatalog()
gateway: Optional[TutorGateway] = None


def get_gateway() -> TutorGateway:
    """Dependency for the gateway (one per process)."""
    global gateway
    if gateway is None:
        gateway = create_gateway(settings)
    return gateway


def get_plan_catalog() -> PlanCatalog:
    """Dependency for plan lookup."""
    return plan_catalog


def get_caller_context(
    request: Request,
    x_user_id: Optional[str] = Header(default=None),
    x_user_role: Optional[str] = Header(default=None),
    x_plan_slug: Optional[str] = Header(default=None),
    x_forwarded_for: Optional[str] = Header(default=None),
    catalog: PlanCatalog = Depends(get_plan_catalog),
) -> CallerContext:
    """
    Derive the caller context from proxy-injected headers.

    The client IP is the first X-Forwarded-For entry, else the socket peer.
    """
    client_ip = None
    if x_forwarded_for:
        client_ip = x_forwarded_for.split(",")[0].strip() or None
    if client_ip is None and request.client:
        client_ip = request.client.host

    return CallerContext(
        user_id=x_user_id or None,
        role=x_user_role or None,
        client_ip=client_ip,
        plan=catalog.get(x_plan_slug),
    )


# ===========================================
# Exception Handlers
# ===========================================


@app.exception_handler(GatewayError)
async def gateway_error_handler(request: Request, exc: GatewayError) -> JSONResponse:
    """Typed gateway errors carry their own status and safe message."""
    return JSONResponse(status_code=exc.status_code, content=create_error_response(exc.message))


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Malformed JSON and schema violations become a 400 with a message."""
    logger.warning(
        "Invalid request",
        extra={
            "component": "main",
            "event": "invalid_request",
            "data": {"path": request.url.path, "errors": len(exc.errors())},
        },
    )
    return JSONResponse(status_code=400, content=create_error_response("Invalid request body."))


# ===========================================
# REST Endpoints
# ===========================================


@app.get("/api/health")
async def health_check():
    """Health check endpoint."""
    return {"status": "healthy", "version": __version__}


@app.post("/api/ai/tutor", response_model=TutorResponse)
async def tutor(
    body: TutorRequest,
    caller: CallerContext = Depends(get_caller_context),
    tutor_gateway: TutorGateway = Depends(get_gateway),
) -> TutorResponse:
    """
    Answer a learning or marketing prompt.

    Learning responses carry the daily quota (remaining, limit, plan);
    marketing responses leave them null.
    """
    outcome = await tutor_gateway.handle(body, caller)
    return TutorResponse.from_outcome(outcome)


@app.get("/api/ops/tutor")
async def tutor_ops(
    window_minutes: int = Query(default=60, ge=1, le=24 * 60),
    tutor_gateway: TutorGateway = Depends(get_gateway),
):
    """Ops snapshot of tutor outcomes within the trailing window."""
    return tutor_gateway.ops_store.snapshot(window_seconds=window_minutes * 60)


# ===========================================
# Startup/Shutdown Events
# ===========================================


@app.on_event("startup")
async def startup_event():
    """Application startup."""
    init_monitoring(settings, release=f"tutor-gateway@{__version__}")
    logger.info(
        "Tutor Gateway starting",
        extra={
            "component": "main",
            "event": "startup",
            "data": {
                "env": settings.env,
                "debug": settings.debug,
                "primary_model": settings.primary_model,
                "fallback_model": settings.fallback_model,
                "api_key_configured": bool(settings.openrouter_api_key),
            },
        },
    )


@app.on_event("shutdown")
async def shutdown_event():
    """Application shutdown."""
    if gateway is not None:
        data_source = gateway.context_builder.data_source
        if isinstance(data_source, SupabaseStudentDataSource):
            await data_source.aclose()
        logger.info(
            "Tutor Gateway shutting down",
            extra={
                "component": "main",
                "event": "shutdown",
                "data": {"ops_events": len(gateway.ops_store)},
            },
        )
