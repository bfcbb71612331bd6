"""
FastAPI application exposing the availability monitor.
"""

import asyncio
from contextlib import asynccontextmanager
from datetime import datetime
from typing import Optional

import structlog
from fastapi import FastAPI, HTTPException, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from api.config import config as api_config
from api.models import ErrorResponse, HealthResponse, MonitorRequest, MonitorResponse
from monitor.errors import ConfigurationError, MonitorError
from monitor.models import Credentials, MonitorRunResult
from monitor.orchestrator import MonitorOrchestrator, build_orchestrator
from utilities.config import config

logger = structlog.get_logger(__name__)

# Global orchestrator
monitor_orchestrator: MonitorOrchestrator = None

# One run at a time per process
run_lock = asyncio.Lock()


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan manager."""
    logger.info("Starting Availability Monitor API")

    global monitor_orchestrator
    try:
        monitor_orchestrator = build_orchestrator(config)
    except MonitorError as e:
        logger.error("Failed to initialize monitor", error=str(e))
        raise

    yield

    logger.info("Shutting down Availability Monitor API")


app = FastAPI(
    title=api_config.api_title,
    description="""
    Reservation calendar availability monitor.

    ## Features

    * **Trigger**: run a full check of the next 90 days of calendar months
    * **Change detection**: visual comparison against stored baselines
    * **Notifications**: webhook alert for new availability, at most twice per day
    """,
    version=api_config.api_version,
    lifespan=lifespan
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=api_config.cors_origins,
    allow_credentials=api_config.cors_allow_credentials,
    allow_methods=api_config.cors_allow_methods,
    allow_headers=api_config.cors_allow_headers,
)


# Exception handlers
@app.exception_handler(HTTPException)
async def http_exception_handler(request, exc: HTTPException):
    """Handle HTTP exceptions."""
    return JSONResponse(
        status_code=exc.status_code,
        content=ErrorResponse(
            error=exc.detail,
            status_code=exc.status_code
        ).dict(),
        headers=exc.headers
    )


@app.exception_handler(Exception)
async def general_exception_handler(request, exc: Exception):
    """Handle general exceptions."""
    logger.error("Unhandled exception", error=str(exc), path=request.url.path)
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content=ErrorResponse(
            error="Internal server error",
            detail=str(exc) if api_config.debug else None,
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR
        ).dict()
    )


def build_monitor_response(result: MonitorRunResult) -> MonitorResponse:
    """Map a run result onto the trigger response body."""
    return MonitorResponse(
        success=result.success,
        request_id=result.request_id,
        timestamp=(result.finished_at or datetime.utcnow()).isoformat(),
        months_checked=result.summary.total_months_checked,
        changed_months=result.summary.months_with_changes,
        summary=result.summary.to_wire(),
        results=[outcome.to_summary_dict() for outcome in result.outcomes],
        webhook_sent=result.webhook_sent
    )


@app.get("/", tags=["Service"])
async def root():
    """Service description."""
    return {
        "service": api_config.api_title,
        "version": api_config.api_version,
        "status": "running",
        "endpoints": {
            "health": "GET /health",
            "monitor": "POST /api/monitor"
        }
    }


@app.get("/health", response_model=HealthResponse, tags=["Health"])
async def health_check():
    """Health check endpoint."""
    credentials = config.get_credentials()
    return HealthResponse(
        status="healthy" if monitor_orchestrator else "degraded",
        timestamp=datetime.utcnow(),
        version=api_config.api_version,
        browser="ready" if monitor_orchestrator else "not_initialized",
        credentials_configured=credentials.is_complete,
        run_in_progress=run_lock.locked()
    )


@app.post("/api/monitor", tags=["Monitor"])
async def trigger_monitor(request: Optional[MonitorRequest] = None):
    """
    Run the availability monitor once.

    - **credentialA** / **username**: site username (falls back to configuration)
    - **credentialB** / **password**: site password (falls back to configuration)
    - **requestId**: optional identifier echoed in the response
    """
    request = request or MonitorRequest()
    configured = config.get_credentials()
    credentials = Credentials(
        username=request.username or configured.username,
        password=request.password or configured.password
    )
    if not credentials.is_complete:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Missing credentials: provide credentialA and credentialB or configure them"
        )

    if not monitor_orchestrator:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Monitor service not available"
        )

    if run_lock.locked():
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail="A monitor run is already in progress"
        )

    request_id = request.request_id or f"local-{int(datetime.utcnow().timestamp() * 1000)}"
    logger.info("Monitor run requested", request_id=request_id)

    async with run_lock:
        try:
            result = await asyncio.wait_for(
                monitor_orchestrator.run(credentials, request_id=request_id),
                timeout=config.run_timeout_seconds
            )
        except asyncio.TimeoutError:
            logger.error("Monitor run timed out", request_id=request_id, timeout=config.run_timeout_seconds)
            raise HTTPException(
                status_code=status.HTTP_504_GATEWAY_TIMEOUT,
                detail=f"Monitor run exceeded {config.run_timeout_seconds} seconds"
            )
        except ConfigurationError as e:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail=str(e)
            )
        except MonitorError as e:
            logger.error("Monitor run failed", request_id=request_id, error=str(e))
            raise HTTPException(
                status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
                detail=f"Monitor run failed: {str(e)}"
            )

    response = build_monitor_response(result)
    return JSONResponse(content=response.dict(by_alias=True))


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "api.main:app",
        host=api_config.host,
        port=api_config.port,
        reload=api_config.debug,
        log_level="info"
    )
