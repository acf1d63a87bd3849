"""
Health Check Routes - System health and monitoring endpoints.

Besides liveness, the health payload carries the count of degraded
best-effort operations (failed session writes, ledger writes, mints) so
operators can alert on them without parsing logs.
"""
from datetime import datetime

from fastapi import APIRouter, Depends

from rukh import __version__
from rukh.api.deps import get_services
from rukh.core.logging_config import get_logger
from rukh.models.chat import HealthResponse
from rukh.services.container import Services

logger = get_logger(__name__)

router = APIRouter(
    prefix="/health",
    tags=["Health"],
)


@router.get(
    "",
    response_model=HealthResponse,
    summary="Health check endpoint",
    description="""
    Returns the current health status of the service.

    Status is `degraded` when any best-effort operation has failed since
    startup; the request path itself keeps serving either way.
    """
)
async def health_check(services: Services = Depends(get_services)) -> HealthResponse:
    logger.debug("Health check requested")

    degradations = services.degradations.snapshot()
    return HealthResponse(
        status="degraded" if degradations else "healthy",
        version=__version__,
        timestamp=datetime.utcnow(),
        degradations=degradations,
    )
