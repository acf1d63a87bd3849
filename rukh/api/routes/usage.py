"""
Usage Routes - Cost ledger reports.
"""
from typing import Any, Dict, Optional

from fastapi import APIRouter, Depends, Query

from rukh.api.deps import get_services
from rukh.core.exceptions import ValidationError
from rukh.core.validators import validate_wallet_address
from rukh.services.container import Services

router = APIRouter(
    prefix="/usage",
    tags=["Usage"],
)


@router.get(
    "",
    summary="Usage and cost report",
    description="""
    Without `walletAddress`: global totals, per-model breakdown and number
    of wallets. With it: that wallet's totals and request history.
    """
)
async def usage_report(
    wallet_address: Optional[str] = Query(default=None, alias="walletAddress"),
    services: Services = Depends(get_services),
) -> Dict[str, Any]:
    is_valid, error = validate_wallet_address(wallet_address)
    if not is_valid:
        raise ValidationError(error, field="walletAddress")
    return await services.ledger.generate_usage_report(wallet_address)
