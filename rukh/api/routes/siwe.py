"""
SIWE Routes - Challenge issuance and signature verification.
"""
from fastapi import APIRouter, Depends

from rukh.api.deps import get_services
from rukh.core.exceptions import InvalidSignatureError
from rukh.core.logging_config import get_logger
from rukh.models.chat import ErrorResponse
from rukh.models.siwe import ChallengeResponse, VerifyRequest, VerifyResponse
from rukh.services.container import Services

logger = get_logger(__name__)

router = APIRouter(
    prefix="/siwe",
    tags=["SIWE"],
)


@router.get("/challenge", response_model=ChallengeResponse, summary="Get a message to sign")
async def challenge(services: Services = Depends(get_services)) -> ChallengeResponse:
    """Issue a single-use nonce and the exact message the wallet must sign."""
    return ChallengeResponse(**services.siwe.generate_challenge())


@router.post(
    "/verify",
    response_model=VerifyResponse,
    responses={401: {"model": ErrorResponse, "description": "Invalid signature"}},
    summary="Verify a signed challenge",
)
async def verify(body: VerifyRequest, services: Services = Depends(get_services)) -> VerifyResponse:
    if not services.siwe.verify_signature(body.address, body.signature, body.nonce):
        raise InvalidSignatureError()
    return VerifyResponse(success=True, address=services.siwe.checksum(body.address))
