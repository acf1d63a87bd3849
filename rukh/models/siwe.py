"""
Request and Response models for Sign-In with Ethereum.
"""
from pydantic import BaseModel, Field


class ChallengeResponse(BaseModel):
    message: str = Field(..., description="Text the wallet must sign")
    nonce: str = Field(..., description="Single-use nonce embedded in the message")


class VerifyRequest(BaseModel):
    address: str = Field(..., min_length=1, description="Address claimed by the signer")
    signature: str = Field(..., min_length=1, description="EIP-191 signature of the challenge")
    nonce: str = Field(..., min_length=1, description="Nonce from the challenge")


class VerifyResponse(BaseModel):
    success: bool
    address: str = Field(..., description="Checksummed signer address")
