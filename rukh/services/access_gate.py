"""
Access Gate - Subscription check for the gated context.

Fail-open policy: anonymous callers, callers without auth data and any
internal error are all granted access. Only a proof that fails
verification (bad signature, unknown or spent nonce) denies.
"""
from typing import Any, Optional

from rukh.core.logging_config import LoggerMixin
from rukh.core.validators import parse_auth_data
from rukh.services.siwe_service import SiweService


class SubscriptionGate(LoggerMixin):
    """Decides whether a wallet may continue past its free uses."""

    def __init__(self, siwe: SiweService):
        self.siwe = siwe

    async def is_subscribed(self, wallet_address: Optional[str], data: Any = None) -> bool:
        """
        Check a wallet's subscription using the SIWE proof in `data`.

        Args:
            wallet_address: Caller's wallet
            data: Dict or JSON string carrying `nonce` and `signature`

        Returns:
            False only when the proof is present and fails verification
        """
        if not wallet_address or not data:
            self.logger.debug("No wallet address or auth data, granting access")
            return True

        try:
            auth = parse_auth_data(data) or {}
            nonce = str(auth.get("nonce") or "")
            signature = str(auth.get("signature") or "")
            verified = self.siwe.verify_signature(wallet_address, signature, nonce)
        except Exception as e:
            self.logger.error(f"Subscription check failed, granting access: {e}")
            return True

        if verified:
            self.logger.info(f"Subscription verified for wallet {wallet_address}")
        else:
            self.logger.warning(f"Subscription verification failed for wallet {wallet_address}")
        return verified
