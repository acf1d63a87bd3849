"""
SIWE Service - Sign-In with Ethereum challenge and verification.

Flow:
1. Client calls generate_challenge() and gets {message, nonce}
2. Client signs the message with its wallet (EIP-191 personal message)
3. verify_signature() recovers the signer and compares it to the claim

Nonces are single-use and expire after the configured TTL. They live in
a NonceStore owned by the service container, not in module globals.
"""
import time
import uuid
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Callable, Dict, Optional

from eth_account import Account
from eth_account.messages import encode_defunct
from web3 import Web3

from rukh.core.logging_config import LoggerMixin

CHALLENGE_TEMPLATE = (
    "Sign this message to authenticate with Rukh API. Nonce: {nonce}. Timestamp: {timestamp}"
)


@dataclass
class _IssuedNonce:
    message: str
    expires_at: float
    used: bool = False


class NonceStore:
    """
    Issued nonces and the exact messages they were issued with.

    Expired entries are dropped when looked up and by sweep(), which the
    service runs every time it issues a new challenge.
    """

    def __init__(self, ttl_seconds: int = 900, clock: Callable[[], float] = time.monotonic):
        self.ttl_seconds = ttl_seconds
        self._clock = clock
        self._entries: Dict[str, _IssuedNonce] = {}

    def __len__(self) -> int:
        return len(self._entries)

    def issue(self, nonce: str, message: str) -> None:
        self._entries[nonce] = _IssuedNonce(message=message, expires_at=self._clock() + self.ttl_seconds)

    def is_valid(self, nonce: str) -> bool:
        """True if the nonce exists, has not expired and has not been used."""
        entry = self._entries.get(nonce)
        if entry is None:
            return False
        if self._clock() > entry.expires_at:
            del self._entries[nonce]
            return False
        return not entry.used

    def consume(self, nonce: str) -> Optional[str]:
        """Mark a valid nonce as used and return its message."""
        if not self.is_valid(nonce):
            return None
        entry = self._entries[nonce]
        entry.used = True
        return entry.message

    def sweep(self) -> int:
        now = self._clock()
        expired = [n for n, entry in self._entries.items() if now > entry.expires_at]
        for nonce in expired:
            del self._entries[nonce]
        return len(expired)


class SiweService(LoggerMixin):
    """
    Challenge issuance and signature verification.

    Example:
        >>> siwe = SiweService(NonceStore())
        >>> challenge = siwe.generate_challenge()
        >>> signed = Account.sign_message(encode_defunct(text=challenge["message"]), key)
        >>> siwe.verify_signature(address, signed.signature.hex(), challenge["nonce"])
        True
    """

    def __init__(self, nonces: NonceStore):
        self.nonces = nonces

    def generate_challenge(self) -> Dict[str, str]:
        nonce = str(uuid.uuid4())
        timestamp = datetime.now(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")
        message = CHALLENGE_TEMPLATE.format(nonce=nonce, timestamp=timestamp)

        self.nonces.issue(nonce, message)
        swept = self.nonces.sweep()
        if swept:
            self.logger.debug(f"Swept {swept} expired nonces")

        return {"message": message, "nonce": nonce}

    def verify_signature(self, address: str, signature: str, nonce: str) -> bool:
        """
        Check that `signature` over the nonce's challenge was made by `address`.

        The nonce is consumed even when the signature does not match.

        Returns:
            True if the recovered signer equals the claimed address
        """
        if not self.nonces.is_valid(nonce):
            self.logger.warning(f"Invalid or expired nonce: {nonce}")
            return False

        try:
            claimed = Web3.to_checksum_address(address)
        except (ValueError, TypeError) as e:
            self.logger.warning(f"Malformed address {address!r}: {e}")
            return False

        message = self.nonces.consume(nonce)
        if message is None:
            return False

        try:
            recovered = Account.recover_message(encode_defunct(text=message), signature=signature)
        except Exception as e:
            self.logger.error(f"Error verifying signature: {e}")
            return False

        is_valid = recovered.lower() == claimed.lower()
        self.logger.debug(
            f"Signature verification: {'VALID' if is_valid else 'INVALID'} "
            f"(claimed={claimed}, recovered={recovered})"
        )
        return is_valid

    @staticmethod
    def checksum(address: str) -> str:
        return Web3.to_checksum_address(address)
