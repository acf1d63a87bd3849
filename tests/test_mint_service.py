"""
Unit tests for the token minter.

The chain is never contacted: the disabled path needs no RPC, and the
enabled paths patch the synchronous mint call.
"""
import time

from eth_account import Account

from rukh.core.outcomes import Severity
from rukh.services.mint_service import PLACEHOLDER_TX_HASH, RPC_CALLS_PER_MINT, TokenMinter

RECIPIENT = "0x446200cB329592134989B615d4C02f9f3c9E970F"
TOKEN = "0x5FbDB2315678afecb367f032d93F642f64180aa3"


def _enabled_minter(timeout: float = 30.0) -> TokenMinter:
    """A minter wired to an unreachable local node; construction never connects."""
    return TokenMinter(
        rpc_url="http://127.0.0.1:1",
        private_key=Account.create().key.hex(),
        token_address=TOKEN,
        timeout=timeout,
    )


class TestDisabledMinter:
    """Test the unconfigured path."""

    async def test_placeholder_and_cosmetic_outcome(self):
        minter = TokenMinter()

        result = await minter.mint(RECIPIENT)

        assert not minter.enabled
        assert result.tx_hash == PLACEHOLDER_TX_HASH
        assert not result.minted
        assert result.outcome.severity is Severity.COSMETIC

    def test_partial_configuration_disables(self):
        assert not TokenMinter(rpc_url="http://127.0.0.1:8545").enabled


class TestEnabledMinter:
    """Test success, failure and timeout handling."""

    async def test_success(self, monkeypatch):
        minter = _enabled_minter()
        monkeypatch.setattr(minter, "_mint_sync", lambda to: "0x" + "ab" * 32)

        result = await minter.mint(RECIPIENT)

        assert minter.enabled
        assert result.minted
        assert result.tx_hash == "0x" + "ab" * 32

    async def test_failure_is_degraded(self, monkeypatch):
        minter = _enabled_minter()

        def _boom(to):
            raise ConnectionError("rpc unreachable")

        monkeypatch.setattr(minter, "_mint_sync", _boom)

        result = await minter.mint(RECIPIENT)

        assert result.tx_hash == PLACEHOLDER_TX_HASH
        assert result.outcome.severity is Severity.DEGRADED
        assert "rpc unreachable" in result.outcome.detail

    async def test_timeout_is_degraded(self, monkeypatch):
        minter = _enabled_minter(timeout=0.05)
        monkeypatch.setattr(minter, "_mint_sync", lambda to: time.sleep(0.5) or "0x01")

        result = await minter.mint(RECIPIENT)

        assert result.tx_hash == PLACEHOLDER_TX_HASH
        assert result.outcome.detail == "timeout"

    def test_rpc_timeout_fits_inside_mint_deadline(self):
        minter = _enabled_minter(timeout=30.0)

        assert minter.rpc_timeout * RPC_CALLS_PER_MINT == 30.0

    async def test_does_not_queue_behind_stuck_mint(self):
        """A mint whose predecessor still holds the send lock gives up quickly."""
        minter = _enabled_minter(timeout=0.2)
        minter._send_lock.acquire()
        try:
            result = await minter.mint(RECIPIENT)
        finally:
            minter._send_lock.release()

        assert result.tx_hash == PLACEHOLDER_TX_HASH
        assert result.outcome.severity is Severity.DEGRADED
        assert "still in flight" in result.outcome.detail
