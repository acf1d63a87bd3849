"""
Token Minter - Best-effort on-chain mint paired with every ask request.

One whole token (10 ** decimals) is minted to the caller's wallet. The
web3 client is synchronous, so each mint runs in a worker thread under a
deadline. Nothing here ever raises to the caller: an unconfigured
minter, an unreachable RPC node or a reverted transaction all yield the
placeholder hash and a non-ok Outcome.
"""
import asyncio
import threading
import time
from dataclasses import dataclass

from eth_account import Account
from web3 import Web3

from rukh.core.logging_config import LoggerMixin
from rukh.core.outcomes import Outcome, Severity

PLACEHOLDER_TX_HASH = "0x" + "0" * 64

# Roughly: decimals, nonce, chain id, gas estimate, fee lookup, raw send
RPC_CALLS_PER_MINT = 6


class MintBusyError(RuntimeError):
    """An earlier mint still holds the send lock."""


TOKEN_ABI = [
    {
        "inputs": [
            {"internalType": "address", "name": "to", "type": "address"},
            {"internalType": "uint256", "name": "amount", "type": "uint256"},
        ],
        "name": "mint",
        "outputs": [],
        "stateMutability": "nonpayable",
        "type": "function",
    },
    {
        "inputs": [],
        "name": "decimals",
        "outputs": [{"internalType": "uint8", "name": "", "type": "uint8"}],
        "stateMutability": "view",
        "type": "function",
    },
]


@dataclass(frozen=True)
class MintResult:
    tx_hash: str
    outcome: Outcome

    @property
    def minted(self) -> bool:
        return self.outcome.ok


class TokenMinter(LoggerMixin):
    """
    Mints reward tokens through a configured signer.

    Example:
        >>> minter = TokenMinter(rpc_url, private_key, token_address)
        >>> result = await minter.mint("0x446200cB329592134989B615d4C02f9f3c9E970F")
        >>> result.tx_hash
        '0x5f1c...'
    """

    def __init__(
        self,
        rpc_url: str = "",
        private_key: str = "",
        token_address: str = "",
        timeout: float = 30.0,
    ):
        self.timeout = timeout
        self.rpc_timeout = timeout / RPC_CALLS_PER_MINT
        self._w3 = None
        self._account = None
        self._contract = None
        # Serializes nonce lookup and submission across worker threads.
        self._send_lock = threading.Lock()

        if not (rpc_url and private_key and token_address):
            self.logger.warning("Missing Web3 configuration. Token minting will be disabled.")
            return

        try:
            self._w3 = Web3(Web3.HTTPProvider(rpc_url, request_kwargs={"timeout": self.rpc_timeout}))
            self._account = Account.from_key(private_key)
            self._contract = self._w3.eth.contract(
                address=Web3.to_checksum_address(token_address), abi=TOKEN_ABI
            )
            self.logger.info(f"Token minter initialized for {self._contract.address}")
        except Exception as e:
            self.logger.error(f"Failed to initialize Web3, minting disabled: {e}")
            self._w3 = self._account = self._contract = None

    @property
    def enabled(self) -> bool:
        return self._contract is not None

    async def mint(self, to: str) -> MintResult:
        """
        Mint one token to `to`.

        Returns:
            MintResult with the transaction hash, or the placeholder hash
        """
        if not self.enabled:
            return MintResult(
                PLACEHOLDER_TX_HASH,
                Outcome.failure("mint", "minting disabled", Severity.COSMETIC),
            )

        try:
            tx_hash = await asyncio.wait_for(asyncio.to_thread(self._mint_sync, to), self.timeout)
        except asyncio.TimeoutError:
            self.logger.error(
                f"Mint to {to} timed out after {self.timeout:.0f}s; "
                f"the worker thread may still submit its transaction"
            )
            return MintResult(PLACEHOLDER_TX_HASH, Outcome.failure("mint", "timeout"))
        except Exception as e:
            self.logger.error(f"Error minting token to {to}: {e}")
            return MintResult(PLACEHOLDER_TX_HASH, Outcome.failure("mint", str(e)))

        self.logger.debug(f"Mint transaction hash: {tx_hash}")
        return MintResult(tx_hash, Outcome.success("mint"))

    def _mint_sync(self, to: str) -> str:
        deadline = time.monotonic() + self.timeout
        recipient = Web3.to_checksum_address(to)

        # A worker abandoned by mint() may still hold the lock; never queue behind it
        if not self._send_lock.acquire(timeout=self.timeout / 2):
            raise MintBusyError("previous mint still in flight")
        try:
            decimals = self._contract.functions.decimals().call()
            tx = self._contract.functions.mint(recipient, 10 ** decimals).build_transaction({
                "from": self._account.address,
                "nonce": self._w3.eth.get_transaction_count(self._account.address, "pending"),
                "chainId": self._w3.eth.chain_id,
            })
            signed = self._account.sign_transaction(tx)
            tx_hash = Web3.to_hex(self._w3.eth.send_raw_transaction(signed.raw_transaction))
        finally:
            self._send_lock.release()

        if time.monotonic() > deadline:
            self.logger.warning(f"Abandoned mint to {to} was submitted late: {tx_hash}")
        return tx_hash
