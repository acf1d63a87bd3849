"""
Unit tests for SIWE challenges, nonce handling and the subscription gate.

Signatures are produced with throwaway eth_account keys.
"""
from eth_account import Account
from eth_account.messages import encode_defunct
from web3 import Web3

from rukh.services.access_gate import SubscriptionGate
from rukh.services.siwe_service import NonceStore, SiweService


class FakeClock:
    def __init__(self, now: float = 1000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now


def _sign(account, message: str) -> str:
    signed = Account.sign_message(encode_defunct(text=message), private_key=account.key)
    return Web3.to_hex(signed.signature)


def _service(clock=None):
    return SiweService(NonceStore(ttl_seconds=900, clock=clock or FakeClock()))


class TestChallenge:
    """Test challenge issuance."""

    def test_challenge_embeds_nonce(self):
        challenge = _service().generate_challenge()

        assert challenge["nonce"] in challenge["message"]
        assert challenge["message"].startswith("Sign this message to authenticate with Rukh API.")

    def test_challenges_are_unique(self):
        siwe = _service()

        assert siwe.generate_challenge()["nonce"] != siwe.generate_challenge()["nonce"]

    def test_issuing_sweeps_expired_nonces(self):
        clock = FakeClock()
        siwe = _service(clock)
        siwe.generate_challenge()
        clock.now += 901

        siwe.generate_challenge()

        assert len(siwe.nonces) == 1


class TestVerifySignature:
    """Test signature recovery and nonce rules."""

    def test_valid_signature(self):
        account = Account.create()
        siwe = _service()
        challenge = siwe.generate_challenge()

        assert siwe.verify_signature(account.address, _sign(account, challenge["message"]), challenge["nonce"])

    def test_address_comparison_ignores_case(self):
        account = Account.create()
        siwe = _service()
        challenge = siwe.generate_challenge()
        signature = _sign(account, challenge["message"])

        assert siwe.verify_signature(account.address.lower(), signature, challenge["nonce"])

    def test_nonce_is_single_use(self):
        account = Account.create()
        siwe = _service()
        challenge = siwe.generate_challenge()
        signature = _sign(account, challenge["message"])

        assert siwe.verify_signature(account.address, signature, challenge["nonce"])
        assert not siwe.verify_signature(account.address, signature, challenge["nonce"])

    def test_wrong_signer_consumes_nonce(self):
        """A mismatched signature still burns the nonce."""
        owner, impostor = Account.create(), Account.create()
        siwe = _service()
        challenge = siwe.generate_challenge()

        assert not siwe.verify_signature(owner.address, _sign(impostor, challenge["message"]), challenge["nonce"])
        assert not siwe.verify_signature(owner.address, _sign(owner, challenge["message"]), challenge["nonce"])

    def test_expired_nonce(self):
        account = Account.create()
        clock = FakeClock()
        siwe = _service(clock)
        challenge = siwe.generate_challenge()
        signature = _sign(account, challenge["message"])
        clock.now += 901

        assert not siwe.verify_signature(account.address, signature, challenge["nonce"])

    def test_unknown_nonce(self):
        account = Account.create()

        assert not _service().verify_signature(account.address, "0x00", "never-issued")

    def test_malformed_signature(self):
        account = Account.create()
        siwe = _service()
        challenge = siwe.generate_challenge()

        assert not siwe.verify_signature(account.address, "0x1234", challenge["nonce"])

    def test_malformed_address_keeps_nonce(self):
        """A bad address is rejected before the nonce is spent."""
        account = Account.create()
        siwe = _service()
        challenge = siwe.generate_challenge()
        signature = _sign(account, challenge["message"])

        assert not siwe.verify_signature("not-an-address", signature, challenge["nonce"])
        assert siwe.verify_signature(account.address, signature, challenge["nonce"])


class TestSubscriptionGate:
    """Test the fail-open subscription check."""

    async def test_anonymous_or_no_data_is_granted(self):
        gate = SubscriptionGate(_service())

        assert await gate.is_subscribed(None, {"nonce": "x", "signature": "0x00"})
        assert await gate.is_subscribed("0x" + "a" * 40, None)

    async def test_valid_proof_is_granted(self):
        account = Account.create()
        siwe = _service()
        challenge = siwe.generate_challenge()
        data = {"nonce": challenge["nonce"], "signature": _sign(account, challenge["message"])}

        assert await SubscriptionGate(siwe).is_subscribed(account.address, data)

    async def test_json_string_proof(self):
        """Multipart forms carry the proof as a JSON string."""
        account = Account.create()
        siwe = _service()
        challenge = siwe.generate_challenge()
        signature = _sign(account, challenge["message"])
        data = f'{{"nonce": "{challenge["nonce"]}", "signature": "{signature}"}}'

        assert await SubscriptionGate(siwe).is_subscribed(account.address, data)

    async def test_failed_proof_is_denied(self):
        account = Account.create()

        assert not await SubscriptionGate(_service()).is_subscribed(
            account.address, {"nonce": "bogus", "signature": "0x00"}
        )

    async def test_missing_signature_is_denied(self):
        siwe = _service()
        challenge = siwe.generate_challenge()

        assert not await SubscriptionGate(siwe).is_subscribed(
            Account.create().address, {"nonce": challenge["nonce"]}
        )

    async def test_internal_error_grants_access(self):
        """Unparsable proof data is an internal error, so access is granted."""
        assert await SubscriptionGate(_service()).is_subscribed("0x" + "b" * 40, "not json")
