"""
Wallet - Signing session for registry submissions

A Wallet binds an identity (Ethereum address) to the private key that
proves it. Every state-changing ledger call is signed as an EIP-191
personal message over the canonical JSON of the call, so the ledger can
recover the submitter without trusting a claimed address.
"""

import json
import uuid
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

# Ethereum compatibility
from eth_account import Account
from eth_account.messages import encode_defunct


def canonical_json(obj: Dict[str, Any]) -> str:
    # Deterministic, minimal JSON for signing
    return json.dumps(obj, separators=(",", ":"), sort_keys=True, ensure_ascii=False)


@dataclass(frozen=True)
class SignedCall:
    """A state-changing ledger call, signed by its sender"""
    sender: str
    method: str
    args: List[Any]
    nonce: str
    signature: str  # 0x-prefixed hex

    def message(self) -> str:
        """The exact text that was signed"""
        return call_message(self.sender, self.method, self.args, self.nonce)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "sender": self.sender,
            "method": self.method,
            "args": list(self.args),
            "nonce": self.nonce,
            "signature": self.signature,
        }


def call_message(sender: str, method: str, args: List[Any], nonce: str) -> str:
    return canonical_json({
        "sender": sender,
        "method": method,
        "args": list(args),
        "nonce": nonce,
    })


def recover_sender(call: SignedCall) -> str:
    """
    Recover the address that signed a call

    Returns:
        Checksummed address of the signer
    """
    msg = encode_defunct(text=call.message())
    signature = bytes.fromhex(call.signature[2:] if call.signature.startswith("0x") else call.signature)
    return Account.recover_message(msg, signature=signature)


class Wallet:
    """
    Signing capability for one identity

    Features:
    - Create a fresh key pair or load an existing private key
    - Sign ledger calls with a unique nonce per call
    """

    def __init__(self, account):
        self._account = account

    @classmethod
    def create(cls) -> "Wallet":
        """Generate a new random key pair"""
        return cls(Account.create())

    @classmethod
    def from_key(cls, private_key: str) -> "Wallet":
        """
        Load a wallet from an Ethereum private key

        Args:
            private_key: hex string, with or without 0x prefix
        """
        return cls(Account.from_key(private_key))

    @property
    def identity(self) -> str:
        return self._account.address

    def sign_call(self, method: str, args: List[Any], nonce: Optional[str] = None) -> SignedCall:
        """
        Sign a ledger call

        Args:
            method: ledger write method (e.g. "appendDocument")
            args: positional arguments of the call
            nonce: replay-protection token; a random one is generated if omitted

        Returns:
            SignedCall ready for submission
        """
        nonce = nonce or uuid.uuid4().hex
        text = call_message(self.identity, method, args, nonce)
        signed = self._account.sign_message(encode_defunct(text=text))

        return SignedCall(
            sender=self.identity,
            method=method,
            args=list(args),
            nonce=nonce,
            signature="0x" + bytes(signed.signature).hex(),
        )

    def __repr__(self) -> str:
        return f"Wallet({self.identity})"
