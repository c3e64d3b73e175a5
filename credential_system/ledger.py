"""
Ledger Surface
==============

The registry's authoritative store. The core talks to it only through the
`Ledger` interface below:

Reads:  owner_of, is_issuer, document_count, document_at
Writes: submit(SignedCall) -> TxHandle, then get_receipt(tx_hash)

`InMemoryLedger` is a reference node that enforces the registry contract
rules itself: it recovers the submitter from the call signature, assigns
document indexes at execution time and serializes block production, so it
is safe to use as the authoritative store for development and tests.
"""

import hashlib
import logging
import threading
from dataclasses import dataclass
from enum import Enum
from typing import Dict, List, Optional, Set, Tuple

from .errors import (
    IndexOutOfRangeError,
    InvalidIdentityError,
    RegistryUnavailableError,
    TransactionRejectedError,
)
from .identity import normalize_identity
from .wallet import SignedCall, recover_sender

logger = logging.getLogger(__name__)

# Sentinel for "no attester" as stored by the ledger
NO_ATTESTER = "0x0000000000000000000000000000000000000000"

REGISTER_ISSUER = "registerIssuer"
APPEND_DOCUMENT = "appendDocument"
ATTEST_DOCUMENT = "attestDocument"

# method -> (handler, argument types)
_ABI = {
    REGISTER_ISSUER: ("_register_issuer", ("address",)),
    APPEND_DOCUMENT: ("_append_document", ("string", "string")),
    ATTEST_DOCUMENT: ("_attest_document", ("address", "uint256")),
}


def _matches(value, abi_type: str) -> bool:
    if abi_type in ("address", "string"):
        return isinstance(value, str)
    if abi_type == "uint256":
        return isinstance(value, int) and not isinstance(value, bool) and value >= 0
    return False


class TxStatus(Enum):
    """Outcome of awaiting a submitted transition"""
    FINALIZED = "finalized"
    REJECTED = "rejected"
    PENDING = "pending"  # caller stopped awaiting; may still finalize later


@dataclass(frozen=True)
class TxHandle:
    """Returned by every state-changing submission"""
    tx_hash: str
    sender: str
    method: str


@dataclass
class TxReceipt:
    """Result of a submitted transition"""
    tx_hash: str
    status: TxStatus
    reason: Optional[str] = None
    block: Optional[int] = None

    @property
    def is_final(self) -> bool:
        return self.status is not TxStatus.PENDING

    def to_dict(self) -> dict:
        return {
            "txHash": self.tx_hash,
            "status": self.status.value,
            "reason": self.reason,
            "block": self.block,
        }


@dataclass(frozen=True)
class DocumentRecord:
    """Raw document tuple as the ledger returns it"""
    content_ref: str
    label: str
    attested_by: str
    verified: bool


class Ledger:
    """
    Ledger contract surface

    Implementations must raise RegistryUnavailableError when unreachable
    and IndexOutOfRangeError for document reads past the subject's count.
    """

    async def owner_of(self) -> str:
        raise NotImplementedError

    async def is_issuer(self, identity: str) -> bool:
        raise NotImplementedError

    async def document_count(self, subject: str) -> int:
        raise NotImplementedError

    async def document_at(self, subject: str, index: int) -> DocumentRecord:
        raise NotImplementedError

    async def submit(self, call: SignedCall) -> TxHandle:
        raise NotImplementedError

    async def get_receipt(self, tx_hash: str) -> Optional[TxReceipt]:
        """Return the receipt once finalized, None while still pending"""
        raise NotImplementedError


class _Revert(Exception):
    pass


@dataclass
class _PendingTx:
    handle: TxHandle
    call: SignedCall


class InMemoryLedger(Ledger):
    """
    Reference ledger node enforcing the registry rules

    Features:
    - Owner fixed at genesis, append-only Issuer set
    - Per-subject append-only document lists, index assigned on execution
    - Signature-recovered submitters and nonce replay protection
    - Automine (auto_finalize=True) or manual block production
    """

    def __init__(self, owner: str, auto_finalize: bool = True):
        self._owner = normalize_identity(owner)
        self._issuers: Set[str] = set()
        self._documents: Dict[str, List[DocumentRecord]] = {}
        self._pending: List[_PendingTx] = []
        self._receipts: Dict[str, TxReceipt] = {}
        self._seen_nonces: Set[Tuple[str, str]] = set()
        self._lock = threading.RLock()
        self._block = 0
        self._available = True
        self.auto_finalize = auto_finalize

    # ==================== NODE CONTROL ====================

    def set_available(self, available: bool):
        """Simulate the node going offline or coming back"""
        self._available = available

    def _check_available(self):
        if not self._available:
            raise RegistryUnavailableError("Ledger node is unreachable")

    @property
    def pending_count(self) -> int:
        with self._lock:
            return len(self._pending)

    # ==================== READS ====================

    async def owner_of(self) -> str:
        self._check_available()
        return self._owner

    async def is_issuer(self, identity: str) -> bool:
        self._check_available()
        with self._lock:
            return normalize_identity(identity) in self._issuers

    async def document_count(self, subject: str) -> int:
        self._check_available()
        with self._lock:
            return len(self._documents.get(normalize_identity(subject), []))

    async def document_at(self, subject: str, index: int) -> DocumentRecord:
        self._check_available()
        subject = normalize_identity(subject)
        with self._lock:
            docs = self._documents.get(subject, [])
            if index < 0 or index >= len(docs):
                raise IndexOutOfRangeError(subject, index, len(docs))
            return docs[index]

    # ==================== WRITES ====================

    async def submit(self, call: SignedCall) -> TxHandle:
        self._check_available()

        try:
            sender = recover_sender(call)
        except Exception as e:
            raise TransactionRejectedError(f"Invalid signature: {e}")

        try:
            claimed = normalize_identity(call.sender)
        except InvalidIdentityError:
            raise TransactionRejectedError(f"Invalid sender: {call.sender!r}")

        if sender != claimed:
            raise TransactionRejectedError("Signature does not match sender")

        tx_hash = "0x" + hashlib.sha256(call.message().encode() + call.signature.encode()).hexdigest()

        with self._lock:
            if (sender, call.nonce) in self._seen_nonces:
                raise TransactionRejectedError("Nonce already used", tx_hash)
            self._seen_nonces.add((sender, call.nonce))

            handle = TxHandle(tx_hash=tx_hash, sender=sender, method=call.method)
            self._pending.append(_PendingTx(handle=handle, call=call))

        logger.info(f"Accepted {call.method} from {sender} as {tx_hash[:18]}...")

        if self.auto_finalize:
            self.produce_block()

        return handle

    async def get_receipt(self, tx_hash: str) -> Optional[TxReceipt]:
        self._check_available()
        with self._lock:
            return self._receipts.get(tx_hash)

    def produce_block(self) -> List[TxReceipt]:
        """
        Execute every pending transaction in submission order

        Returns:
            Receipts for the transactions included in this block
        """
        with self._lock:
            if not self._pending:
                return []

            self._block += 1
            included, self._pending = self._pending, []
            receipts = []

            for tx in included:
                try:
                    self._execute(tx.handle.sender, tx.call.method, tx.call.args)
                    receipt = TxReceipt(tx.handle.tx_hash, TxStatus.FINALIZED, block=self._block)
                except _Revert as e:
                    logger.warning(f"Reverted {tx.call.method} from {tx.handle.sender}: {e}")
                    receipt = TxReceipt(tx.handle.tx_hash, TxStatus.REJECTED, reason=str(e), block=self._block)

                self._receipts[receipt.tx_hash] = receipt
                receipts.append(receipt)

            return receipts

    # ==================== EXECUTION ====================

    def _execute(self, sender: str, method: str, args: list):
        entry = _ABI.get(method)
        if entry is None:
            raise _Revert("Unknown method")

        handler_name, arg_types = entry
        if len(args) != len(arg_types) or not all(_matches(a, t) for a, t in zip(args, arg_types)):
            raise _Revert(f"Invalid arguments for {method}")

        getattr(self, handler_name)(sender, *args)

    def _address(self, value) -> str:
        try:
            return normalize_identity(value)
        except InvalidIdentityError:
            raise _Revert("Invalid address")

    def _register_issuer(self, sender: str, identity: str):
        if sender != self._owner:
            raise _Revert("Only owner can add issuers")
        self._issuers.add(self._address(identity))

    def _append_document(self, sender: str, content_ref: str, label: str):
        docs = self._documents.setdefault(sender, [])
        docs.append(DocumentRecord(
            content_ref=content_ref,
            label=label,
            attested_by=NO_ATTESTER,
            verified=False,
        ))

    def _attest_document(self, sender: str, subject: str, index: int):
        if sender != self._owner and sender not in self._issuers:
            raise _Revert("Caller is not an authorized issuer")

        docs = self._documents.get(self._address(subject), [])
        if index >= len(docs):
            raise _Revert("Invalid document index")

        doc = docs[index]
        if doc.verified:
            # Re-attestation keeps the first attester
            return

        docs[index] = DocumentRecord(
            content_ref=doc.content_ref,
            label=doc.label,
            attested_by=sender,
            verified=True,
        )
