"""
Document Registry Client
========================

Typed operations over the ledger's document-registry surface.

The client makes no authorization decisions. Writes are two-phase:
submit returns a TxHandle, and the effect is only durable once
`wait_for_finalization` reports it finalized. Ledger rejections are
surfaced with the ledger's own reason.
"""

import asyncio
import logging
import time
from dataclasses import dataclass
from typing import Any, Dict, Optional

from .errors import (
    ForbiddenError,
    IndexOutOfRangeError,
    RegistryUnavailableError,
    TransactionRejectedError,
)
from .identity import normalize_identity
from .ledger import (
    APPEND_DOCUMENT,
    ATTEST_DOCUMENT,
    NO_ATTESTER,
    REGISTER_ISSUER,
    Ledger,
    TxHandle,
    TxReceipt,
    TxStatus,
)
from .wallet import Wallet

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Document:
    """A subject's document as read from the registry"""
    subject: str
    index: int
    content_ref: str
    label: str
    attested_by: Optional[str]  # None until verified
    verified: bool

    def to_dict(self) -> Dict[str, Any]:
        return {
            "subject": self.subject,
            "index": self.index,
            "contentRef": self.content_ref,
            "label": self.label,
            "attestedBy": self.attested_by,
            "verified": self.verified,
        }


class DocumentRegistryClient:
    """
    Client for one caller of record

    Args:
        ledger: the authoritative ledger
        wallet: signing session; required only for writes
        poll_interval: seconds between receipt polls while awaiting finalization
    """

    def __init__(self, ledger: Ledger, wallet: Optional[Wallet] = None, poll_interval: float = 0.05):
        self.ledger = ledger
        self.wallet = wallet
        self.poll_interval = poll_interval

    @property
    def identity(self) -> Optional[str]:
        return self.wallet.identity if self.wallet else None

    # ==================== READS ====================

    async def owner_of(self) -> str:
        return await self.ledger.owner_of()

    async def is_issuer(self, identity: str) -> bool:
        return await self.ledger.is_issuer(normalize_identity(identity))

    async def document_count(self, subject: str) -> int:
        return await self.ledger.document_count(normalize_identity(subject))

    async def document_at(self, subject: str, index: int) -> Document:
        """
        Fetch one document

        Raises:
            IndexOutOfRangeError: if index >= document_count(subject)
        """
        subject = normalize_identity(subject)
        if index < 0:
            raise IndexOutOfRangeError(subject, index)

        record = await self.ledger.document_at(subject, index)
        attested_by = None if record.attested_by == NO_ATTESTER else record.attested_by

        return Document(
            subject=subject,
            index=index,
            content_ref=record.content_ref,
            label=record.label,
            attested_by=attested_by,
            verified=record.verified,
        )

    # ==================== WRITES ====================

    async def append_document(self, subject: str, content_ref: str, label: str) -> TxHandle:
        """
        Append a document to the subject's list

        The ledger assigns the index; the subject is always the signer.
        """
        subject = normalize_identity(subject)
        if self.identity != subject:
            raise ForbiddenError(f"{self.identity} cannot add documents for {subject}")
        return await self._submit(APPEND_DOCUMENT, [content_ref, label])

    async def attest_document(self, subject: str, index: int) -> TxHandle:
        return await self._submit(ATTEST_DOCUMENT, [normalize_identity(subject), index])

    async def register_issuer(self, identity: str) -> TxHandle:
        return await self._submit(REGISTER_ISSUER, [normalize_identity(identity)])

    async def _submit(self, method: str, args: list) -> TxHandle:
        if self.wallet is None:
            raise RegistryUnavailableError("No signing session for this client")

        call = self.wallet.sign_call(method, args)
        handle = await self.ledger.submit(call)
        logger.info(f"Submitted {method} as {handle.tx_hash[:18]}...")
        return handle

    # ==================== FINALIZATION ====================

    async def wait_for_finalization(self, handle: TxHandle, timeout: Optional[float] = None) -> TxReceipt:
        """
        Await the outcome of a submission

        Args:
            handle: returned by a write
            timeout: seconds to wait; None waits indefinitely

        Returns:
            The ledger's receipt, or a PENDING receipt if the wait was abandoned.
            Abandoning does not undo anything; the transition may still finalize.
        """
        deadline = None if timeout is None else time.monotonic() + timeout

        while True:
            receipt = await self.ledger.get_receipt(handle.tx_hash)
            if receipt is not None:
                return receipt

            if deadline is not None and time.monotonic() >= deadline:
                logger.info(f"Stopped awaiting {handle.tx_hash[:18]}... (still pending)")
                return TxReceipt(handle.tx_hash, TxStatus.PENDING)

            await asyncio.sleep(self.poll_interval)

    async def resolve(self, handle: TxHandle, timeout: Optional[float] = None) -> TxReceipt:
        """
        Like wait_for_finalization, but raise on rejection

        Raises:
            TransactionRejectedError: with the ledger's revert reason
        """
        receipt = await self.wait_for_finalization(handle, timeout)
        if receipt.status is TxStatus.REJECTED:
            raise TransactionRejectedError(receipt.reason or "rejected", receipt.tx_hash)
        return receipt
