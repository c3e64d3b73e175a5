"""
Credential Workflow Orchestrator
================================

Composes the identity resolver, registry client and blob store into the
user-facing workflows:

- Self-upload: caller registers a document against their own identity
- Issuer verification: Owner/Issuer attests a subject's document
- Public lookup: anyone lists a subject's documents and their status
- Issuer registration: Owner adds an identity to the Issuer set

Role checks here are pre-flight filters only. The ledger enforces the same
rules independently and is the authority. After every write the affected
list is re-read in full from the ledger; nothing is cached between calls.
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from .blob_store import BlobStore
from .errors import (
    CredentialError,
    ForbiddenError,
    IndexOutOfRangeError,
    InvalidDocumentError,
    OrphanedBlobError,
)
from .identity import Action, IdentityResolver, Role, is_authorized, normalize_identity
from .ledger import Ledger, TxReceipt, TxStatus
from .registry_client import Document, DocumentRegistryClient
from .wallet import Wallet

logger = logging.getLogger(__name__)


@dataclass
class DocumentView:
    """A document as presented to a particular audience"""
    document: Document
    locator: Optional[str]  # None when the content is not exposed

    @property
    def status(self) -> str:
        return "verified" if self.document.verified else "not_verified"

    def to_dict(self) -> Dict[str, Any]:
        result = self.document.to_dict()
        result["status"] = self.status
        result["locator"] = self.locator
        return result


@dataclass
class UploadResult:
    content_ref: str
    locator: str
    receipt: TxReceipt
    documents: List[DocumentView] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "contentRef": self.content_ref,
            "locator": self.locator,
            "transaction": self.receipt.to_dict(),
            "documents": [d.to_dict() for d in self.documents],
        }


@dataclass
class VerificationResult:
    """Outcome of an attestation plus the subject's refreshed candidates"""
    subject: str
    index: int
    receipt: TxReceipt
    pending: List[Document] = field(default_factory=list)

    @property
    def verified(self) -> bool:
        return self.receipt.status is TxStatus.FINALIZED

    def to_dict(self) -> Dict[str, Any]:
        return {
            "subject": self.subject,
            "index": self.index,
            "verified": self.verified,
            "transaction": self.receipt.to_dict(),
            "pending": [d.to_dict() for d in self.pending],
        }


class CredentialWorkflows:
    """
    Workflow orchestrator

    Each method is an independent workflow invocation. Callers pass the
    Wallet of the caller of record for anything that needs a signature.

    Args:
        ledger: authoritative registry ledger
        blob_store: content store for document bytes
        finalization_timeout: seconds to await each submission before
            reporting it as pending
        max_file_size: largest accepted payload in bytes
        max_enumeration_attempts: count re-reads allowed when a document
            read races past the observed count
        poll_interval: receipt polling interval
    """

    def __init__(
        self,
        ledger: Ledger,
        blob_store: BlobStore,
        finalization_timeout: Optional[float] = 30.0,
        max_file_size: int = 10 * 1024 * 1024,
        max_enumeration_attempts: int = 3,
        poll_interval: float = 0.05,
    ):
        self.ledger = ledger
        self.blob_store = blob_store
        self.resolver = IdentityResolver(ledger)
        self.finalization_timeout = finalization_timeout
        self.max_file_size = max_file_size
        self.max_enumeration_attempts = max(1, max_enumeration_attempts)
        self.poll_interval = poll_interval

    def client_for(self, wallet: Optional[Wallet] = None) -> DocumentRegistryClient:
        return DocumentRegistryClient(self.ledger, wallet, poll_interval=self.poll_interval)

    # ==================== ROLES ====================

    async def resolve_role(self, identity: str) -> Role:
        return await self.resolver.resolve_role(identity)

    async def _require(self, wallet: Wallet, action: Action) -> Role:
        role = await self.resolver.resolve_role(wallet.identity)
        if not is_authorized(role, action):
            logger.warning(f"{wallet.identity} ({role.value}) denied {action.value}")
            raise ForbiddenError(f"Role '{role.value}' may not {action.value.replace('_', ' ')}")
        return role

    # ==================== ENUMERATION ====================

    async def list_documents(self, subject: str) -> List[Document]:
        """
        Read every document of a subject, verified or not

        A document read past the observed count means a concurrent append
        landed between the two reads; the count is read again.
        """
        subject = normalize_identity(subject)
        client = self.client_for()

        for attempt in range(1, self.max_enumeration_attempts + 1):
            count = await client.document_count(subject)
            try:
                return [await client.document_at(subject, i) for i in range(count)]
            except IndexOutOfRangeError as e:
                logger.warning(f"Stale read for {subject} (attempt {attempt}): {e}")
                last_error = e

        raise last_error

    # ==================== SELF-UPLOAD ====================

    async def my_documents(self, wallet: Wallet) -> List[DocumentView]:
        """The caller's own documents, with locators for every one of them"""
        documents = await self.list_documents(wallet.identity)
        return [DocumentView(doc, self.blob_store.locator(doc.content_ref)) for doc in documents]

    def _validate_upload(self, label: str, payload: Optional[bytes]) -> str:
        if not label or not label.strip():
            raise InvalidDocumentError("Document name is required")
        if not payload:
            raise InvalidDocumentError("Document file is required")
        if len(payload) > self.max_file_size:
            raise InvalidDocumentError(f"File too large ({len(payload)} > {self.max_file_size} bytes)")
        return label.strip()

    async def upload_document(
        self,
        wallet: Wallet,
        label: str,
        payload: bytes,
        filename: Optional[str] = None,
    ) -> UploadResult:
        """
        Store the bytes, register them for the caller, then refresh

        Raises:
            InvalidDocumentError: empty label or payload (nothing is stored)
            RegistryUnavailableError: caller's role could not be resolved (nothing is stored)
            BlobUploadFailedError: the store refused the bytes (nothing is stored)
            OrphanedBlobError: bytes stored but the registry append was rejected,
                unreachable or not finalized in time; retry the whole upload
        """
        label = self._validate_upload(label, payload)
        await self._require(wallet, Action.APPEND_DOCUMENT)
        client = self.client_for(wallet)

        content_ref = await self.blob_store.put(payload, filename)
        logger.info(f"Uploaded '{label}' for {wallet.identity} as {content_ref}")

        try:
            handle = await client.append_document(wallet.identity, content_ref, label)
            receipt = await client.resolve(handle, self.finalization_timeout)
        except CredentialError as e:
            logger.warning(f"Orphaned blob {content_ref}: {e}")
            raise OrphanedBlobError(content_ref, str(e)) from e

        if receipt.status is TxStatus.PENDING:
            logger.warning(f"Orphaned blob {content_ref}: append not finalized")
            raise OrphanedBlobError(content_ref, f"append {receipt.tx_hash} not finalized")

        return UploadResult(
            content_ref=content_ref,
            locator=self.blob_store.locator(content_ref),
            receipt=receipt,
            documents=await self.my_documents(wallet),
        )

    # ==================== ISSUER VERIFICATION ====================

    async def pending_documents(self, wallet: Wallet, subject: str) -> List[Document]:
        """Unverified documents of a subject, for an Owner or Issuer to review"""
        await self._require(wallet, Action.ATTEST_DOCUMENT)
        return [doc for doc in await self.list_documents(subject) if not doc.verified]

    async def verify_document(self, wallet: Wallet, subject: str, index: int) -> VerificationResult:
        """
        Attest a subject's document, then re-read the candidates

        A second attestation of the same document is accepted as a no-op.

        Raises:
            ForbiddenError: caller is neither Owner nor Issuer
            TransactionRejectedError: the ledger refused the attestation
        """
        subject = normalize_identity(subject)
        await self._require(wallet, Action.ATTEST_DOCUMENT)

        client = self.client_for(wallet)
        handle = await client.attest_document(subject, index)
        receipt = await client.resolve(handle, self.finalization_timeout)
        logger.info(f"Attestation of {subject}#{index} by {wallet.identity}: {receipt.status.value}")

        return VerificationResult(
            subject=subject,
            index=index,
            receipt=receipt,
            pending=[doc for doc in await self.list_documents(subject) if not doc.verified],
        )

    # ==================== PUBLIC LOOKUP ====================

    async def public_lookup(self, subject: str) -> List[DocumentView]:
        """
        Every document of a subject with its verification status

        Unverified documents are listed, but their content is not exposed.
        """
        documents = await self.list_documents(subject)
        return [
            DocumentView(doc, self.blob_store.locator(doc.content_ref) if doc.verified else None)
            for doc in documents
        ]

    # ==================== ISSUER REGISTRATION ====================

    async def register_issuer(self, wallet: Wallet, identity: str) -> TxReceipt:
        """
        Add an identity to the Issuer set (Owner only)

        Raises:
            InvalidIdentityError: malformed identity, checked before submission
            ForbiddenError: caller is not the Owner
            TransactionRejectedError: the ledger refused the registration
        """
        identity = normalize_identity(identity)
        await self._require(wallet, Action.REGISTER_ISSUER)

        client = self.client_for(wallet)
        handle = await client.register_issuer(identity)
        receipt = await client.resolve(handle, self.finalization_timeout)
        logger.info(f"Issuer registration of {identity}: {receipt.status.value}")
        return receipt
