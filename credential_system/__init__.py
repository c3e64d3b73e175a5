"""
Credential Registry System
==========================

Role-gated issuance and verification of credential documents anchored
on a ledger.

Components:
- IdentityResolver: Classifies identities as Owner, Issuer or Plain
- DocumentRegistryClient: Typed reads/writes over the ledger surface
- BlobStore: Content-addressed storage for document bytes
- CredentialWorkflows: Self-upload, issuer verification, public lookup
- Wallet: Signing session for ledger submissions
- InMemoryLedger: Reference ledger node enforcing the registry rules
"""

from .errors import (
    CredentialError,
    ForbiddenError,
    InvalidIdentityError,
    InvalidDocumentError,
    IndexOutOfRangeError,
    RegistryUnavailableError,
    BlobUploadFailedError,
    TransactionRejectedError,
    OrphanedBlobError,
)
from .identity import Role, Action, IdentityResolver, is_authorized, is_valid_identity, normalize_identity
from .wallet import Wallet, SignedCall
from .ledger import Ledger, InMemoryLedger, TxHandle, TxReceipt, TxStatus, DocumentRecord, NO_ATTESTER
from .registry_client import DocumentRegistryClient, Document
from .blob_store import BlobStore, PinataBlobStore, InMemoryBlobStore
from .workflows import CredentialWorkflows, DocumentView, UploadResult, VerificationResult

__version__ = "1.0.0"
__all__ = [
    # Identity
    "Role",
    "Action",
    "IdentityResolver",
    "is_authorized",
    "is_valid_identity",
    "normalize_identity",
    "Wallet",
    "SignedCall",

    # Ledger
    "Ledger",
    "InMemoryLedger",
    "TxHandle",
    "TxReceipt",
    "TxStatus",
    "DocumentRecord",
    "NO_ATTESTER",
    "DocumentRegistryClient",
    "Document",

    # Blobs
    "BlobStore",
    "PinataBlobStore",
    "InMemoryBlobStore",

    # Workflows
    "CredentialWorkflows",
    "DocumentView",
    "UploadResult",
    "VerificationResult",

    # Errors
    "CredentialError",
    "ForbiddenError",
    "InvalidIdentityError",
    "InvalidDocumentError",
    "IndexOutOfRangeError",
    "RegistryUnavailableError",
    "BlobUploadFailedError",
    "TransactionRejectedError",
    "OrphanedBlobError",
]
