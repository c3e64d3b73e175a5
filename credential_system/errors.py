"""
Credential System Errors
========================

Every failure a workflow step can surface to its caller.
None of these are retried by the core; retry is the caller's decision.
"""

from typing import Optional


class CredentialError(Exception):
    """Base class for all credential registry failures"""


class ForbiddenError(CredentialError):
    """Caller's role does not allow the requested action"""


class InvalidIdentityError(CredentialError, ValueError):
    """Identity string is not a well-formed address"""

    def __init__(self, identity):
        self.identity = identity
        super().__init__(f"Invalid identity: {identity!r}")


class InvalidDocumentError(CredentialError, ValueError):
    """Document label or payload failed validation"""


class IndexOutOfRangeError(CredentialError, IndexError):
    """Document index is past the subject's document count"""

    def __init__(self, subject: str, index: int, count: Optional[int] = None):
        self.subject = subject
        self.index = index
        self.count = count
        msg = f"Document index {index} out of range for {subject}"
        if count is not None:
            msg += f" (count={count})"
        super().__init__(msg)


class RegistryUnavailableError(CredentialError):
    """Ledger unreachable, or no signing session for the caller"""


class BlobUploadFailedError(CredentialError):
    """Content store refused or failed the upload"""


class TransactionRejectedError(CredentialError):
    """Ledger declined a submitted transition"""

    def __init__(self, reason: str, tx_hash: Optional[str] = None):
        self.reason = reason
        self.tx_hash = tx_hash
        msg = f"Transaction rejected: {reason}"
        if tx_hash:
            msg += f" (tx {tx_hash})"
        super().__init__(msg)


class OrphanedBlobError(CredentialError):
    """
    Blob was stored but no registry entry was finalized for it.

    The bytes stay in the content store with nothing pointing at them.
    The whole upload sequence has to be retried, not just the append.
    """

    def __init__(self, content_ref: str, cause: str):
        self.content_ref = content_ref
        self.cause = cause
        super().__init__(f"Blob {content_ref} uploaded but not registered: {cause}")
