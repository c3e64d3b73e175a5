"""
Identity Resolver
=================

Classifies an authenticated identity as Owner, Issuer or Plain by reading
the registry, and decides which actions each role may take.

Identities are Ethereum addresses. They are compared after checksum
normalization, so "0xabc..." and "0xABC..." name the same participant.
"""

import logging
from enum import Enum

from eth_utils import is_address, to_checksum_address

from .errors import InvalidIdentityError

logger = logging.getLogger(__name__)


class Role(Enum):
    """Role of an identity, derived from registry state at query time"""
    OWNER = "owner"
    ISSUER = "issuer"
    PLAIN = "plain"


class Action(Enum):
    """Registry actions that are gated by role"""
    APPEND_DOCUMENT = "append_document"
    ATTEST_DOCUMENT = "attest_document"
    REGISTER_ISSUER = "register_issuer"


_PERMISSIONS = {
    Action.APPEND_DOCUMENT: {Role.OWNER, Role.ISSUER, Role.PLAIN},
    Action.ATTEST_DOCUMENT: {Role.OWNER, Role.ISSUER},
    Action.REGISTER_ISSUER: {Role.OWNER},
}


def is_valid_identity(value) -> bool:
    """True for a 0x-prefixed, 20-byte hex address with a valid checksum (if mixed case)"""
    return isinstance(value, str) and value.startswith("0x") and is_address(value)


def normalize_identity(value) -> str:
    """
    Return the checksummed form of an identity

    Raises:
        InvalidIdentityError: if the value is not a well-formed address
    """
    if not is_valid_identity(value):
        raise InvalidIdentityError(value)
    return to_checksum_address(value)


def same_identity(a: str, b: str) -> bool:
    """Compare two identities ignoring case"""
    return normalize_identity(a) == normalize_identity(b)


def is_authorized(role: Role, action: Action) -> bool:
    """Pure authorization check: may `role` perform `action`?"""
    return role in _PERMISSIONS[action]


class IdentityResolver:
    """
    Resolves the role of an identity against a ledger

    Owner is checked first, then Issuer-set membership, else Plain.
    Ledger failures propagate as RegistryUnavailableError; an unresolved
    role is never defaulted.
    """

    def __init__(self, ledger):
        self.ledger = ledger

    async def resolve_role(self, identity: str) -> Role:
        identity = normalize_identity(identity)

        owner = await self.ledger.owner_of()
        if same_identity(owner, identity):
            role = Role.OWNER
        elif await self.ledger.is_issuer(identity):
            role = Role.ISSUER
        else:
            role = Role.PLAIN

        logger.debug(f"Resolved role for {identity}: {role.value}")
        return role
