"""
Blob Store Adapters
===================

Content-addressed storage for document bytes. A document's bytes are
written once and never mutated; the registry only holds the reference.

Identical bytes may or may not yield the same reference, so callers must
not rely on reference stability across uploads.
"""

import hashlib
import logging
from typing import Dict, Optional

import httpx

from .errors import BlobUploadFailedError

logger = logging.getLogger(__name__)

PINATA_PIN_FILE_URL = "https://api.pinata.cloud/pinning/pinFileToIPFS"
PINATA_GATEWAY = "https://gateway.pinata.cloud/ipfs"


class BlobStore:
    """Base content store: put bytes, build retrieval locators"""

    def __init__(self, gateway_base: str):
        self.gateway_base = gateway_base.rstrip("/")

    async def put(self, data: bytes, filename: Optional[str] = None) -> str:
        raise NotImplementedError

    def locator(self, content_ref: str) -> str:
        """Retrieval URL for a reference"""
        return f"{self.gateway_base}/{content_ref}"

    async def close(self) -> None:
        return


class PinataBlobStore(BlobStore):
    """
    Pins files to IPFS through the Pinata pinning API

    Failures are reported as BlobUploadFailedError and never retried here.
    """

    def __init__(
        self,
        api_key: str,
        api_secret: str,
        api_url: str = PINATA_PIN_FILE_URL,
        gateway_base: str = PINATA_GATEWAY,
        timeout: float = 60.0,
        client: Optional[httpx.AsyncClient] = None,
    ):
        super().__init__(gateway_base)
        self.api_url = api_url
        self.api_key = api_key
        self.api_secret = api_secret
        self._client = client or httpx.AsyncClient(timeout=timeout)

    def _headers(self) -> Dict[str, str]:
        return {
            "pinata_api_key": self.api_key,
            "pinata_secret_api_key": self.api_secret,
        }

    async def put(self, data: bytes, filename: Optional[str] = None) -> str:
        files = {"file": (filename or "document", data)}

        try:
            resp = await self._client.post(self.api_url, files=files, headers=self._headers())
        except httpx.HTTPError as e:
            logger.error(f"Pinata upload failed: {e}")
            raise BlobUploadFailedError(f"Upload failed: {e}") from e

        if resp.status_code >= 400:
            logger.error(f"Pinata rejected upload: [{resp.status_code}] {resp.text}")
            raise BlobUploadFailedError(f"Upload rejected: [{resp.status_code}] {resp.text}")

        try:
            content_ref = resp.json()["IpfsHash"]
        except (ValueError, KeyError, TypeError) as e:
            raise BlobUploadFailedError(f"Unexpected pinning response: {resp.text}") from e

        if not isinstance(content_ref, str) or not content_ref:
            raise BlobUploadFailedError(f"Pinning response has no content reference: {resp.text}")

        logger.info(f"Pinned {len(data)} bytes as {content_ref}")
        return content_ref

    async def close(self) -> None:
        await self._client.aclose()


class InMemoryBlobStore(BlobStore):
    """
    Process-local content store addressed by sha256

    Also serves bytes back by reference, which the gateway does for Pinata.
    """

    def __init__(self, gateway_base: str = PINATA_GATEWAY):
        super().__init__(gateway_base)
        self._blobs: Dict[str, bytes] = {}

    async def put(self, data: bytes, filename: Optional[str] = None) -> str:
        content_ref = hashlib.sha256(data).hexdigest()
        self._blobs[content_ref] = bytes(data)
        logger.debug(f"Stored {len(data)} bytes as {content_ref}")
        return content_ref

    def get(self, content_ref: str) -> Optional[bytes]:
        return self._blobs.get(content_ref)

    def __len__(self) -> int:
        return len(self._blobs)
