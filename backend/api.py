import logging
from contextlib import asynccontextmanager
from typing import Iterable, Optional

from fastapi import FastAPI, File, Form, Header, HTTPException, Request, UploadFile
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
import uvicorn

from credential_system import (
    __version__,
    BlobStore,
    BlobUploadFailedError,
    CredentialError,
    CredentialWorkflows,
    ForbiddenError,
    IndexOutOfRangeError,
    InMemoryBlobStore,
    InMemoryLedger,
    InvalidDocumentError,
    InvalidIdentityError,
    Ledger,
    OrphanedBlobError,
    PinataBlobStore,
    RegistryUnavailableError,
    TransactionRejectedError,
    Wallet,
    normalize_identity,
)
from credential_system.config import CredentialSettings, settings

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger("CredentialAPI")

ERROR_STATUS = [
    (ForbiddenError, 403),
    (InvalidIdentityError, 400),
    (InvalidDocumentError, 400),
    (IndexOutOfRangeError, 404),
    (TransactionRejectedError, 409),
    (OrphanedBlobError, 502),
    (BlobUploadFailedError, 502),
    (RegistryUnavailableError, 503),
]


def status_for(error: CredentialError) -> int:
    for error_type, status in ERROR_STATUS:
        if isinstance(error, error_type):
            return status
    return 500


def build_blob_store(config: CredentialSettings) -> BlobStore:
    if config.BLOB_BACKEND == "memory":
        return InMemoryBlobStore(config.GATEWAY_BASE)
    if config.BLOB_BACKEND == "pinata":
        return PinataBlobStore(
            api_key=config.PINATA_API_KEY,
            api_secret=config.PINATA_API_SECRET,
            api_url=config.PINATA_API_URL,
            gateway_base=config.GATEWAY_BASE,
            timeout=config.UPLOAD_TIMEOUT,
        )
    raise ValueError(f"Unknown blob backend: {config.BLOB_BACKEND}")


def create_app(
    config: Optional[CredentialSettings] = None,
    ledger: Optional[Ledger] = None,
    blob_store: Optional[BlobStore] = None,
    wallets: Iterable[Wallet] = (),
) -> FastAPI:
    """
    Build the credential registry API

    The service holds custodial development wallets: the registry owner plus
    any configured keys. Callers name themselves with the X-Caller-Address
    header and act through the matching wallet.
    """
    config = config or settings

    owner = Wallet.from_key(config.OWNER_PRIVATE_KEY)
    keyring = {owner.identity: owner}
    for key in config.WALLET_KEYS:
        wallet = Wallet.from_key(key)
        keyring[wallet.identity] = wallet
    for wallet in wallets:
        keyring[wallet.identity] = wallet

    ledger = ledger or InMemoryLedger(owner.identity)
    blob_store = blob_store or build_blob_store(config)
    workflows = CredentialWorkflows(
        ledger,
        blob_store,
        finalization_timeout=config.FINALIZATION_TIMEOUT,
        max_file_size=config.MAX_FILE_SIZE,
        max_enumeration_attempts=config.MAX_ENUMERATION_ATTEMPTS,
        poll_interval=config.POLL_INTERVAL,
    )

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        logger.info("Starting Credential Registry API...")
        logger.info(f"Registry owner: {owner.identity}")
        logger.info(f"Custodial wallets: {len(keyring)}, blob backend: {type(blob_store).__name__}")
        yield
        await blob_store.close()
        logger.info("Shutting down...")

    app = FastAPI(title="Credential Registry API", version=__version__, lifespan=lifespan)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.state.workflows = workflows
    app.state.ledger = ledger

    @app.exception_handler(CredentialError)
    async def credential_error_handler(request: Request, exc: CredentialError):
        status = status_for(exc)
        logger.warning(f"{request.method} {request.url.path} -> {status}: {exc}")
        body = {"detail": str(exc), "error": type(exc).__name__}
        if isinstance(exc, OrphanedBlobError):
            body["contentRef"] = exc.content_ref
        return JSONResponse(status_code=status, content=body)

    def session_for(caller: Optional[str]) -> Wallet:
        if not caller:
            raise HTTPException(status_code=401, detail="X-Caller-Address header required")
        identity = normalize_identity(caller)
        wallet = keyring.get(identity)
        if wallet is None:
            raise RegistryUnavailableError(f"No signing session for {identity}")
        return wallet

    # ============================================================
    # INFO & ROLES
    # ============================================================

    @app.get("/api/info")
    async def get_info():
        """Registry owner and content gateway"""
        return {
            "owner": await ledger.owner_of(),
            "gateway": blob_store.gateway_base,
            "version": __version__,
        }

    @app.get("/api/roles/{identity}")
    async def get_role(identity: str):
        role = await workflows.resolve_role(identity)
        return {"identity": normalize_identity(identity), "role": role.value}

    # ============================================================
    # DOCUMENTS
    # ============================================================

    @app.get("/api/documents/{subject}")
    async def public_lookup(subject: str):
        """
        Public credential portfolio of a subject

        Every document is listed; only verified ones carry a locator.
        """
        views = await workflows.public_lookup(subject)
        return {
            "subject": normalize_identity(subject),
            "documents": [v.to_dict() for v in views],
        }

    @app.get("/api/me/documents")
    async def my_documents(x_caller_address: Optional[str] = Header(None)):
        wallet = session_for(x_caller_address)
        views = await workflows.my_documents(wallet)
        return {
            "subject": wallet.identity,
            "documents": [v.to_dict() for v in views],
        }

    @app.post("/api/documents")
    async def upload_document(
        label: str = Form(...),
        file: UploadFile = File(...),
        x_caller_address: Optional[str] = Header(None),
    ):
        """Upload a document's bytes and register them for the caller"""
        wallet = session_for(x_caller_address)
        content = await file.read()
        result = await workflows.upload_document(wallet, label, content, file.filename)
        return result.to_dict()

    # ============================================================
    # ISSUER ENDPOINTS
    # ============================================================

    @app.get("/api/issuer/pending/{subject}")
    async def pending_documents(subject: str, x_caller_address: Optional[str] = Header(None)):
        wallet = session_for(x_caller_address)
        documents = await workflows.pending_documents(wallet, subject)
        return {
            "subject": normalize_identity(subject),
            "documents": [
                dict(d.to_dict(), locator=blob_store.locator(d.content_ref)) for d in documents
            ],
        }

    @app.post("/api/issuer/verify")
    async def verify_document(
        subject: str = Form(...),
        index: int = Form(...),
        x_caller_address: Optional[str] = Header(None),
    ):
        wallet = session_for(x_caller_address)
        result = await workflows.verify_document(wallet, subject, index)
        return result.to_dict()

    @app.post("/api/issuers")
    async def register_issuer(
        identity: str = Form(...),
        x_caller_address: Optional[str] = Header(None),
    ):
        """Owner only: add an identity to the Issuer set"""
        wallet = session_for(x_caller_address)
        receipt = await workflows.register_issuer(wallet, identity)
        return {
            "identity": normalize_identity(identity),
            "transaction": receipt.to_dict(),
        }

    return app


app = create_app()


if __name__ == "__main__":
    uvicorn.run("backend.api:app", host="0.0.0.0", port=8000)
