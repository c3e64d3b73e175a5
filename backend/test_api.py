"""
Credential API Tests
====================
"""

import hashlib

from fastapi.testclient import TestClient

from backend.api import create_app
from credential_system.config import CredentialSettings
from credential_system.wallet import Wallet

GATEWAY = "https://gateway.example/ipfs"
HARDHAT_KEY = "0xac0974bec39a17e36ba4a6b4d238ff944bacb478cbed5efcae784d7bf4f2ff80"


class TestCredentialAPI:
    """Test the HTTP surface over an in-memory ledger and blob store"""

    def setup_method(self):
        self.owner = Wallet.from_key(HARDHAT_KEY)
        self.issuer = Wallet.create()
        self.user = Wallet.create()
        self.plain = Wallet.create()

        config = CredentialSettings(
            BLOB_BACKEND="memory",
            GATEWAY_BASE=GATEWAY,
            OWNER_PRIVATE_KEY=HARDHAT_KEY,
            FINALIZATION_TIMEOUT=1.0,
            POLL_INTERVAL=0.001,
        )
        self.app = create_app(config, wallets=[self.issuer, self.user, self.plain])

    def _as(self, wallet):
        return {"X-Caller-Address": wallet.identity}

    def test_info(self):
        with TestClient(self.app) as client:
            resp = client.get("/api/info")

        assert resp.status_code == 200
        assert resp.json()["owner"] == self.owner.identity
        assert resp.json()["gateway"] == GATEWAY

    def test_full_flow(self):
        data = b"%PDF-1.4 diploma"

        with TestClient(self.app) as client:
            resp = client.post("/api/issuers", data={"identity": self.issuer.identity}, headers=self._as(self.owner))
            assert resp.status_code == 200
            assert resp.json()["transaction"]["status"] == "finalized"

            resp = client.get(f"/api/roles/{self.issuer.identity}")
            assert resp.json()["role"] == "issuer"

            resp = client.post(
                "/api/documents",
                data={"label": "Diploma"},
                files={"file": ("diploma.pdf", data, "application/pdf")},
                headers=self._as(self.user),
            )
            assert resp.status_code == 200
            assert resp.json()["contentRef"] == hashlib.sha256(data).hexdigest()

            resp = client.get(f"/api/issuer/pending/{self.user.identity}", headers=self._as(self.issuer))
            assert [d["index"] for d in resp.json()["documents"]] == [0]

            resp = client.post(
                "/api/issuer/verify",
                data={"subject": self.user.identity, "index": "0"},
                headers=self._as(self.issuer),
            )
            assert resp.status_code == 200
            assert resp.json()["verified"] is True
            assert resp.json()["pending"] == []

            resp = client.get(f"/api/documents/{self.user.identity}")

        documents = resp.json()["documents"]
        assert len(documents) == 1
        assert documents[0]["status"] == "verified"
        assert documents[0]["attestedBy"] == self.issuer.identity
        assert documents[0]["locator"] == f"{GATEWAY}/{hashlib.sha256(data).hexdigest()}"

    def test_public_lookup_hides_unverified_locator(self):
        with TestClient(self.app) as client:
            client.post(
                "/api/documents",
                data={"label": "Transcript"},
                files={"file": ("t.pdf", b"transcript", "application/pdf")},
                headers=self._as(self.user),
            )
            public = client.get(f"/api/documents/{self.user.identity}").json()["documents"]
            mine = client.get("/api/me/documents", headers=self._as(self.user)).json()["documents"]

        assert public[0]["status"] == "not_verified"
        assert public[0]["locator"] is None
        assert mine[0]["locator"] is not None

    def test_plain_cannot_register_issuer(self):
        with TestClient(self.app) as client:
            resp = client.post("/api/issuers", data={"identity": self.plain.identity}, headers=self._as(self.plain))
            role = client.get(f"/api/roles/{self.plain.identity}").json()["role"]

        assert resp.status_code == 403
        assert resp.json()["error"] == "ForbiddenError"
        assert role == "plain"

    def test_plain_cannot_verify(self):
        with TestClient(self.app) as client:
            resp = client.post(
                "/api/issuer/verify",
                data={"subject": self.user.identity, "index": "0"},
                headers=self._as(self.plain),
            )

        assert resp.status_code == 403

    def test_malformed_identity(self):
        with TestClient(self.app) as client:
            assert client.get("/api/roles/0x1234").status_code == 400
            resp = client.post("/api/issuers", data={"identity": "0x1234"}, headers=self._as(self.owner))

        assert resp.status_code == 400
        assert resp.json()["error"] == "InvalidIdentityError"

    def test_blank_label_rejected(self):
        with TestClient(self.app) as client:
            resp = client.post(
                "/api/documents",
                data={"label": "   "},
                files={"file": ("d.pdf", b"data", "application/pdf")},
                headers=self._as(self.user),
            )

        assert resp.status_code == 400
        assert resp.json()["error"] == "InvalidDocumentError"

    def test_caller_required(self):
        with TestClient(self.app) as client:
            assert client.get("/api/me/documents").status_code == 401

    def test_unknown_caller_has_no_session(self):
        stranger = Wallet.create()

        with TestClient(self.app) as client:
            resp = client.get("/api/me/documents", headers=self._as(stranger))

        assert resp.status_code == 503
        assert resp.json()["error"] == "RegistryUnavailableError"

    def test_verify_out_of_range_rejected(self):
        with TestClient(self.app) as client:
            resp = client.post(
                "/api/issuer/verify",
                data={"subject": self.user.identity, "index": "5"},
                headers=self._as(self.owner),
            )

        assert resp.status_code == 409
        assert resp.json()["error"] == "TransactionRejectedError"
