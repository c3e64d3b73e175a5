"""
config.py - Centralized settings for the credential registry
"""
from typing import List

from pydantic_settings import BaseSettings


class CredentialSettings(BaseSettings):
    # Blob store
    BLOB_BACKEND: str = "pinata"  # "pinata" or "memory"
    PINATA_API_URL: str = "https://api.pinata.cloud/pinning/pinFileToIPFS"
    PINATA_API_KEY: str = ""
    PINATA_API_SECRET: str = ""
    GATEWAY_BASE: str = "https://gateway.pinata.cloud/ipfs"
    UPLOAD_TIMEOUT: float = 60.0
    MAX_FILE_SIZE: int = 10 * 1024 * 1024  # 10MB

    # Ledger
    FINALIZATION_TIMEOUT: float = 30.0
    POLL_INTERVAL: float = 0.05
    MAX_ENUMERATION_ATTEMPTS: int = 3

    # Wallets (dev only: Hardhat Account #0 owns the registry by default)
    OWNER_PRIVATE_KEY: str = "0xac0974bec39a17e36ba4a6b4d238ff944bacb478cbed5efcae784d7bf4f2ff80"
    WALLET_KEYS: List[str] = []

    class Config:
        env_file = ".env"
        env_prefix = "CERTICHAIN_"


settings = CredentialSettings()
