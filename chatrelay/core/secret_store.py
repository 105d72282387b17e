"""Password-protected storage for provider API keys.

Secrets are encrypted with AES-256-GCM under a key derived from the master
password with PBKDF2-HMAC-SHA256. Only a salted SHA-256 digest of the master
password is persisted.
"""
import base64
import binascii
import hashlib
import hmac
import logging
import os
from typing import List, Optional

from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.ciphers.aead import AESGCM
from cryptography.hazmat.primitives.kdf.pbkdf2 import PBKDF2HMAC

from chatrelay.core.errors import DecryptionError
from chatrelay.core.kv_store import KeyValueStore, MemoryKeyValueStore

logger = logging.getLogger(__name__)

# Application-wide; every installation derives keys with the same salt.
APP_SALT = b"chatrelay-secure-storage-salt"
IV_LENGTH = 12
KEY_LENGTH = 32
PBKDF2_ITERATIONS = 100_000


class CryptoManager:
    """Key derivation, authenticated encryption and password hashing."""

    def __init__(
        self,
        salt: bytes = APP_SALT,
        iterations: int = PBKDF2_ITERATIONS,
    ):
        if iterations < PBKDF2_ITERATIONS:
            raise ValueError(f"iterations must be at least {PBKDF2_ITERATIONS}")
        self.salt = salt
        self.iterations = iterations

    def derive_key(self, password: str) -> bytes:
        """Derive a 256-bit key from the password (deterministic)."""
        kdf = PBKDF2HMAC(
            algorithm=hashes.SHA256(),
            length=KEY_LENGTH,
            salt=self.salt,
            iterations=self.iterations,
        )
        return kdf.derive(password.encode("utf-8"))

    def encrypt(self, text: str, password: str) -> str:
        """
        Encrypt text under the password.

        Returns:
            base64(nonce || ciphertext || tag)
        """
        key = self.derive_key(password)
        iv = os.urandom(IV_LENGTH)
        ciphertext = AESGCM(key).encrypt(iv, text.encode("utf-8"), None)
        return base64.b64encode(iv + ciphertext).decode("ascii")

    def decrypt(self, blob: str, password: str) -> str:
        """
        Decrypt a blob produced by encrypt().

        Raises:
            DecryptionError: Wrong password, corrupted or tampered blob
        """
        try:
            combined = base64.b64decode(blob, validate=True)
            if len(combined) <= IV_LENGTH:
                raise ValueError("blob too short")
            iv, ciphertext = combined[:IV_LENGTH], combined[IV_LENGTH:]
            plaintext = AESGCM(self.derive_key(password)).decrypt(iv, ciphertext, None)
            return plaintext.decode("utf-8")
        except (InvalidTag, binascii.Error, ValueError, TypeError) as e:
            raise DecryptionError() from e

    def hash_password(self, password: str) -> str:
        """One-way digest of password + salt, base64-encoded."""
        digest = hashlib.sha256(password.encode("utf-8") + self.salt).digest()
        return base64.b64encode(digest).decode("ascii")

    def verify_password(self, password: str, stored_hash: str) -> bool:
        return hmac.compare_digest(self.hash_password(password), stored_hash)


class SecureStorage:
    """Encrypted secrets in a key-value store, guarded by a master password."""

    def __init__(
        self,
        store: Optional[KeyValueStore] = None,
        prefix: str = "secure_",
        crypto: Optional[CryptoManager] = None,
    ):
        """
        Args:
            store: Persistence backend (in-memory when omitted)
            prefix: Prefix for every key this instance writes
            crypto: Crypto implementation (default parameters when omitted)
        """
        self.store = store if store is not None else MemoryKeyValueStore()
        self.prefix = prefix
        self.crypto = crypto or CryptoManager()
        self.master_password_key = f"{prefix}master_hash"

    def has_master_password(self) -> bool:
        return bool(self.store.get(self.master_password_key))

    def set_master_password(self, password: str) -> None:
        """Persist the hash of a new master password."""
        if not password:
            raise ValueError("Master password must not be empty")
        self.store.set(self.master_password_key, self.crypto.hash_password(password))

    def verify_master_password(self, password: str) -> bool:
        """False when no master password exists or the password is wrong."""
        stored_hash = self.store.get(self.master_password_key)
        if not stored_hash:
            return False
        return self.crypto.verify_password(password, stored_hash)

    def encrypt(self, text: str, password: str) -> str:
        return self.crypto.encrypt(text, password)

    def decrypt(self, blob: str, password: str) -> str:
        return self.crypto.decrypt(blob, password)

    def set_item(self, key: str, value: str, password: str) -> None:
        self.store.set(self.prefix + key, self.crypto.encrypt(value, password))

    def get_item(self, key: str, password: str) -> Optional[str]:
        """
        Decrypt a stored secret.

        Returns:
            Plaintext, or None when nothing is stored under key

        Raises:
            DecryptionError: Wrong password or corrupted blob
        """
        blob = self.store.get(self.prefix + key)
        if not blob:
            return None
        try:
            return self.crypto.decrypt(blob, password)
        except DecryptionError:
            logger.warning(f"Failed to decrypt secure item '{key}'")
            raise

    def remove_item(self, key: str) -> None:
        self.store.delete(self.prefix + key)

    def item_keys(self) -> List[str]:
        """Names of stored secrets (without prefix), master hash excluded."""
        return [
            k[len(self.prefix):]
            for k in self.store.keys(self.prefix)
            if k != self.master_password_key
        ]

    def clear(self) -> None:
        """Remove every secret but keep the master password record."""
        for key in self.item_keys():
            self.store.delete(self.prefix + key)

    def change_master_password(self, old_password: str, new_password: str) -> None:
        """
        Rehash the master password and re-encrypt every stored secret.

        All secrets are decrypted before anything is written, so a wrong
        old password leaves the store untouched.

        Raises:
            DecryptionError: old_password does not match
        """
        if not self.verify_master_password(old_password):
            raise DecryptionError("Current master password is incorrect.")
        if not new_password:
            raise ValueError("Master password must not be empty")

        plaintexts = {key: self.get_item(key, old_password) for key in self.item_keys()}
        for key, value in plaintexts.items():
            if value is not None:
                self.set_item(key, value, new_password)
        self.set_master_password(new_password)
        logger.info(f"Master password changed, {len(plaintexts)} secret(s) re-encrypted")
