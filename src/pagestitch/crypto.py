"""Core cryptographic functions for pagestitch.

Provides AES-256-GCM sealing with PBKDF2-SHA256 key derivation, compatible
with the WebCrypto API for browser-side decryption. Every parameter below is
mirrored by the inline decrypt routine in encrypt.py.
"""

import base64
import os
from dataclasses import dataclass

from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.ciphers.aead import AESGCM
from cryptography.hazmat.primitives.kdf.pbkdf2 import PBKDF2HMAC

from .errors import CryptoError

# Cryptographic parameters (must match browser-side implementation)
ALGORITHM = "aes-256-gcm"
KDF = "pbkdf2-sha256"
ITERATIONS = 100000
SALT_LENGTH = 16  # 128 bits
NONCE_LENGTH = 12  # 96 bits (standard for GCM)
KEY_LENGTH = 32  # 256 bits
TAG_LENGTH = 16  # appended to the ciphertext by AESGCM


@dataclass(frozen=True)
class SealedPage:
    """Everything the browser needs, besides the passphrase, to open a page."""

    salt: bytes
    nonce: bytes
    ciphertext: bytes  # includes the GCM tag

    @property
    def salt_b64(self) -> str:
        return base64.b64encode(self.salt).decode("ascii")

    @property
    def nonce_b64(self) -> str:
        return base64.b64encode(self.nonce).decode("ascii")

    @property
    def ciphertext_b64(self) -> str:
        return base64.b64encode(self.ciphertext).decode("ascii")

    @classmethod
    def from_b64(cls, salt: str, nonce: str, ciphertext: str) -> "SealedPage":
        """Rebuild a sealed page from its base64 constants.

        Raises:
            CryptoError: If any field is not valid base64.
        """
        try:
            return cls(
                salt=base64.b64decode(salt, validate=True),
                nonce=base64.b64decode(nonce, validate=True),
                ciphertext=base64.b64decode(ciphertext, validate=True),
            )
        except ValueError as e:
            raise CryptoError(f"Invalid base64 in sealed page: {e}") from e


def random_bytes(length: int) -> bytes:
    """Read ``length`` bytes from the OS CSPRNG.

    Raises:
        CryptoError: If the OS source is unavailable. There is no fallback.
    """
    try:
        return os.urandom(length)
    except (OSError, NotImplementedError) as e:
        raise CryptoError(f"Secure random source unavailable: {e}") from e


def derive_key(passphrase: str, salt: bytes, iterations: int = ITERATIONS) -> bytes:
    """Derive a 256-bit key from a passphrase using PBKDF2-HMAC-SHA256."""
    kdf = PBKDF2HMAC(
        algorithm=hashes.SHA256(),
        length=KEY_LENGTH,
        salt=salt,
        iterations=iterations,
    )
    return kdf.derive(passphrase.encode("utf-8"))


def _check_lengths(salt: bytes, nonce: bytes) -> None:
    if len(salt) != SALT_LENGTH:
        raise CryptoError(f"Salt must be {SALT_LENGTH} bytes, got {len(salt)}")
    if len(nonce) != NONCE_LENGTH:
        raise CryptoError(f"Nonce must be {NONCE_LENGTH} bytes, got {len(nonce)}")


def seal(
    plaintext: str,
    passphrase: str,
    salt: bytes | None = None,
    nonce: bytes | None = None,
) -> SealedPage:
    """Encrypt plaintext with a key derived from the passphrase.

    Args:
        plaintext: The text to encrypt (can be empty).
        passphrase: Non-empty passphrase.
        salt: Optional 16-byte salt. If None, generates random.
        nonce: Optional 12-byte nonce. If None, generates random.

    Returns:
        The salt, nonce and ciphertext with the GCM tag appended.

    Raises:
        CryptoError: On an empty passphrase, bad lengths, or cipher failure.
    """
    if not passphrase:
        raise CryptoError("Passphrase cannot be empty")

    if salt is None:
        salt = random_bytes(SALT_LENGTH)
    if nonce is None:
        nonce = random_bytes(NONCE_LENGTH)
    _check_lengths(salt, nonce)

    key = derive_key(passphrase, salt)
    try:
        aesgcm = AESGCM(key)
        ciphertext = aesgcm.encrypt(nonce, plaintext.encode("utf-8"), None)
    except (ValueError, OverflowError) as e:
        raise CryptoError(f"Encryption failed: {e}") from e

    return SealedPage(salt=salt, nonce=nonce, ciphertext=ciphertext)


def open_sealed(sealed: SealedPage, passphrase: str) -> str:
    """Decrypt a sealed page.

    Raises:
        CryptoError: If the passphrase is wrong or the data was tampered with.
    """
    _check_lengths(sealed.salt, sealed.nonce)
    if len(sealed.ciphertext) < TAG_LENGTH:
        raise CryptoError("Ciphertext is shorter than the authentication tag")

    key = derive_key(passphrase, sealed.salt)
    aesgcm = AESGCM(key)
    try:
        plaintext = aesgcm.decrypt(sealed.nonce, sealed.ciphertext, None)
    except InvalidTag:
        raise CryptoError("Decryption failed: wrong passphrase or tampered ciphertext")

    try:
        return plaintext.decode("utf-8")
    except UnicodeDecodeError as e:
        raise CryptoError(f"Decryption failed: invalid UTF-8: {e}") from e
