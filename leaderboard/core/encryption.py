"""
Encryption of RevenueCat API keys at rest

Each token carries its own random salt and nonce:

    salt_hex:nonce_hex:tag_hex:ciphertext_hex

The AES-256-GCM key is derived from the master secret and the salt with
PBKDF2-HMAC-SHA512, so two encryptions of the same API key never share a
key or a ciphertext.  Rotating the master secret makes every stored token
unreadable.
"""

import logging
import os
from typing import Optional

from cryptography.exceptions import InvalidTag
from cryptography.hazmat.backends import default_backend
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.ciphers import Cipher, algorithms, modes
from cryptography.hazmat.primitives.kdf.pbkdf2 import PBKDF2HMAC

from leaderboard.core.exceptions import (
    AuthenticationError,
    ConfigurationError,
    MalformedTokenError,
)

logger = logging.getLogger(__name__)

SALT_LENGTH = 64
NONCE_LENGTH = 16
MIN_NONCE_LENGTH = 8  # smallest IV accepted by GCM
TAG_LENGTH = 16
KEY_LENGTH = 32  # AES-256
KDF_ITERATIONS = 100_000
TOKEN_SEPARATOR = ":"


def _require_master_secret(master_secret: Optional[str]) -> str:
    if not master_secret:
        raise ConfigurationError("ENCRYPTION_KEY is not set")
    return master_secret


def derive_key(master_secret: str, salt: bytes) -> bytes:
    """Derive the AES key for one token"""
    kdf = PBKDF2HMAC(
        algorithm=hashes.SHA512(),
        length=KEY_LENGTH,
        salt=salt,
        iterations=KDF_ITERATIONS,
        backend=default_backend()
    )
    return kdf.derive(master_secret.encode("utf-8"))


def encrypt_secret(plaintext: str, master_secret: str) -> str:
    """Encrypt an API key into a storable token"""
    master_secret = _require_master_secret(master_secret)

    salt = os.urandom(SALT_LENGTH)
    nonce = os.urandom(NONCE_LENGTH)
    key = derive_key(master_secret, salt)

    encryptor = Cipher(
        algorithms.AES(key),
        modes.GCM(nonce),
        backend=default_backend()
    ).encryptor()
    ciphertext = encryptor.update(plaintext.encode("utf-8")) + encryptor.finalize()

    return TOKEN_SEPARATOR.join(
        part.hex() for part in (salt, nonce, encryptor.tag, ciphertext)
    )


def decrypt_secret(token: str, master_secret: str) -> str:
    """
    Decrypt a token produced by encrypt_secret.

    Raises:
        MalformedTokenError: the token does not have exactly four fields
        AuthenticationError: bad hex, bad tag, or a different master secret
    """
    master_secret = _require_master_secret(master_secret)

    parts = token.split(TOKEN_SEPARATOR) if isinstance(token, str) else []
    if len(parts) != 4:
        raise MalformedTokenError("Invalid encrypted API key format")

    try:
        salt, nonce, tag, ciphertext = (bytes.fromhex(part) for part in parts)
    except ValueError as e:
        raise AuthenticationError("Encrypted API key is not valid hex") from e

    if len(tag) != TAG_LENGTH or len(nonce) < MIN_NONCE_LENGTH:
        raise AuthenticationError("Encrypted API key has an invalid nonce or tag")

    key = derive_key(master_secret, salt)
    decryptor = Cipher(
        algorithms.AES(key),
        modes.GCM(nonce, tag),
        backend=default_backend()
    ).decryptor()

    try:
        plaintext = decryptor.update(ciphertext) + decryptor.finalize()
    except InvalidTag as e:
        raise AuthenticationError("Failed to decrypt API key") from e

    try:
        return plaintext.decode("utf-8")
    except UnicodeDecodeError as e:
        raise AuthenticationError("Decrypted API key is not valid UTF-8") from e


class CredentialCipher:
    """Encrypts and decrypts API keys with one process-wide master secret"""

    def __init__(self, master_secret: str):
        self._master_secret = _require_master_secret(master_secret)

    def encrypt(self, plaintext: str) -> str:
        return encrypt_secret(plaintext, self._master_secret)

    def decrypt(self, token: str) -> str:
        return decrypt_secret(token, self._master_secret)

    def __repr__(self):
        return "<CredentialCipher>"
