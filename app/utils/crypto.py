"""
Secrets handling for ClientForge.

    hash_password / verify_password   bcrypt, 12 rounds; werkzeug hashes still verify
    encrypt_secret / decrypt_secret   Fernet, keyed by ENCRYPTION_KEY (vault values)
    generate_token / sha256_hex       opaque portal and invite tokens, stored hashed

Create a key with ``Fernet.generate_key().decode()`` and export it as
ENCRYPTION_KEY. The key is read per call so it can be rotated by re-encrypting.
"""

import hashlib
import os
import secrets

import bcrypt
from cryptography.fernet import Fernet
from werkzeug.security import check_password_hash

_BCRYPT_PREFIXES = ("$2a$", "$2b$")


def hash_password(plain_password: str) -> str:
    return bcrypt.hashpw(plain_password.encode("utf-8"), bcrypt.gensalt(rounds=12)).decode("utf-8")


def verify_password(plain_password: str, password_hash: str) -> bool:
    if not password_hash or plain_password is None:
        return False
    if password_hash.startswith(_BCRYPT_PREFIXES):
        return bcrypt.checkpw(plain_password.encode("utf-8"), password_hash.encode("utf-8"))
    return check_password_hash(password_hash, plain_password)


def _vault_cipher() -> Fernet:
    key = os.getenv("ENCRYPTION_KEY")
    if not key:
        raise RuntimeError("ENCRYPTION_KEY is not set; vault values cannot be encrypted")
    return Fernet(key.encode("ascii"))


def encrypt_secret(plaintext: str) -> str:
    return _vault_cipher().encrypt(plaintext.encode("utf-8")).decode("ascii")


def decrypt_secret(ciphertext: str) -> str:
    """Raises cryptography.fernet.InvalidToken for tampered data or a different key."""
    return _vault_cipher().decrypt(ciphertext.encode("ascii")).decode("utf-8")


def generate_token(nbytes: int = 32) -> str:
    return secrets.token_hex(nbytes)


def sha256_hex(value: str) -> str:
    return hashlib.sha256(value.encode("utf-8")).hexdigest()
