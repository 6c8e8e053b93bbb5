# -*- coding: utf-8 -*-
"""Crypto helpers for passphrase-protected story stores.

This module encapsulates *stateless* cryptographic helpers and the
derived key container. It does **not** perform any file I/O.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Optional, Tuple
import secrets

from argon2 import PasswordHasher
from cryptography.hazmat.primitives.kdf.scrypt import Scrypt
from cryptography.hazmat.primitives.kdf.hkdf import HKDF
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.ciphers.aead import AESGCM

# ---------------------------------------------------------------------
# Parameters
# ---------------------------------------------------------------------

PH = PasswordHasher(
    time_cost=2,
    memory_cost=102_400,
    parallelism=8,
    hash_len=32,
    salt_len=16,
)

SCRYPT_N = 2 ** 14
SCRYPT_R = 8
SCRYPT_P = 1

KEK_LEN = 32
KEY_LEN = 32
SALT_LEN = 16
NONCE_LEN = 12

HKDF_INFO_ENC = b"storybook/enc-key"
STORE_AAD = b"storybook/stories"


# ---------------------------------------------------------------------
# Data structures
# ---------------------------------------------------------------------

@dataclass(frozen=True)
class StoreKeys:
    """Keys derived from a passphrase for one store salt."""

    salt: bytes
    enc_key: bytes


# ---------------------------------------------------------------------
# KDF / HKDF / AEAD helpers
# ---------------------------------------------------------------------

def scrypt_kdf(password: str, salt: bytes, length: int = KEK_LEN) -> bytes:
    """Derive a key from a password using scrypt."""
    kdf = Scrypt(salt=salt, length=length, n=SCRYPT_N, r=SCRYPT_R, p=SCRYPT_P)
    return kdf.derive(password.encode("utf-8"))

def hkdf_derive(key_material: bytes, info: bytes, length: int = 32) -> bytes:
    """Derive a subkey from key material using HKDF-SHA256."""
    hk = HKDF(algorithm=hashes.SHA256(), length=length, salt=None, info=info)
    return hk.derive(key_material)

def derive_store_keys(passphrase: str, salt: Optional[bytes] = None) -> StoreKeys:
    """Derive store keys from *passphrase*; a new salt is drawn if none given."""
    if salt is None:
        salt = secrets.token_bytes(SALT_LEN)
    kek = scrypt_kdf(passphrase, salt, KEK_LEN)
    return StoreKeys(salt=salt, enc_key=hkdf_derive(kek, HKDF_INFO_ENC, KEY_LEN))

def aesgcm_encrypt(key: bytes, plaintext: bytes, aad: Optional[bytes] = None) -> Tuple[bytes, bytes]:
    """Encrypt *plaintext* with AES-GCM; return (nonce, ciphertext)."""
    nonce = secrets.token_bytes(NONCE_LEN)
    ct = AESGCM(key).encrypt(nonce, plaintext, aad)
    return nonce, ct

def aesgcm_decrypt(key: bytes, nonce: bytes, ciphertext: bytes, aad: Optional[bytes] = None) -> bytes:
    """Decrypt AES-GCM *ciphertext* with *nonce*; return plaintext."""
    return AESGCM(key).decrypt(nonce, ciphertext, aad)
