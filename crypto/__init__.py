"""Cryptography utilities for encrypted Drive transfers."""

from .codec import (
    SCHEME_AES_GCM,
    SCHEME_OPENSSL,
    CodecError,
    CryptoError,
    FormatError,
    decrypt,
    encrypt,
    encrypt_file,
    split_payload,
)

from .kdf import KdfParams, derive_key, evp_bytes_to_key
from .models import PlaintextFile

__all__ = [
    # Codec
    "SCHEME_AES_GCM",
    "SCHEME_OPENSSL",
    "CodecError",
    "CryptoError",
    "FormatError",
    "decrypt",
    "encrypt",
    "encrypt_file",
    "split_payload",
    # Key derivation
    "KdfParams",
    "derive_key",
    "evp_bytes_to_key",
    # Models
    "PlaintextFile",
]
