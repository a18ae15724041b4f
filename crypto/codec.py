"""
Encrypted Transfer Codec

Turns a file plus a passphrase into a single text payload that can be
stored in an opaque blob store, and back again.

Payload layout:

    <content-type>\\n<base64 cipher container>

Two container families are understood:

- ``AESGCM__`` (written by default): Argon2id cost parameters, a 16-byte
  salt, a 12-byte nonce and the AES-256-GCM ciphertext with its tag.
- ``Salted__`` (OpenSSL / CryptoJS): an 8-byte salt followed by
  AES-256-CBC ciphertext, key and IV from EVP_BytesToKey. There is no
  integrity check, so a wrong passphrase is only detected when the padding
  happens to be invalid.
"""

import base64
import binascii
import mimetypes
import os
import struct
from pathlib import Path
from typing import Optional, Tuple, Union

from cryptography.exceptions import InvalidTag

from .ciphers import (
    NONCE_SIZE,
    TAG_SIZE,
    decrypt_bytes_aes_cbc,
    decrypt_bytes_aes_gcm,
    encrypt_bytes_aes_cbc,
    encrypt_bytes_aes_gcm,
)
from .kdf import KdfParams, derive_key, evp_bytes_to_key
from .models import PlaintextFile

SCHEME_AES_GCM = "aes-gcm"
SCHEME_OPENSSL = "openssl"
SCHEMES = (SCHEME_AES_GCM, SCHEME_OPENSSL)

GCM_MAGIC = b"AESGCM__"
OPENSSL_MAGIC = b"Salted__"
GCM_SALT_SIZE = 16
OPENSSL_SALT_SIZE = 8

_KDF_HEADER = struct.Struct(">III")
_GCM_HEADER_SIZE = len(GCM_MAGIC) + _KDF_HEADER.size + GCM_SALT_SIZE + NONCE_SIZE


class CodecError(ValueError):
    """Base error for payload encoding/decoding."""


class FormatError(CodecError):
    """Payload is missing the content-type header or is not text."""


class CryptoError(CodecError):
    """The cipher container could not be decoded or decrypted."""


# ============================================================================
# Containers
# ============================================================================

def _seal_gcm(data: bytes, passphrase: str, params: KdfParams) -> bytes:
    salt = os.urandom(GCM_SALT_SIZE)
    key = derive_key(passphrase, salt, params)
    nonce, ct_with_tag = encrypt_bytes_aes_gcm(data, key)
    header = _KDF_HEADER.pack(params.time_cost, params.memory_cost, params.parallelism)
    return GCM_MAGIC + header + salt + nonce + ct_with_tag


def _open_gcm(raw: bytes, passphrase: str) -> bytes:
    if len(raw) < _GCM_HEADER_SIZE + TAG_SIZE:
        raise CryptoError("AES-GCM container is truncated")
    offset = len(GCM_MAGIC)
    params = KdfParams(*_KDF_HEADER.unpack_from(raw, offset))
    if not params.is_reasonable():
        raise CryptoError(f"AES-GCM container has unsupported KDF parameters {params}")
    offset += _KDF_HEADER.size
    salt = raw[offset:offset + GCM_SALT_SIZE]
    offset += GCM_SALT_SIZE
    nonce = raw[offset:offset + NONCE_SIZE]
    offset += NONCE_SIZE

    key = derive_key(passphrase, salt, params)
    try:
        return decrypt_bytes_aes_gcm(nonce, raw[offset:], key)
    except InvalidTag as exc:
        raise CryptoError("wrong passphrase or corrupted data") from exc


def _seal_openssl(data: bytes, passphrase: str) -> bytes:
    salt = os.urandom(OPENSSL_SALT_SIZE)
    key, iv = evp_bytes_to_key(passphrase, salt)
    return OPENSSL_MAGIC + salt + encrypt_bytes_aes_cbc(data, key, iv)


def _open_openssl(raw: bytes, passphrase: str) -> bytes:
    header = len(OPENSSL_MAGIC) + OPENSSL_SALT_SIZE
    if len(raw) <= header:
        raise CryptoError("OpenSSL container is truncated")
    salt = raw[len(OPENSSL_MAGIC):header]
    key, iv = evp_bytes_to_key(passphrase, salt)
    try:
        return decrypt_bytes_aes_cbc(raw[header:], key, iv)
    except ValueError as exc:
        raise CryptoError("wrong passphrase or corrupted data") from exc


def _b64decode(container: str) -> bytes:
    try:
        return base64.b64decode(container.strip(), validate=True)
    except (binascii.Error, ValueError) as exc:
        raise CryptoError("cipher container is not valid base64") from exc


# ============================================================================
# Public operations
# ============================================================================

def encrypt(
    data: bytes,
    content_type: str,
    passphrase: str,
    *,
    scheme: str = SCHEME_AES_GCM,
    kdf_params: Optional[KdfParams] = None,
) -> str:
    """
    Encrypt bytes into a storable payload.

    Args:
        data: Raw file content
        content_type: MIME type recorded in the header line (may be empty)
        passphrase: Non-empty user secret
        scheme: "aes-gcm" (default) or "openssl" for the CryptoJS format
        kdf_params: Argon2 costs for "aes-gcm" (default: library defaults)

    Returns:
        The exact text to store
    """
    if not passphrase:
        raise ValueError("passphrase cannot be empty")
    if "\n" in content_type:
        raise FormatError("content type must not contain a newline")

    if scheme == SCHEME_AES_GCM:
        raw = _seal_gcm(bytes(data), passphrase, kdf_params or KdfParams.default())
    elif scheme == SCHEME_OPENSSL:
        raw = _seal_openssl(bytes(data), passphrase)
    else:
        raise ValueError(f"unknown scheme {scheme!r}, expected one of {SCHEMES}")

    return content_type + "\n" + base64.b64encode(raw).decode("ascii")


def encrypt_file(
    filepath: Union[str, Path],
    passphrase: str,
    *,
    content_type: Optional[str] = None,
    scheme: str = SCHEME_AES_GCM,
    kdf_params: Optional[KdfParams] = None,
) -> Tuple[str, PlaintextFile]:
    """
    Read a local file and encrypt it.

    The content type is guessed from the file name when not given; an
    unknown type is recorded as an empty string.

    Returns:
        Tuple of (payload, the plaintext file that was encrypted)
    """
    path = Path(filepath).expanduser()
    data = path.read_bytes()
    if content_type is None:
        content_type = mimetypes.guess_type(path.name)[0] or ""
    payload = encrypt(data, content_type, passphrase, scheme=scheme, kdf_params=kdf_params)
    return payload, PlaintextFile(data=data, content_type=content_type, name=path.name)


def split_payload(payload: Union[str, bytes]) -> Tuple[str, str]:
    """Split a payload at its first newline into (content_type, container)."""
    if isinstance(payload, (bytes, bytearray)):
        try:
            payload = bytes(payload).decode("utf-8")
        except UnicodeDecodeError as exc:
            raise FormatError("payload is not UTF-8 text") from exc

    content_type, sep, container = payload.partition("\n")
    if not sep:
        raise FormatError("payload has no content-type header line")
    return content_type, container


def decrypt(payload: Union[str, bytes], passphrase: str) -> Tuple[bytes, str]:
    """
    Decrypt a stored payload.

    Returns:
        Tuple of (plaintext bytes, content_type)

    Raises:
        FormatError: no header line, or payload is not text
        CryptoError: container is malformed or fails to decrypt
    """
    if not passphrase:
        raise ValueError("passphrase cannot be empty")

    content_type, container = split_payload(payload)
    raw = _b64decode(container)

    if raw.startswith(GCM_MAGIC):
        data = _open_gcm(raw, passphrase)
    elif raw.startswith(OPENSSL_MAGIC):
        data = _open_openssl(raw, passphrase)
    else:
        raise CryptoError("unrecognised cipher container")

    return data, content_type
