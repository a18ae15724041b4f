import os
from typing import Tuple

from cryptography.hazmat.primitives import padding
from cryptography.hazmat.primitives.ciphers import Cipher, algorithms, modes
from cryptography.hazmat.primitives.ciphers.aead import AESGCM

NONCE_SIZE = 12
TAG_SIZE = 16


def _check_aes_key(key: bytes) -> None:
    if len(key) not in (16, 24, 32):
        raise ValueError("AES key must be 128/192/256 bits")


def encrypt_bytes_aes_gcm(plaintext: bytes, key: bytes) -> Tuple[bytes, bytes]:
    """
    Encrypt plaintext with AES-GCM. Returns (nonce, ciphertext||tag).
    """
    _check_aes_key(key)
    nonce = os.urandom(NONCE_SIZE)
    return nonce, AESGCM(key).encrypt(nonce, plaintext, None)


def decrypt_bytes_aes_gcm(nonce: bytes, ct_with_tag: bytes, key: bytes) -> bytes:
    """
    Decrypt AES-GCM ciphertext||tag. Raises InvalidTag if authentication fails.
    """
    _check_aes_key(key)
    if len(nonce) != NONCE_SIZE:
        raise ValueError("GCM nonce must be 12 bytes")
    if len(ct_with_tag) < TAG_SIZE:
        raise ValueError("ciphertext shorter than GCM tag")
    return AESGCM(key).decrypt(nonce, ct_with_tag, None)


def encrypt_bytes_aes_cbc(plaintext: bytes, key: bytes, iv: bytes) -> bytes:
    """AES-CBC with PKCS7 padding (no integrity check)."""
    _check_aes_key(key)
    padder = padding.PKCS7(algorithms.AES.block_size).padder()
    padded = padder.update(plaintext) + padder.finalize()
    encryptor = Cipher(algorithms.AES(key), modes.CBC(iv)).encryptor()
    return encryptor.update(padded) + encryptor.finalize()


def decrypt_bytes_aes_cbc(ciphertext: bytes, key: bytes, iv: bytes) -> bytes:
    """
    Inverse of encrypt_bytes_aes_cbc. Raises ValueError on a bad block
    length or invalid padding.
    """
    _check_aes_key(key)
    if not ciphertext or len(ciphertext) % 16:
        raise ValueError("ciphertext is not a whole number of AES blocks")
    decryptor = Cipher(algorithms.AES(key), modes.CBC(iv)).decryptor()
    padded = decryptor.update(ciphertext) + decryptor.finalize()
    unpadder = padding.PKCS7(algorithms.AES.block_size).unpadder()
    return unpadder.update(padded) + unpadder.finalize()
