"""
Passphrase Key Derivation

Argon2id for the authenticated container, and OpenSSL's EVP_BytesToKey
for payloads written in the CryptoJS/OpenSSL "Salted__" format.
"""

from dataclasses import dataclass
from typing import Tuple

from argon2 import PasswordHasher
from argon2.low_level import Type, hash_secret_raw
from cryptography.hazmat.primitives import hashes

# Upper bounds accepted when reading parameters back out of a payload
MAX_TIME_COST = 16
MAX_MEMORY_COST = 1 << 20  # KiB (1 GiB)
MAX_PARALLELISM = 16


@dataclass(frozen=True)
class KdfParams:
    time_cost: int
    memory_cost: int  # KiB
    parallelism: int

    @classmethod
    def default(cls) -> "KdfParams":
        """argon2-cffi's own defaults, as used by PasswordHasher()."""
        ph = PasswordHasher()
        return cls(
            time_cost=ph.time_cost,
            memory_cost=ph.memory_cost,
            parallelism=ph.parallelism,
        )

    def is_reasonable(self) -> bool:
        return (
            1 <= self.time_cost <= MAX_TIME_COST
            and 1 <= self.parallelism <= MAX_PARALLELISM
            and 8 * self.parallelism <= self.memory_cost <= MAX_MEMORY_COST
        )


def derive_key(passphrase: str, salt: bytes, params: KdfParams, length: int = 32) -> bytes:
    """
    Derive a symmetric key from a passphrase with Argon2id.

    Args:
        passphrase: User-supplied secret
        salt: Random per-payload salt (16 bytes)
        params: Argon2 cost parameters
        length: Key length in bytes

    Returns:
        Raw key bytes
    """
    return hash_secret_raw(
        secret=passphrase.encode("utf-8"),
        salt=salt,
        time_cost=params.time_cost,
        memory_cost=params.memory_cost,
        parallelism=params.parallelism,
        hash_len=length,
        type=Type.ID,
    )


def evp_bytes_to_key(
    passphrase: str,
    salt: bytes,
    key_len: int = 32,
    iv_len: int = 16,
) -> Tuple[bytes, bytes]:
    """OpenSSL EVP_BytesToKey with MD5 and a single round (CryptoJS default)."""
    secret = passphrase.encode("utf-8")
    derived = b""
    block = b""
    while len(derived) < key_len + iv_len:
        digest = hashes.Hash(hashes.MD5())
        digest.update(block + secret + salt)
        block = digest.finalize()
        derived += block
    return derived[:key_len], derived[key_len:key_len + iv_len]
