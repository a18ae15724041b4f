import logging
from pathlib import Path
from typing import List, Optional, Tuple, Union

from accounts.models import Credential
from crypto.codec import SCHEME_AES_GCM, decrypt, encrypt_file
from crypto.kdf import KdfParams

from .drive_client import DriveClient
from .errors import UserCancelled
from .models import PlaintextFile, StoredObject

logger = logging.getLogger(__name__)

ENCRYPTED_FOLDER = "Encrypted-Drive"
PAYLOAD_MIME_TYPE = "application/octet-stream"


# ============================================================================
# Helper methods
# ============================================================================

def require_passphrase(passphrase: Optional[str]) -> str:
    """Treat a dismissed or empty passphrase prompt as a cancellation."""
    if not passphrase:
        raise UserCancelled("A passphrase is required.")
    return passphrase


def _ensure_dir(path: Path) -> Path:
    path.mkdir(parents=True, exist_ok=True)
    return path


def default_download_dir() -> Path:
    return Path.home() / "Downloads" / "drive-view"


def _safe_name(name: str) -> str:
    # stored names come from the remote store; never let them leave dest_dir
    cleaned = Path(name.replace("\\", "/")).name
    if cleaned in ("", ".", ".."):
        raise ValueError(f"unusable file name {name!r}")
    return cleaned


# ============================================================================
# Public operations
# ============================================================================

def list_encrypted_files(
    client: DriveClient,
    credential: Credential,
    *,
    folder_name: str = ENCRYPTED_FOLDER,
) -> List[StoredObject]:
    """List the files in the encrypted folder, creating the folder on first use."""
    folder_id = client.find_or_create_folder(credential, folder_name)
    return client.list_children(credential, folder_id)


def upload_encrypted(
    client: DriveClient,
    credential: Credential,
    filepath: Union[str, Path],
    passphrase: Optional[str],
    *,
    folder_name: str = ENCRYPTED_FOLDER,
    scheme: str = SCHEME_AES_GCM,
    kdf_params: Optional[KdfParams] = None,
) -> StoredObject:
    """
    Encrypt a local file and upload it.

    Args:
        client: Drive client
        credential: Signed-in credential
        filepath: Path to the file to upload
        passphrase: Encryption passphrase (empty -> UserCancelled)
        folder_name: Remote folder holding encrypted files
        scheme: Cipher container family

    Returns:
        The stored object
    """
    passphrase = require_passphrase(passphrase)
    src = Path(filepath).expanduser()
    if not src.is_file():
        raise FileNotFoundError(f"{filepath} is not a file")

    payload, plaintext = encrypt_file(src, passphrase, scheme=scheme, kdf_params=kdf_params)
    folder_id = client.find_or_create_folder(credential, folder_name)
    data = payload.encode("utf-8")
    object_id = client.upload(credential, folder_id, src.name, data, PAYLOAD_MIME_TYPE)

    logger.info(
        "uploaded %s (%s, %d bytes plaintext)",
        plaintext.name, plaintext.content_type or "unknown type", plaintext.size,
    )
    return StoredObject(
        id=object_id,
        name=src.name,
        mime_type=PAYLOAD_MIME_TYPE,
        size=len(data),
    )


def fetch_decrypted(
    client: DriveClient,
    credential: Credential,
    object_id: str,
    name: str,
    passphrase: Optional[str],
) -> PlaintextFile:
    """Download and decrypt a stored payload without touching the disk."""
    passphrase = require_passphrase(passphrase)
    payload = client.download(credential, object_id)
    data, content_type = decrypt(payload, passphrase)
    return PlaintextFile(data=data, content_type=content_type, name=name)


def download_decrypted(
    client: DriveClient,
    credential: Credential,
    object_id: str,
    name: str,
    passphrase: Optional[str],
    dest_dir: Optional[Union[str, Path]] = None,
) -> Tuple[Path, str]:
    """
    Download, decrypt and save a file.

    Nothing is written if the download or decryption fails.

    Returns:
        Tuple of (target_path, content_type)
    """
    plain = fetch_decrypted(client, credential, object_id, name, passphrase)

    target_dir = _ensure_dir(Path(dest_dir).expanduser() if dest_dir else default_download_dir())
    target_path = target_dir / _safe_name(plain.name)
    target_path.write_bytes(plain.data)
    return target_path, plain.content_type


def delete_file(client: DriveClient, credential: Credential, object_id: str) -> None:
    """Delete a stored object."""
    client.delete(credential, object_id)
