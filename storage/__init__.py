"""Remote object store (Google Drive) and encrypted transfers."""

from .errors import CredentialError, RemoteStoreError, UserCancelled
from .models import PlaintextFile, StoredObject
from .drive_client import DriveClient, IMAGE_MIME_TYPES
from .file_manager import (
    ENCRYPTED_FOLDER,
    delete_file,
    download_decrypted,
    fetch_decrypted,
    list_encrypted_files,
    require_passphrase,
    upload_encrypted,
)

__all__ = [
    "CredentialError",
    "RemoteStoreError",
    "UserCancelled",
    "PlaintextFile",
    "StoredObject",
    "DriveClient",
    "IMAGE_MIME_TYPES",
    "ENCRYPTED_FOLDER",
    "delete_file",
    "download_decrypted",
    "fetch_decrypted",
    "list_encrypted_files",
    "require_passphrase",
    "upload_encrypted",
]
