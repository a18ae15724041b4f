"""
Tests for encrypted upload/download workflows against an in-memory store.
"""
from datetime import datetime, timedelta, timezone
from typing import Dict, List, Optional

import pytest

from accounts.models import Credential
from crypto.codec import CryptoError, decrypt, split_payload
from crypto.kdf import KdfParams
from storage.errors import RemoteStoreError, UserCancelled
from storage.file_manager import (
    ENCRYPTED_FOLDER,
    PAYLOAD_MIME_TYPE,
    delete_file,
    download_decrypted,
    fetch_decrypted,
    list_encrypted_files,
    require_passphrase,
    upload_encrypted,
)
from storage.models import StoredObject

FAST = KdfParams(time_cost=1, memory_cost=1024, parallelism=1)
CREDENTIAL = Credential(
    access_token="tok",
    expires_at=datetime.now(timezone.utc) + timedelta(hours=1),
)


class FakeDrive:
    """Just enough of DriveClient, kept in memory."""

    def __init__(self, fail_upload: bool = False):
        self.folders: Dict[str, str] = {}
        self.objects: Dict[str, Dict] = {}
        self.fail_upload = fail_upload
        self.credentials: List[Credential] = []
        self._next = 0

    def _new_id(self, prefix: str) -> str:
        self._next += 1
        return f"{prefix}-{self._next}"

    def find_or_create_folder(self, credential, name):
        self.credentials.append(credential)
        if name not in self.folders:
            self.folders[name] = self._new_id("folder")
        return self.folders[name]

    def list_children(self, credential, folder_id, *, mime_types=None, folders_only=False):
        self.credentials.append(credential)
        return sorted(
            (
                StoredObject(id=oid, name=o["name"], mime_type=o["mime_type"], size=len(o["data"]))
                for oid, o in self.objects.items()
                if o["parent"] == folder_id
            ),
            key=lambda o: o.name,
        )

    def upload(self, credential, parent_id, name, data, mime_type="application/octet-stream"):
        self.credentials.append(credential)
        if self.fail_upload:
            raise RemoteStoreError("upload failed", status_code=500)
        oid = self._new_id("obj")
        self.objects[oid] = {"parent": parent_id, "name": name, "data": data, "mime_type": mime_type}
        return oid

    def download(self, credential, object_id):
        self.credentials.append(credential)
        if object_id not in self.objects:
            raise RemoteStoreError("not found", status_code=404)
        return self.objects[object_id]["data"]

    def delete(self, credential, object_id):
        self.credentials.append(credential)
        if self.objects.pop(object_id, None) is None:
            raise RemoteStoreError("not found", status_code=404)


@pytest.fixture
def drive():
    return FakeDrive()


def _upload(drive, path, passphrase: Optional[str] = "pw", **kwargs):
    return upload_encrypted(drive, CREDENTIAL, path, passphrase, kdf_params=FAST, **kwargs)


def test_upload_stores_encrypted_payload(drive, tmp_path):
    src = tmp_path / "notes.txt"
    src.write_bytes(b"top secret notes")

    stored = _upload(drive, src)

    assert stored.name == "notes.txt"
    obj = drive.objects[stored.id]
    assert obj["parent"] == drive.folders[ENCRYPTED_FOLDER]
    assert obj["mime_type"] == PAYLOAD_MIME_TYPE
    assert b"top secret notes" not in obj["data"]
    assert split_payload(obj["data"])[0] == "text/plain"
    assert decrypt(obj["data"], "pw") == (b"top secret notes", "text/plain")
    # the same credential object is handed to every store call
    assert all(c is CREDENTIAL for c in drive.credentials)


def test_upload_then_download_round_trip(drive, tmp_path):
    src = tmp_path / "scan.pdf"
    src.write_bytes(bytes([0x25, 0x50, 0x44, 0x46]) + b"-1.7 body")
    stored = _upload(drive, src, "correct-horse")

    dest = tmp_path / "out"
    target, content_type = download_decrypted(
        drive, CREDENTIAL, stored.id, stored.name, "correct-horse", dest
    )

    assert target == dest / "scan.pdf"
    assert target.read_bytes() == src.read_bytes()
    assert content_type == "application/pdf"


def test_custom_folder_name(drive, tmp_path):
    src = tmp_path / "a.bin"
    src.write_bytes(b"x")
    stored = _upload(drive, src, folder_name="Vault")

    assert set(drive.folders) == {"Vault"}
    files = list_encrypted_files(drive, CREDENTIAL, folder_name="Vault")
    assert [f.id for f in files] == [stored.id]


def test_list_encrypted_files_creates_folder(drive):
    assert list_encrypted_files(drive, CREDENTIAL) == []
    assert ENCRYPTED_FOLDER in drive.folders


@pytest.mark.parametrize("passphrase", [None, ""])
def test_missing_passphrase_is_user_cancelled(drive, tmp_path, passphrase):
    src = tmp_path / "a.txt"
    src.write_bytes(b"x")

    with pytest.raises(UserCancelled):
        _upload(drive, src, passphrase)
    assert drive.objects == {}
    assert drive.folders == {}


def test_require_passphrase_passes_value_through():
    assert require_passphrase("pw") == "pw"
    with pytest.raises(UserCancelled):
        require_passphrase("")


def test_upload_missing_file(drive, tmp_path):
    with pytest.raises(FileNotFoundError):
        _upload(drive, tmp_path / "nope.txt")


def test_failed_upload_leaves_folder_behind(tmp_path):
    drive = FakeDrive(fail_upload=True)
    src = tmp_path / "a.txt"
    src.write_bytes(b"x")

    with pytest.raises(RemoteStoreError):
        _upload(drive, src)
    # no rollback of earlier steps
    assert ENCRYPTED_FOLDER in drive.folders
    assert drive.objects == {}


def test_wrong_passphrase_writes_nothing(drive, tmp_path):
    src = tmp_path / "a.txt"
    src.write_bytes(b"secret")
    stored = _upload(drive, src, "right")

    dest = tmp_path / "out"
    with pytest.raises(CryptoError):
        download_decrypted(drive, CREDENTIAL, stored.id, stored.name, "wrong", dest)
    assert not (dest / "a.txt").exists()


def test_download_cancelled_before_network(drive, tmp_path):
    with pytest.raises(UserCancelled):
        download_decrypted(drive, CREDENTIAL, "obj-1", "a.txt", "", tmp_path)
    assert drive.credentials == []


def test_download_missing_object(drive, tmp_path):
    with pytest.raises(RemoteStoreError):
        download_decrypted(drive, CREDENTIAL, "obj-404", "a.txt", "pw", tmp_path)


def test_remote_name_cannot_escape_destination(drive, tmp_path):
    src = tmp_path / "evil.txt"
    src.write_bytes(b"payload")
    stored = _upload(drive, src)

    dest = tmp_path / "out"
    target, _ = download_decrypted(drive, CREDENTIAL, stored.id, "../../evil.txt", "pw", dest)
    assert target == dest / "evil.txt"


def test_fetch_decrypted_returns_plaintext_file(drive, tmp_path):
    src = tmp_path / "pic.png"
    src.write_bytes(b"\x89PNG")
    stored = _upload(drive, src)

    plain = fetch_decrypted(drive, CREDENTIAL, stored.id, stored.name, "pw")
    assert plain.data == b"\x89PNG"
    assert plain.content_type == "image/png"
    assert plain.size == 4


def test_delete_file(drive, tmp_path):
    src = tmp_path / "a.txt"
    src.write_bytes(b"x")
    stored = _upload(drive, src)

    delete_file(drive, CREDENTIAL, stored.id)
    assert drive.objects == {}
    with pytest.raises(RemoteStoreError):
        delete_file(drive, CREDENTIAL, stored.id)
