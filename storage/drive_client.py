"""
Google Drive API client for Drive View.

Handles all HTTP interactions with the Drive REST API (v3). Every call takes
the caller's Credential explicitly; nothing is retried.
"""

from __future__ import annotations

import json
import logging
import uuid
from typing import Any, Dict, Iterable, List, Optional
from urllib.parse import quote

import httpx

from accounts.models import Credential

from .errors import CredentialError, RemoteStoreError
from .models import FOLDER_MIME_TYPE, StoredObject

logger = logging.getLogger(__name__)

API_BASE = "https://www.googleapis.com/drive/v3"
UPLOAD_BASE = "https://www.googleapis.com/upload/drive/v3"

IMAGE_MIME_TYPES = (
    "image/jpeg",
    "image/png",
    "image/gif",
    "image/bmp",
    "image/webp",
)

LIST_FIELDS = "nextPageToken, files(id, name, mimeType, size, thumbnailLink, webContentLink, webViewLink)"


def _quote(value: str) -> str:
    """Escape a literal for the Drive query language."""
    return value.replace("\\", "\\\\").replace("'", "\\'")


def _mime_clause(mime_types: Iterable[str]) -> str:
    return " or ".join(f"mimeType='{_quote(m)}'" for m in mime_types)


class DriveClient:
    """
    Google Drive API client.

    Listing, folder lookup, upload, download, delete and copy. Usable as a
    context manager; an injected httpx.Client is left open on close().
    """

    def __init__(
        self,
        *,
        api_base: str = API_BASE,
        upload_base: str = UPLOAD_BASE,
        timeout: float = 60.0,
        page_size: int = 1000,
        client: Optional[httpx.Client] = None,
    ) -> None:
        self._api_files = f"{api_base.rstrip('/')}/files"
        self._upload_files = f"{upload_base.rstrip('/')}/files"
        self._page_size = page_size
        self._owns_client = client is None
        self._client = client or httpx.Client(timeout=timeout)
        self._api_calls = 0

    def close(self) -> None:
        if self._owns_client:
            self._client.close()

    def __enter__(self) -> "DriveClient":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    @property
    def api_calls(self) -> int:
        """Total API calls made by this client."""
        return self._api_calls

    # --------------- Internal ---------------
    def _request(
        self,
        credential: Credential,
        method: str,
        url: str,
        *,
        headers: Optional[Dict[str, str]] = None,
        **kwargs: Any,
    ) -> httpx.Response:
        if credential is None or credential.is_expired():
            raise CredentialError("Session expired; please sign in again.")

        merged = credential.authorization_header()
        if headers:
            merged.update(headers)

        try:
            resp = self._client.request(method, url, headers=merged, **kwargs)
        except httpx.HTTPError as exc:
            raise RemoteStoreError(f"{method} {url} failed: {exc}") from exc
        finally:
            self._api_calls += 1

        if resp.is_success:
            return resp

        logger.debug("%s %s -> HTTP %s: %s", method, url, resp.status_code, resp.text[:200])
        if resp.status_code == 401:
            raise CredentialError(
                "Drive rejected the access token (HTTP 401)", status_code=resp.status_code
            )
        raise RemoteStoreError(
            f"{method} {url} failed with HTTP {resp.status_code}", status_code=resp.status_code
        )

    @staticmethod
    def _json(resp: httpx.Response) -> Dict[str, Any]:
        try:
            data = resp.json()
        except ValueError as exc:
            raise RemoteStoreError("Drive returned a non-JSON response") from exc
        if not isinstance(data, dict):
            raise RemoteStoreError("Drive returned an unexpected response shape")
        return data

    def _list(self, credential: Credential, query: str, *, order_by: Optional[str] = "name") -> List[StoredObject]:
        items: List[StoredObject] = []
        page_token: Optional[str] = None

        while True:
            params: Dict[str, Any] = {
                "q": query,
                "fields": LIST_FIELDS,
                "pageSize": self._page_size,
            }
            if order_by:
                params["orderBy"] = order_by
            if page_token:
                params["pageToken"] = page_token

            data = self._json(self._request(credential, "GET", self._api_files, params=params))
            items.extend(StoredObject.from_api(f) for f in data.get("files", []))
            page_token = data.get("nextPageToken")
            if not page_token:
                break

        return items

    # --------------- Public API ---------------
    def find_folder(self, credential: Credential, name: str) -> Optional[str]:
        query = f"name='{_quote(name)}' and mimeType='{FOLDER_MIME_TYPE}' and trashed=false"
        folders = self._list(credential, query, order_by=None)
        return folders[0].id if folders else None

    def create_folder(self, credential: Credential, name: str, parent_id: Optional[str] = None) -> str:
        metadata: Dict[str, Any] = {"name": name, "mimeType": FOLDER_MIME_TYPE}
        if parent_id:
            metadata["parents"] = [parent_id]
        resp = self._request(
            credential, "POST", self._api_files,
            params={"fields": "id"},
            json=metadata,
        )
        folder_id = self._json(resp).get("id")
        if not folder_id:
            raise RemoteStoreError(f"Drive did not return an id for new folder '{name}'")
        logger.info("created folder %s (%s)", name, folder_id)
        return folder_id

    def find_or_create_folder(self, credential: Credential, name: str) -> str:
        """
        Look up a non-trashed folder by name, creating it if missing.

        Returns:
            Folder ID
        """
        return self.find_folder(credential, name) or self.create_folder(credential, name)

    def list_children(
        self,
        credential: Credential,
        folder_id: str,
        *,
        mime_types: Optional[Iterable[str]] = None,
        folders_only: bool = False,
    ) -> List[StoredObject]:
        """
        List non-trashed items in a folder, ordered by name.

        Args:
            folder_id: Parent folder ID
            mime_types: Only include these MIME types
            folders_only: Only include sub-folders
        """
        query = f"'{_quote(folder_id)}' in parents and trashed=false"
        if folders_only:
            query += f" and mimeType='{FOLDER_MIME_TYPE}'"
        elif mime_types:
            query += f" and ({_mime_clause(mime_types)})"
        return self._list(credential, query)

    def list_folders(self, credential: Credential) -> List[StoredObject]:
        """Every non-trashed folder the account can see."""
        return self._list(credential, f"mimeType='{FOLDER_MIME_TYPE}' and trashed=false")

    def list_images(self, credential: Credential, folder_id: str) -> List[StoredObject]:
        return self.list_children(credential, folder_id, mime_types=IMAGE_MIME_TYPES)

    def upload(
        self,
        credential: Credential,
        parent_id: str,
        name: str,
        data: bytes,
        mime_type: str = "application/octet-stream",
    ) -> str:
        """
        Create a file in one multipart request.

        Returns:
            The new object ID
        """
        boundary = f"driveview-{uuid.uuid4().hex}"
        metadata = json.dumps({"name": name, "parents": [parent_id]}).encode("utf-8")
        body = b"".join([
            f"--{boundary}\r\n".encode("ascii"),
            b"Content-Type: application/json; charset=UTF-8\r\n\r\n",
            metadata,
            f"\r\n--{boundary}\r\n".encode("ascii"),
            f"Content-Type: {mime_type}\r\n\r\n".encode("ascii"),
            data,
            f"\r\n--{boundary}--\r\n".encode("ascii"),
        ])
        resp = self._request(
            credential, "POST", self._upload_files,
            params={"uploadType": "multipart", "fields": "id"},
            headers={"Content-Type": f"multipart/related; boundary={boundary}"},
            content=body,
        )
        object_id = self._json(resp).get("id")
        if not object_id:
            raise RemoteStoreError(f"Drive did not return an id for upload '{name}'")
        logger.debug("uploaded %s (%d bytes) as %s", name, len(data), object_id)
        return object_id

    def download(self, credential: Credential, object_id: str) -> bytes:
        resp = self._request(
            credential, "GET", f"{self._api_files}/{quote(object_id, safe='')}",
            params={"alt": "media"},
        )
        return resp.content

    def delete(self, credential: Credential, object_id: str) -> None:
        self._request(credential, "DELETE", f"{self._api_files}/{quote(object_id, safe='')}")
        logger.info("deleted %s", object_id)

    def copy(self, credential: Credential, object_id: str, destination_parent_id: str) -> str:
        resp = self._request(
            credential, "POST", f"{self._api_files}/{quote(object_id, safe='')}/copy",
            params={"fields": "id"},
            json={"parents": [destination_parent_id]},
        )
        new_id = self._json(resp).get("id")
        if not new_id:
            raise RemoteStoreError(f"Drive did not return an id for copy of {object_id}")
        return new_id
