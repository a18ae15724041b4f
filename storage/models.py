from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, Optional

from crypto.models import PlaintextFile

__all__ = ["FOLDER_MIME_TYPE", "PlaintextFile", "StoredObject"]

FOLDER_MIME_TYPE = "application/vnd.google-apps.folder"


@dataclass(frozen=True)
class StoredObject:
    """
    A file or folder held by the remote store.

    `id` is the opaque store-assigned identifier; `name` is what the user
    sees. Everything else the API returned is kept in `metadata`.
    """

    id: str
    name: str
    mime_type: str = ""
    thumbnail_link: Optional[str] = None
    web_view_link: Optional[str] = None
    size: Optional[int] = None
    metadata: Dict[str, Any] = field(default_factory=dict, compare=False, repr=False)

    @property
    def is_folder(self) -> bool:
        return self.mime_type == FOLDER_MIME_TYPE

    @classmethod
    def from_api(cls, data: Dict[str, Any]) -> "StoredObject":
        size = data.get("size")
        return cls(
            id=data["id"],
            name=data.get("name", ""),
            mime_type=data.get("mimeType", ""),
            thumbnail_link=data.get("thumbnailLink"),
            web_view_link=data.get("webViewLink"),
            size=int(size) if size is not None else None,
            metadata=dict(data),
        )

