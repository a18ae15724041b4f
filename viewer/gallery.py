"""
Gallery controller shared by the CLI and the GUI.

Holds the transient viewer state (folders, selected folder, image list,
lightbox position) and the image cache it was given. Every store call takes
the caller's credential.
"""

from __future__ import annotations

import logging
from typing import List, Optional

from accounts.models import Credential
from storage.drive_client import DriveClient
from storage.errors import CredentialError, RemoteStoreError
from storage.models import StoredObject

from .cache import ImageCache
from .navigation import Navigator

logger = logging.getLogger(__name__)

FAVORITES_FOLDER = "Favorites"


class Gallery:
    def __init__(
        self,
        client: DriveClient,
        cache: ImageCache,
        *,
        favorites_folder: str = FAVORITES_FOLDER,
        prefetch: int = 1,
    ) -> None:
        self.client = client
        self.cache = cache
        self.favorites_folder = favorites_folder
        self.prefetch = max(prefetch, 0)
        self.navigator = Navigator()

        self.folders: List[StoredObject] = []
        self.images: List[StoredObject] = []
        self.selected_folder: Optional[str] = None
        self._favorites_id: Optional[str] = None

    # --------------- Folders ---------------
    def load_folders(self, credential: Credential) -> List[StoredObject]:
        self.folders = self.client.list_folders(credential)
        return self.folders

    def open_folder(self, credential: Credential, folder_id: str) -> List[StoredObject]:
        """Select a folder and list its images; closes any open image."""
        images = self.client.list_images(credential, folder_id)
        self.selected_folder = folder_id
        self.images = images
        self.navigator.reset(len(images))
        return images

    def close_folder(self) -> None:
        self.selected_folder = None
        self.images = []
        self.navigator.reset(0)

    def reset(self) -> None:
        """Forget everything tied to the signed-in account."""
        self.close_folder()
        self.folders = []
        self.cache.clear()
        self._favorites_id = None

    # --------------- Images ---------------
    @property
    def current(self) -> Optional[StoredObject]:
        index = self.navigator.index
        if index is None:
            return None
        return self.images[index]

    def image_bytes(self, credential: Credential, image_id: str) -> bytes:
        """Image content, from the cache when possible."""
        data = self.cache.get(image_id)
        if data is None:
            data = self.client.download(credential, image_id)
            self.cache.put(image_id, data)
        return data

    def open_image(self, credential: Credential, index: int) -> Optional[bytes]:
        self.navigator.open(index)
        return self.show_current(credential)

    def show_current(self, credential: Credential) -> Optional[bytes]:
        image = self.current
        if image is None:
            return None
        return self.image_bytes(credential, image.id)

    def step(self, credential: Credential, delta: int) -> Optional[bytes]:
        """Move the lightbox by one image (+1 next, -1 previous)."""
        if delta > 0:
            self.navigator.next()
        elif delta < 0:
            self.navigator.previous()
        return self.show_current(credential)

    def close_image(self) -> None:
        self.navigator.close()

    def prefetch_neighbours(self, credential: Credential) -> int:
        """
        Warm the cache with images around the open one.

        A failed prefetch is not an error for the user; it is retried when
        the image is actually shown.

        Returns:
            Number of images fetched
        """
        index = self.navigator.index
        if index is None or not self.prefetch:
            return 0

        fetched = 0
        for offset in range(1, self.prefetch + 1):
            for neighbour in (index + offset, index - offset):
                if not 0 <= neighbour < len(self.images):
                    continue
                image_id = self.images[neighbour].id
                if self.cache.get(image_id) is not None:
                    continue
                try:
                    self.cache.put(image_id, self.client.download(credential, image_id))
                except CredentialError:
                    raise
                except RemoteStoreError as exc:
                    logger.warning("prefetch of %s failed: %s", image_id, exc)
                    continue
                fetched += 1
        return fetched

    def delete_current(self, credential: Credential) -> Optional[StoredObject]:
        """
        Delete the open image from the store.

        Returns:
            The image now shown in its place, or None if the list is empty
        """
        image = self.current
        if image is None:
            return None
        self.client.delete(credential, image.id)
        self.cache.discard(image.id)
        self.images.pop(self.navigator.index)
        self.navigator.remove_current()
        return self.current

    def favorite_current(self, credential: Credential) -> Optional[str]:
        """
        Copy the open image into the favorites folder.

        Returns:
            ID of the copy, or None if no image is open
        """
        image = self.current
        if image is None:
            return None
        cached = self._favorites_id is not None
        if not cached:
            self._favorites_id = self.client.find_or_create_folder(credential, self.favorites_folder)
        try:
            copy_id = self.client.copy(credential, image.id, self._favorites_id)
        except RemoteStoreError as exc:
            if not cached or exc.status_code != 404:
                raise
            # folder removed (or owned by another account) since it was looked up
            logger.info("favorites folder %s is gone, looking it up again", self._favorites_id)
            self._favorites_id = self.client.find_or_create_folder(credential, self.favorites_folder)
            copy_id = self.client.copy(credential, image.id, self._favorites_id)
        logger.info("favorited %s as %s", image.name, copy_id)
        return copy_id
