from datetime import datetime, timedelta, timezone
from typing import Dict, List, Set

import pytest

from accounts.models import Credential
from storage.errors import CredentialError, RemoteStoreError
from storage.models import StoredObject
from viewer.cache import ImageCache
from viewer.gallery import Gallery
from viewer.navigation import Navigator

CREDENTIAL = Credential(
    access_token="tok",
    expires_at=datetime.now(timezone.utc) + timedelta(hours=1),
)


class FakeClock:
    def __init__(self):
        self.now = 1000.0

    def __call__(self) -> float:
        return self.now


# --------------- ImageCache ---------------

def test_cache_get_put():
    cache = ImageCache(max_entries=2)
    assert cache.get("a") is None
    cache.put("a", b"A")
    assert cache.get("a") == b"A"
    assert "a" in cache
    assert "b" not in cache
    assert len(cache) == 1


def test_cache_evicts_least_recently_used():
    cache = ImageCache(max_entries=2, ttl=None)
    cache.put("a", b"A")
    cache.put("b", b"B")
    cache.get("a")  # touch a; b is now oldest
    cache.put("c", b"C")

    assert cache.get("b") is None
    assert cache.get("a") == b"A"
    assert cache.get("c") == b"C"
    assert len(cache) == 2


def test_cache_entries_expire():
    clock = FakeClock()
    cache = ImageCache(max_entries=10, ttl=60, clock=clock)
    cache.put("a", b"A")

    clock.now += 59
    assert cache.get("a") == b"A"
    clock.now += 1
    assert cache.get("a") is None
    assert len(cache) == 0


def test_cache_prune_discard_clear():
    clock = FakeClock()
    cache = ImageCache(max_entries=10, ttl=30, clock=clock)
    cache.put("old", b"1")
    clock.now += 20
    cache.put("new", b"2")
    clock.now += 15

    assert cache.prune() == 1
    assert len(cache) == 1
    cache.discard("new")
    cache.discard("missing")
    assert len(cache) == 0
    cache.put("x", b"3")
    cache.clear()
    assert len(cache) == 0


@pytest.mark.parametrize("kwargs", [{"max_entries": 0}, {"ttl": 0}, {"ttl": -5}])
def test_cache_rejects_bad_limits(kwargs):
    with pytest.raises(ValueError):
        ImageCache(**kwargs)


# --------------- Navigator ---------------

def test_navigator_clamps_at_both_ends():
    nav = Navigator(3)
    nav.open(0)
    assert nav.previous() == 0
    assert nav.next() == 1
    assert nav.next() == 2
    assert nav.next() == 2


def test_navigator_closed_ignores_input():
    nav = Navigator(3)
    assert nav.next() is None
    assert not nav.handle_key("Right")
    assert not nav.handle_swipe(200, 0)
    assert nav.index is None


def test_navigator_open_out_of_range():
    nav = Navigator(2)
    with pytest.raises(IndexError):
        nav.open(2)


@pytest.mark.parametrize("key, expected", [
    ("Right", 2), ("ArrowRight", 2), ("Left", 0), ("ArrowLeft", 0),
])
def test_navigator_arrow_keys(key, expected):
    nav = Navigator(5)
    nav.open(1)
    assert nav.handle_key(key)
    assert nav.index == expected


def test_navigator_escape_closes_and_other_keys_are_ignored():
    nav = Navigator(5)
    nav.open(1)
    assert not nav.handle_key("Space")
    assert nav.index == 1
    assert nav.handle_key("Escape")
    assert not nav.is_open


def test_navigator_swipe_threshold():
    nav = Navigator(5)
    nav.open(2)

    # exactly the threshold is not a swipe
    assert not nav.handle_swipe(100, 50)
    assert nav.index == 2
    # swipe left -> next
    assert nav.handle_swipe(100, 49)
    assert nav.index == 3
    # swipe right -> previous
    assert nav.handle_swipe(0, 51)
    assert nav.index == 2


def test_navigator_remove_current():
    nav = Navigator(3)
    nav.open(2)
    assert nav.remove_current() == 1
    assert nav.count == 2
    nav.open(0)
    assert nav.remove_current() == 0
    assert nav.remove_current() is None
    assert nav.count == 0
    assert not nav.is_open


# --------------- Gallery ---------------

class FakeDrive:
    def __init__(self, images: List[StoredObject]):
        self.images = list(images)
        self.downloads: List[str] = []
        self.deleted: List[str] = []
        self.copies: List[tuple] = []
        self.folder_lookups = 0
        self.broken: Set[str] = set()
        self.credential_error = False
        self.favorites_id = "fav-folder"
        self.missing: Set[str] = set()

    def list_folders(self, credential):
        return [StoredObject(id="f1", name="Holiday", mime_type="application/vnd.google-apps.folder")]

    def list_images(self, credential, folder_id):
        assert folder_id == "f1"
        return list(self.images)

    def download(self, credential, object_id):
        if self.credential_error:
            raise CredentialError("expired")
        if object_id in self.broken:
            raise RemoteStoreError("boom", status_code=500)
        self.downloads.append(object_id)
        return f"bytes-of-{object_id}".encode()

    def delete(self, credential, object_id):
        self.deleted.append(object_id)

    def find_or_create_folder(self, credential, name):
        self.folder_lookups += 1
        return self.favorites_id

    def copy(self, credential, object_id, destination_parent_id):
        if destination_parent_id != self.favorites_id or object_id in self.missing:
            raise RemoteStoreError("File not found", status_code=404)
        self.copies.append((object_id, destination_parent_id))
        return f"copy-of-{object_id}"


def _images(n: int) -> List[StoredObject]:
    return [StoredObject(id=f"img{i}", name=f"{i}.jpg", mime_type="image/jpeg") for i in range(n)]


@pytest.fixture
def drive() -> FakeDrive:
    return FakeDrive(_images(4))


@pytest.fixture
def gallery(drive) -> Gallery:
    g = Gallery(drive, ImageCache(max_entries=10), prefetch=1)
    g.open_folder(CREDENTIAL, "f1")
    return g


def test_open_folder_resets_state(gallery):
    assert gallery.selected_folder == "f1"
    assert len(gallery.images) == 4
    assert gallery.current is None
    assert gallery.navigator.count == 4


def test_load_folders(gallery):
    folders = gallery.load_folders(CREDENTIAL)
    assert [f.name for f in folders] == ["Holiday"]
    assert gallery.folders == folders


def test_open_image_downloads_once(gallery, drive):
    assert gallery.open_image(CREDENTIAL, 1) == b"bytes-of-img1"
    gallery.close_image()
    assert gallery.open_image(CREDENTIAL, 1) == b"bytes-of-img1"
    assert drive.downloads == ["img1"]


def test_step_moves_and_clamps(gallery):
    gallery.open_image(CREDENTIAL, 2)
    assert gallery.step(CREDENTIAL, +1) == b"bytes-of-img3"
    assert gallery.step(CREDENTIAL, +1) == b"bytes-of-img3"
    assert gallery.step(CREDENTIAL, -1) == b"bytes-of-img2"
    assert gallery.current.id == "img2"


def test_prefetch_warms_neighbours(gallery, drive):
    gallery.open_image(CREDENTIAL, 1)
    assert gallery.prefetch_neighbours(CREDENTIAL) == 2
    assert set(drive.downloads) == {"img0", "img1", "img2"}

    # already cached: nothing more to fetch
    assert gallery.prefetch_neighbours(CREDENTIAL) == 0
    gallery.step(CREDENTIAL, +1)
    assert drive.downloads.count("img2") == 1


def test_prefetch_failure_is_not_fatal(gallery, drive):
    drive.broken.add("img2")
    gallery.open_image(CREDENTIAL, 1)
    assert gallery.prefetch_neighbours(CREDENTIAL) == 1
    with pytest.raises(RemoteStoreError):
        gallery.step(CREDENTIAL, +1)


def test_prefetch_propagates_credential_errors(gallery, drive):
    gallery.open_image(CREDENTIAL, 1)
    drive.credential_error = True
    with pytest.raises(CredentialError):
        gallery.prefetch_neighbours(CREDENTIAL)


def test_prefetch_without_open_image(gallery):
    assert gallery.prefetch_neighbours(CREDENTIAL) == 0


def test_delete_current(gallery, drive):
    gallery.open_image(CREDENTIAL, 3)
    replacement = gallery.delete_current(CREDENTIAL)

    assert drive.deleted == ["img3"]
    assert "img3" not in gallery.cache
    assert [i.id for i in gallery.images] == ["img0", "img1", "img2"]
    assert replacement.id == "img2"
    assert gallery.current.id == "img2"


def test_delete_last_remaining_image(drive):
    drive.images = _images(1)
    gallery = Gallery(drive, ImageCache())
    gallery.open_folder(CREDENTIAL, "f1")
    gallery.open_image(CREDENTIAL, 0)

    assert gallery.delete_current(CREDENTIAL) is None
    assert gallery.images == []
    assert not gallery.navigator.is_open


def test_favorite_current_copies_into_favorites(gallery, drive):
    assert gallery.favorite_current(CREDENTIAL) is None

    gallery.open_image(CREDENTIAL, 0)
    assert gallery.favorite_current(CREDENTIAL) == "copy-of-img0"
    gallery.step(CREDENTIAL, +1)
    gallery.favorite_current(CREDENTIAL)

    assert drive.copies == [("img0", "fav-folder"), ("img1", "fav-folder")]
    # folder looked up once per gallery
    assert drive.folder_lookups == 1


def test_close_folder(gallery):
    gallery.open_image(CREDENTIAL, 0)
    gallery.close_folder()
    assert gallery.selected_folder is None
    assert gallery.images == []
    assert gallery.current is None


def test_reset_forgets_account_state(gallery, drive):
    gallery.load_folders(CREDENTIAL)
    gallery.open_image(CREDENTIAL, 0)
    gallery.favorite_current(CREDENTIAL)

    gallery.reset()

    assert gallery.folders == []
    assert gallery.selected_folder is None
    assert len(gallery.cache) == 0

    # next account has its own favorites folder
    drive.favorites_id = "other-fav"
    gallery.open_folder(CREDENTIAL, "f1")
    gallery.open_image(CREDENTIAL, 1)
    assert gallery.favorite_current(CREDENTIAL) == "copy-of-img1"
    assert drive.copies[-1] == ("img1", "other-fav")
    assert drive.folder_lookups == 2


def test_favorite_looks_up_missing_folder_again(gallery, drive):
    gallery.open_image(CREDENTIAL, 0)
    gallery.favorite_current(CREDENTIAL)

    drive.favorites_id = "recreated-fav"
    gallery.step(CREDENTIAL, +1)
    assert gallery.favorite_current(CREDENTIAL) == "copy-of-img1"

    assert drive.copies == [("img0", "fav-folder"), ("img1", "recreated-fav")]
    assert drive.folder_lookups == 2


def test_favorite_of_missing_image_retries_once(gallery, drive):
    gallery.open_image(CREDENTIAL, 0)
    gallery.favorite_current(CREDENTIAL)

    drive.missing.add("img1")
    gallery.step(CREDENTIAL, +1)
    with pytest.raises(RemoteStoreError) as info:
        gallery.favorite_current(CREDENTIAL)

    assert info.value.status_code == 404
    assert drive.folder_lookups == 2


def test_favorite_of_missing_image_without_cached_folder(gallery, drive):
    drive.missing.add("img0")
    gallery.open_image(CREDENTIAL, 0)
    with pytest.raises(RemoteStoreError):
        gallery.favorite_current(CREDENTIAL)

    assert drive.folder_lookups == 1
