"""
Command-line interface for Drive View.

Provides text-based menu for:
- Google sign-in / sign-out
- Browsing image folders (view, save, delete, favorite)
- Encrypted file upload and download
- Listing and deleting encrypted files
"""

import logging
from getpass import getpass
from pathlib import Path
from typing import List, Optional

from accounts.manager import AccountManager, load_client_config
from accounts.models import Credential
from accounts.storage import JSONTokenStorage
from crypto.codec import CodecError
from settings import Settings, configure_logging
from storage.drive_client import DriveClient
from storage.errors import CredentialError, RemoteStoreError, UserCancelled
from storage.file_manager import (
    delete_file,
    download_decrypted,
    list_encrypted_files,
    require_passphrase,
    upload_encrypted,
)
from storage.models import StoredObject
from viewer.cache import ImageCache
from viewer.gallery import Gallery

logger = logging.getLogger(__name__)

# Failures reported to the user at the end of an action; none are retried
ACTION_ERRORS = (RemoteStoreError, CodecError, UserCancelled, OSError, ValueError)


def create_account_manager(settings: Settings) -> AccountManager:
    client_config = load_client_config(
        settings.client_secrets_path, settings.client_id, settings.client_secret
    )
    return AccountManager(JSONTokenStorage(settings.token_path), client_config)


def create_gallery(settings: Settings, client: DriveClient) -> Gallery:
    cache = ImageCache(max_entries=settings.image_cache_size, ttl=settings.image_cache_ttl)
    return Gallery(client, cache, favorites_folder=settings.favorites_folder)


def report_failure(action: str, exc: BaseException) -> None:
    logger.debug("%s failed", action, exc_info=exc)
    if isinstance(exc, UserCancelled):
        print(f"   Cancelled: {exc}")
    else:
        print(f"❌ {action} failed: {exc}")


def prompt_passphrase(prompt: str = "Passphrase: ") -> str:
    return require_passphrase(getpass(prompt))


def choose(items: List[StoredObject], prompt: str) -> Optional[StoredObject]:
    try:
        choice = int(input(prompt)) - 1
    except ValueError:
        print("❌ Invalid input")
        return None
    if choice < 0 or choice >= len(items):
        print("❌ Invalid selection")
        return None
    return items[choice]


def print_menu(signed_in: bool = False, account: str = "") -> None:
    print("\n" + "=" * 50)
    if signed_in:
        print(f"  🖼️  Drive View - Signed in{' as: ' + account if account else ''}")
    else:
        print("  🖼️  Drive View")
    print("=" * 50)

    if not signed_in:
        print("  1) Sign in with Google")
        print("  0) Quit")
    else:
        print("  1) Browse image folders")
        print("  2) Encrypt and upload file")
        print("  3) Download and decrypt file")
        print("  4) List encrypted files")
        print("  5) Delete encrypted file")
        print("  6) Sign out")
        print("  0) Quit")
    print("=" * 50)


def handle_sign_in(accounts: AccountManager) -> Optional[Credential]:
    print("\n🔑 Sign in")
    print("   A browser window will open for Google authorization...")
    try:
        credential = accounts.sign_in()
    except CredentialError as e:
        report_failure("Sign-in", e)
        return None
    print(f"✅ Signed in{' as ' + credential.account if credential.account else ''}")
    return credential


def _view_image(gallery: Gallery, credential: Credential, settings: Settings) -> None:
    while gallery.current is not None:
        image = gallery.current
        data = gallery.show_current(credential)
        gallery.prefetch_neighbours(credential)
        position = f"{gallery.navigator.index + 1}/{len(gallery.images)}"
        print(f"\n   🖼️  [{position}] {image.name} ({len(data):,} bytes, {image.mime_type})")
        command = input("   (n)ext (p)rev (s)ave (f)avorite (d)elete (q)uit > ").strip().lower()

        if command == "n":
            gallery.step(credential, +1)
        elif command == "p":
            gallery.step(credential, -1)
        elif command == "s":
            target_dir = settings.download_dir
            target_dir.mkdir(parents=True, exist_ok=True)
            target = target_dir / Path(image.name).name
            target.write_bytes(data)
            print(f"   📁 Saved to: {target}")
        elif command == "f":
            gallery.favorite_current(credential)
            print(f"   ⭐ Copied to '{gallery.favorites_folder}'")
        elif command == "d":
            confirm = input(f"   Delete '{image.name}'? (yes/no): ").strip().lower()
            if confirm == "yes":
                gallery.delete_current(credential)
                print("   ✅ Deleted")
        elif command == "q":
            gallery.close_image()
        else:
            print("❌ Invalid choice")


def handle_browse(gallery: Gallery, credential: Credential, settings: Settings) -> None:
    print("\n📂 Image Folders")
    folders = gallery.load_folders(credential)
    if not folders:
        print("   No folders found")
        return

    for i, folder in enumerate(folders, 1):
        print(f"   {i}. {folder.name}")
    folder = choose(folders, "\nSelect folder number: ")
    if not folder:
        return

    images = gallery.open_folder(credential, folder.id)
    if not images:
        print("   No images in this folder")
        return

    print(f"\nImages in '{folder.name}':")
    for i, image in enumerate(images, 1):
        print(f"   {i}. {image.name}")
    image = choose(images, "\nSelect image number: ")
    if not image:
        return

    gallery.open_image(credential, images.index(image))
    _view_image(gallery, credential, settings)
    gallery.close_folder()


def handle_upload(client: DriveClient, credential: Credential, settings: Settings) -> None:
    print("\n📤 Encrypt and Upload File")
    filepath = input("File path: ").strip()

    if not filepath:
        print("❌ File path cannot be empty")
        return

    path = Path(filepath).expanduser()
    if not path.is_file():
        print(f"❌ File not found: {filepath}")
        return

    passphrase = prompt_passphrase("Passphrase to encrypt the file: ")
    stored = upload_encrypted(
        client, credential, path, passphrase, folder_name=settings.encrypted_folder
    )
    print(f"\n✅ File uploaded successfully!")
    print(f"   📄 Name: {stored.name}")
    print(f"   🔑 ID: {stored.id}")
    print(f"   🔒 Encrypted with AES-256-GCM (Argon2id key)")


def _print_encrypted_files(files: List[StoredObject]) -> None:
    for i, f in enumerate(files, 1):
        size = f" ({f.size:,} bytes)" if f.size is not None else ""
        print(f"   {i}. {f.name}{size}")


def handle_list_files(client: DriveClient, credential: Credential, settings: Settings) -> None:
    print(f"\n📁 Files in '{settings.encrypted_folder}'")
    files = list_encrypted_files(client, credential, folder_name=settings.encrypted_folder)
    if not files:
        print("   No files uploaded yet")
        return
    _print_encrypted_files(files)


def handle_download(client: DriveClient, credential: Credential, settings: Settings) -> None:
    print("\n📥 Download and Decrypt File")
    files = list_encrypted_files(client, credential, folder_name=settings.encrypted_folder)
    if not files:
        print("   No files available")
        return

    _print_encrypted_files(files)
    selected = choose(files, "\nSelect file number: ")
    if not selected:
        return

    passphrase = prompt_passphrase("Passphrase to decrypt the file: ")
    target, content_type = download_decrypted(
        client, credential, selected.id, selected.name, passphrase, settings.download_dir
    )
    print(f"\n✅ File downloaded successfully!")
    print(f"   📁 Saved to: {target}")
    print(f"   📄 Type: {content_type or 'unknown'}")


def handle_delete(client: DriveClient, credential: Credential, settings: Settings) -> None:
    print("\n🗑️ Delete an Encrypted File")
    files = list_encrypted_files(client, credential, folder_name=settings.encrypted_folder)
    if not files:
        print("   No files to delete")
        return

    _print_encrypted_files(files)
    selected = choose(files, "\nSelect file to delete: ")
    if not selected:
        return

    confirm = input(f"Delete '{selected.name}'? (yes/no): ").strip().lower()
    if confirm != "yes":
        print("   Cancelled")
        return

    delete_file(client, credential, selected.id)
    print(f"✅ File deleted")


def main():
    settings = Settings.from_env()
    configure_logging(settings.log_level)
    accounts = create_account_manager(settings)
    current: Optional[Credential] = accounts.current()

    print("\n🖼️  Drive View")
    print("   Browse • Encrypt • Upload\n")

    with DriveClient(timeout=settings.http_timeout) as client:
        gallery = create_gallery(settings, client)
        actions = {
            "1": ("Browse", lambda c: handle_browse(gallery, c, settings)),
            "2": ("Upload", lambda c: handle_upload(client, c, settings)),
            "3": ("Download", lambda c: handle_download(client, c, settings)),
            "4": ("List", lambda c: handle_list_files(client, c, settings)),
            "5": ("Delete", lambda c: handle_delete(client, c, settings)),
        }

        while True:
            print_menu(signed_in=current is not None,
                       account=current.account or "" if current else "")
            choice = input("> ").strip()

            if current is None:
                if choice == "1":
                    current = handle_sign_in(accounts)
                elif choice == "0":
                    print("\nGoodbye! 👋")
                    break
                else:
                    print("❌ Invalid choice")
                continue

            if choice in actions:
                name, action = actions[choice]
                try:
                    current = accounts.ensure_fresh(current)
                    action(current)
                except CredentialError as e:
                    report_failure(name, e)
                    print("   Please sign in again.")
                    accounts.sign_out()
                    gallery.reset()
                    current = None
                except ACTION_ERRORS as e:
                    report_failure(name, e)
            elif choice == "6":
                accounts.sign_out()
                gallery.reset()
                current = None
                print("\n👋 Signed out")
            elif choice == "0":
                print("\nGoodbye! 👋")
                break
            else:
                print("❌ Invalid choice")


if __name__ == "__main__":
    main()
