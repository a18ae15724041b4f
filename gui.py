import logging
import sys
from typing import Callable, Optional

from PySide6.QtCore import QObject, Signal, Qt
from PySide6.QtGui import QAction, QPixmap
from PySide6.QtWidgets import (
    QApplication,
    QDialog,
    QFileDialog,
    QHBoxLayout,
    QInputDialog,
    QLabel,
    QLineEdit,
    QListView,
    QListWidget,
    QListWidgetItem,
    QMainWindow,
    QMessageBox,
    QPushButton,
    QStackedWidget,
    QTabWidget,
    QVBoxLayout,
    QWidget,
)

from accounts.manager import AccountManager
from accounts.models import Credential
from cli import ACTION_ERRORS, create_account_manager, create_gallery
from settings import Settings, configure_logging
from storage.drive_client import DriveClient
from storage.errors import CredentialError, UserCancelled
from storage.file_manager import (
    delete_file,
    download_decrypted,
    list_encrypted_files,
    require_passphrase,
    upload_encrypted,
)
from storage.models import StoredObject
from viewer.gallery import Gallery

logger = logging.getLogger(__name__)

KEY_NAMES = {
    Qt.Key_Left: "Left",
    Qt.Key_Right: "Right",
    Qt.Key_Escape: "Escape",
}


class Session(QObject):
    """The signed-in credential, refreshed on demand."""

    signed_out = Signal()

    def __init__(self, accounts: AccountManager, parent: Optional[QObject] = None):
        super().__init__(parent)
        self.accounts = accounts
        self.credential: Optional[Credential] = accounts.current()

    @property
    def signed_in(self) -> bool:
        return self.credential is not None

    def get(self) -> Credential:
        if self.credential is None:
            raise CredentialError("Not signed in.")
        try:
            self.credential = self.accounts.ensure_fresh(self.credential)
        except CredentialError:
            self.sign_out()
            raise
        return self.credential

    def sign_in(self) -> Credential:
        self.credential = self.accounts.sign_in()
        return self.credential

    def sign_out(self) -> None:
        """Drop the stored credential; `signed_out` fires once per session."""
        was_signed_in = self.credential is not None
        self.accounts.sign_out()
        self.credential = None
        if was_signed_in:
            self.signed_out.emit()


def run_action(session: Session, parent: QWidget, title: str, action: Callable[[], None]) -> bool:
    """Run one user action; any failure becomes a blocking message box."""
    try:
        action()
    except UserCancelled as exc:
        QMessageBox.information(parent, title, str(exc))
        return False
    except CredentialError as exc:
        logger.info("%s: credential rejected, signing out", title, exc_info=exc)
        QMessageBox.warning(parent, f"{title} failed", f"{exc}\n\nPlease sign in again.")
        session.sign_out()
        return False
    except ACTION_ERRORS as exc:
        logger.debug("%s failed", title, exc_info=exc)
        QMessageBox.critical(parent, f"{title} failed", f"{type(exc).__name__}: {exc}")
        return False
    return True


def ask_passphrase(parent: QWidget, purpose: str) -> str:
    text, ok = QInputDialog.getText(
        parent, "Passphrase", f"Enter passphrase to {purpose} the file:", QLineEdit.Password
    )
    return require_passphrase(text if ok else None)


class SignInPage(QWidget):
    signed_in = Signal(object)  # emits a Credential

    def __init__(self, session: Session, parent: Optional[QWidget] = None):
        super().__init__(parent)
        self.session = session
        self._build_ui()

    def _build_ui(self) -> None:
        layout = QVBoxLayout(self)
        heading = QLabel("Drive View")
        heading.setStyleSheet("font-size: 18px; font-weight: bold; margin-bottom: 8px;")
        layout.addWidget(heading)

        info = QLabel("Sign in with your Google account to browse and encrypt Drive files.")
        info.setWordWrap(True)
        layout.addWidget(info)

        self.sign_in_button = QPushButton("Sign in with Google")
        layout.addWidget(self.sign_in_button)
        layout.addStretch()

        self.sign_in_button.clicked.connect(self._handle_sign_in)

    def _handle_sign_in(self) -> None:
        try:
            credential = self.session.sign_in()
        except CredentialError as exc:
            QMessageBox.warning(self, "Sign-in failed", str(exc))
            return
        self.signed_in.emit(credential)


class Lightbox(QDialog):
    """Full-screen image viewer: arrow keys / swipe to move, Esc to close."""

    def __init__(self, gallery: Gallery, session: Session, parent: Optional[QWidget] = None):
        super().__init__(parent)
        self.gallery = gallery
        self.session = session
        self._press_x: Optional[float] = None
        self._pixmap: Optional[QPixmap] = None
        self.setWindowTitle("Drive View")
        self.setStyleSheet("background-color: black; color: white;")
        self.setAttribute(Qt.WA_AcceptTouchEvents, True)

        layout = QVBoxLayout(self)
        self.image_label = QLabel()
        self.image_label.setAlignment(Qt.AlignCenter)
        self.caption = QLabel()
        self.caption.setAlignment(Qt.AlignCenter)
        layout.addWidget(self.image_label, 1)
        layout.addWidget(self.caption)

        self._watching_session = True
        session.signed_out.connect(self.reject)

    def show_current(self) -> None:
        image = self.gallery.current
        if image is None:
            self.accept()
            return

        def load() -> None:
            data = self.gallery.show_current(self.session.get())
            pixmap = QPixmap()
            pixmap.loadFromData(data)
            self._pixmap = pixmap
            self._rescale()
            position = f"{self.gallery.navigator.index + 1}/{len(self.gallery.images)}"
            self.caption.setText(f"{image.name}  [{position}]   ←/→ navigate · F favorite · Del delete · Esc close")
            self.gallery.prefetch_neighbours(self.session.get())

        run_action(self.session, self, "Load image", load)

    def keyPressEvent(self, event) -> None:
        key = event.key()
        if key == Qt.Key_Delete:
            self._delete_current()
        elif key == Qt.Key_F:
            run_action(self.session, self, "Favorite", lambda: self.gallery.favorite_current(self.session.get()))
        elif key in KEY_NAMES and self.gallery.navigator.handle_key(KEY_NAMES[key]):
            if self.gallery.navigator.is_open:
                self.show_current()
            else:
                self.accept()
        else:
            super().keyPressEvent(event)

    def mousePressEvent(self, event) -> None:
        self._press_x = event.position().x()
        super().mousePressEvent(event)

    def mouseReleaseEvent(self, event) -> None:
        if self._press_x is not None:
            start, self._press_x = self._press_x, None
            if self.gallery.navigator.handle_swipe(start, event.position().x()):
                self.show_current()
                return
        super().mouseReleaseEvent(event)

    def _delete_current(self) -> None:
        image = self.gallery.current
        if image is None:
            return
        answer = QMessageBox.question(self, "Delete image", f"Delete '{image.name}' from Drive?")
        if answer != QMessageBox.Yes:
            return
        if run_action(self.session, self, "Delete", lambda: self.gallery.delete_current(self.session.get())):
            self.show_current()

    def _rescale(self) -> None:
        if self._pixmap is None:
            return
        self.image_label.setPixmap(
            self._pixmap.scaled(self.image_label.size(), Qt.KeepAspectRatio, Qt.SmoothTransformation)
        )

    def resizeEvent(self, event) -> None:
        super().resizeEvent(event)
        self._rescale()

    def done(self, result: int) -> None:
        if self._watching_session:
            self._watching_session = False
            self.session.signed_out.disconnect(self.reject)
        self.gallery.close_image()
        super().done(result)


class ImagesPage(QWidget):
    def __init__(self, gallery: Gallery, session: Session, parent: Optional[QWidget] = None):
        super().__init__(parent)
        self.gallery = gallery
        self.session = session
        self._build_ui()

    def _build_ui(self) -> None:
        layout = QVBoxLayout(self)

        header = QHBoxLayout()
        self.title = QLabel("Folders")
        self.title.setStyleSheet("font-size: 16px; font-weight: bold;")
        self.back_button = QPushButton("← Folders")
        self.back_button.setVisible(False)
        refresh_button = QPushButton("Refresh")
        header.addWidget(self.back_button)
        header.addWidget(self.title)
        header.addStretch()
        header.addWidget(refresh_button)
        layout.addLayout(header)

        self.stack = QStackedWidget()
        self.folder_list = QListWidget()
        self.image_grid = QListWidget()
        self.image_grid.setViewMode(QListView.IconMode)
        self.image_grid.setResizeMode(QListView.Adjust)
        self.image_grid.setWordWrap(True)
        self.stack.addWidget(self.folder_list)
        self.stack.addWidget(self.image_grid)
        layout.addWidget(self.stack)

        self.folder_list.itemDoubleClicked.connect(self._open_folder)
        self.image_grid.itemDoubleClicked.connect(self._open_image)
        self.back_button.clicked.connect(self._show_folders)
        refresh_button.clicked.connect(self.reload)

    def reload(self) -> None:
        if self.gallery.selected_folder:
            folder_id = self.gallery.selected_folder
            run_action(self.session, self, "Load images", lambda: self._fill_images(folder_id))
        else:
            run_action(self.session, self, "Load folders", self._fill_folders)

    def clear(self) -> None:
        self.gallery.reset()
        self.folder_list.clear()
        self.image_grid.clear()
        self._show_folders()

    def _fill_folders(self) -> None:
        self.folder_list.clear()
        for folder in self.gallery.load_folders(self.session.get()):
            item = QListWidgetItem(f"📁 {folder.name}")
            item.setData(Qt.UserRole, folder)
            self.folder_list.addItem(item)

    def _fill_images(self, folder_id: str) -> None:
        self.image_grid.clear()
        for image in self.gallery.open_folder(self.session.get(), folder_id):
            item = QListWidgetItem(image.name)
            item.setData(Qt.UserRole, image)
            self.image_grid.addItem(item)

    def _open_folder(self, item: QListWidgetItem) -> None:
        folder: StoredObject = item.data(Qt.UserRole)
        if run_action(self.session, self, "Load images", lambda: self._fill_images(folder.id)):
            self.title.setText(folder.name)
            self.back_button.setVisible(True)
            self.stack.setCurrentWidget(self.image_grid)

    def _show_folders(self) -> None:
        self.gallery.close_folder()
        self.title.setText("Folders")
        self.back_button.setVisible(False)
        self.stack.setCurrentWidget(self.folder_list)

    def _open_image(self, item: QListWidgetItem) -> None:
        self.gallery.navigator.open(self.image_grid.row(item))
        lightbox = Lightbox(self.gallery, self.session, self)
        lightbox.showFullScreen()
        lightbox.show_current()
        # closed already when the first image failed to load
        if self.gallery.navigator.is_open:
            lightbox.exec()
        # deletions in the lightbox change the list
        if self.gallery.selected_folder:
            self._sync_grid()

    def _sync_grid(self) -> None:
        self.image_grid.clear()
        for image in self.gallery.images:
            item = QListWidgetItem(image.name)
            item.setData(Qt.UserRole, image)
            self.image_grid.addItem(item)


class EncryptedFilesPage(QWidget):
    def __init__(self, client: DriveClient, session: Session, settings: Settings, parent: Optional[QWidget] = None):
        super().__init__(parent)
        self.client = client
        self.session = session
        self.settings = settings
        self._build_ui()

    def _build_ui(self) -> None:
        layout = QVBoxLayout(self)
        layout.setSpacing(12)

        info = QLabel(
            f"Files are encrypted on this computer with a passphrase before upload\n"
            f"and stored in the '{self.settings.encrypted_folder}' folder."
        )
        info.setWordWrap(True)
        layout.addWidget(info)

        self.files_list = QListWidget()
        layout.addWidget(self.files_list)

        btn_layout = QHBoxLayout()
        upload_btn = QPushButton("Encrypt && upload…")
        download_btn = QPushButton("Download selected")
        delete_btn = QPushButton("Delete selected")
        refresh_btn = QPushButton("Refresh")
        for btn in (upload_btn, download_btn, delete_btn, refresh_btn):
            btn_layout.addWidget(btn)
        layout.addLayout(btn_layout)

        upload_btn.clicked.connect(self._handle_upload)
        download_btn.clicked.connect(self._handle_download)
        delete_btn.clicked.connect(self._handle_delete)
        refresh_btn.clicked.connect(self.reload)
        self.files_list.itemDoubleClicked.connect(self._handle_download)

    def reload(self) -> None:
        run_action(self.session, self, "Load files", self._fill_files)

    def clear(self) -> None:
        self.files_list.clear()

    def _fill_files(self) -> None:
        self.files_list.clear()
        files = list_encrypted_files(
            self.client, self.session.get(), folder_name=self.settings.encrypted_folder
        )
        for entry in files:
            size = f" ({entry.size:,} bytes)" if entry.size is not None else ""
            item = QListWidgetItem(f"{entry.name}{size}")
            item.setData(Qt.UserRole, entry)
            self.files_list.addItem(item)

    def _selected(self, action: str) -> Optional[StoredObject]:
        current = self.files_list.currentItem()
        if not current:
            QMessageBox.warning(self, "No selection", f"Please select a file to {action}.")
            return None
        return current.data(Qt.UserRole)

    def _handle_upload(self) -> None:
        filepath, _ = QFileDialog.getOpenFileName(self, "Select file to encrypt and upload")
        if not filepath:
            return

        def upload() -> None:
            passphrase = ask_passphrase(self, "encrypt")
            stored = upload_encrypted(
                self.client, self.session.get(), filepath, passphrase,
                folder_name=self.settings.encrypted_folder,
            )
            self._fill_files()
            QMessageBox.information(self, "Uploaded", f"Stored: {stored.name}\nID: {stored.id}")

        run_action(self.session, self, "Upload", upload)

    def _handle_download(self) -> None:
        entry = self._selected("download")
        if not entry:
            return

        def download() -> None:
            passphrase = ask_passphrase(self, "decrypt")
            target, content_type = download_decrypted(
                self.client, self.session.get(), entry.id, entry.name, passphrase,
                self.settings.download_dir,
            )
            QMessageBox.information(
                self, "Download complete", f"Saved to: {target}\nType: {content_type or 'unknown'}"
            )

        run_action(self.session, self, "Download", download)

    def _handle_delete(self) -> None:
        entry = self._selected("delete")
        if not entry:
            return
        answer = QMessageBox.question(self, "Delete file", f"Delete '{entry.name}' from Drive?")
        if answer != QMessageBox.Yes:
            return
        if run_action(self.session, self, "Delete", lambda: delete_file(self.client, self.session.get(), entry.id)):
            self.reload()


class MainWindow(QMainWindow):
    def __init__(self, session: Session, client: DriveClient, settings: Settings):
        super().__init__()
        self.setWindowTitle("Drive View")
        self.resize(800, 600)

        self.session = session
        self.stack = QStackedWidget()
        self.setCentralWidget(self.stack)

        self.sign_in_page = SignInPage(session)
        self.images_page = ImagesPage(create_gallery(settings, client), session)
        self.files_page = EncryptedFilesPage(client, session, settings)
        self.tabs = QTabWidget()
        self.tabs.addTab(self.images_page, "Images")
        self.tabs.addTab(self.files_page, "Encrypted files")

        self.stack.addWidget(self.sign_in_page)
        self.stack.addWidget(self.tabs)

        self.sign_in_page.signed_in.connect(self._handle_signed_in)
        session.signed_out.connect(self._handle_signed_out)

        sign_out_action = QAction("Sign out", self)
        sign_out_action.triggered.connect(self.session.sign_out)
        self.sign_out_action = sign_out_action

        account_menu = self.menuBar().addMenu("Account")
        account_menu.addAction(self.sign_out_action)

        if session.signed_in:
            self._handle_signed_in(session.credential)
        else:
            self.stack.setCurrentWidget(self.sign_in_page)
            self.sign_out_action.setEnabled(False)

    def _handle_signed_in(self, credential: Credential) -> None:
        account = credential.account or "Google account"
        self.statusBar().showMessage(f"Signed in: {account}")
        self.stack.setCurrentWidget(self.tabs)
        self.sign_out_action.setEnabled(True)
        self.images_page.reload()
        if self.session.signed_in:
            self.files_page.reload()

    def _handle_signed_out(self) -> None:
        self.images_page.clear()
        self.files_page.clear()
        self.statusBar().clearMessage()
        self.stack.setCurrentWidget(self.sign_in_page)
        self.sign_out_action.setEnabled(False)


def main() -> int:
    settings = Settings.from_env()
    configure_logging(settings.log_level)
    app = QApplication(sys.argv)
    session = Session(create_account_manager(settings))
    with DriveClient(timeout=settings.http_timeout) as client:
        window = MainWindow(session, client, settings)
        window.show()
        return app.exec()


if __name__ == "__main__":
    sys.exit(main())
