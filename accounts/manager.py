import json
import logging
from datetime import timezone
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional

from google.auth.exceptions import GoogleAuthError
from google.auth.transport.requests import Request
from google.oauth2.credentials import Credentials as GoogleCredentials
from google_auth_oauthlib.flow import InstalledAppFlow

from storage.errors import CredentialError

from .models import Credential
from .storage import ITokenStorage

logger = logging.getLogger(__name__)

DRIVE_SCOPES = ["https://www.googleapis.com/auth/drive"]
AUTH_URI = "https://accounts.google.com/o/oauth2/auth"
TOKEN_URI = "https://oauth2.googleapis.com/token"


def load_client_config(
    secrets_path: Optional[Path] = None,
    client_id: Optional[str] = None,
    client_secret: Optional[str] = None,
) -> Optional[Dict[str, Any]]:
    """
    Build the OAuth client config (same shape as credentials.json).

    A client secrets file wins over an explicit id/secret pair. Returns
    None when neither is available.
    """
    if secrets_path and Path(secrets_path).expanduser().exists():
        with Path(secrets_path).expanduser().open("r", encoding="utf-8") as f:
            return json.load(f)
    if client_id:
        return {
            "installed": {
                "client_id": client_id,
                "client_secret": client_secret or "",
                "auth_uri": AUTH_URI,
                "token_uri": TOKEN_URI,
                "redirect_uris": ["http://localhost"],
            }
        }
    return None


def credential_from_google(creds: GoogleCredentials, account: Optional[str] = None) -> Credential:
    expiry = creds.expiry
    # google-auth keeps expiry as naive UTC
    if expiry is not None and expiry.tzinfo is None:
        expiry = expiry.replace(tzinfo=timezone.utc)
    return Credential(
        access_token=creds.token,
        expires_at=expiry,
        refresh_token=creds.refresh_token,
        scopes=tuple(creds.scopes or ()),
        account=account or getattr(creds, "account", None) or None,
    )


def _default_flow_factory(client_config: Dict[str, Any], scopes: List[str]):
    return InstalledAppFlow.from_client_config(client_config, scopes)


class AccountManager:
    """
    Owns the signed-in Google credential.

    Nothing here is global: callers ask for a credential and pass it to
    every store call themselves.
    """

    def __init__(
        self,
        storage: ITokenStorage,
        client_config: Optional[Dict[str, Any]],
        *,
        scopes: Optional[List[str]] = None,
        flow_factory: Optional[Callable[[Dict[str, Any], List[str]], Any]] = None,
        refresher: Optional[Callable[[Credential], Credential]] = None,
    ):
        self.storage = storage
        self.client_config = client_config or {}
        self.scopes = list(scopes or DRIVE_SCOPES)
        self._flow_factory = flow_factory or _default_flow_factory
        self._refresher = refresher or self._google_refresh

    def _client_section(self) -> Dict[str, Any]:
        return self.client_config.get("installed") or self.client_config.get("web") or {}

    def sign_in(self) -> Credential:
        """Interactive sign-in; opens the browser for the user to authorize."""
        if not self.client_config:
            raise CredentialError(
                "No OAuth client configured. Set DRIVEVIEW_CLIENT_SECRETS or DRIVEVIEW_CLIENT_ID."
            )
        try:
            flow = self._flow_factory(self.client_config, self.scopes)
            creds = flow.run_local_server(port=0)
        except (GoogleAuthError, ValueError, OSError) as exc:
            raise CredentialError(f"Google sign-in failed: {exc}") from exc
        if not creds or not creds.token:
            raise CredentialError("Google sign-in returned no access token")

        credential = credential_from_google(creds)
        self.storage.save(credential)
        logger.info("signed in as %s", credential.account or "<unknown account>")
        return credential

    def current(self) -> Optional[Credential]:
        """Stored credential, refreshed if needed. None when signed out."""
        credential = self.storage.load()
        if credential is None:
            return None
        if not credential.is_expired():
            return credential
        try:
            return self.ensure_fresh(credential)
        except CredentialError:
            logger.warning("stored credential expired and could not be refreshed")
            return None

    def ensure_fresh(self, credential: Credential) -> Credential:
        """Return `credential`, or a refreshed copy if it has expired."""
        if not credential.is_expired():
            return credential
        if not credential.can_refresh:
            raise CredentialError("Session expired; please sign in again.")

        refreshed = self._refresher(credential)
        self.storage.save(refreshed)
        logger.debug("access token refreshed")
        return refreshed

    def sign_out(self) -> None:
        self.storage.clear()

    def _google_refresh(self, credential: Credential) -> Credential:
        client = self._client_section()
        if not client.get("client_id"):
            raise CredentialError("Cannot refresh session without an OAuth client id.")
        expiry = credential.expires_at
        creds = GoogleCredentials(
            token=credential.access_token,
            refresh_token=credential.refresh_token,
            token_uri=client.get("token_uri", TOKEN_URI),
            client_id=client.get("client_id"),
            client_secret=client.get("client_secret"),
            scopes=list(credential.scopes) or self.scopes,
            expiry=expiry.astimezone(timezone.utc).replace(tzinfo=None) if expiry else None,
        )
        try:
            creds.refresh(Request())
        except GoogleAuthError as exc:
            raise CredentialError(f"Could not refresh session: {exc}") from exc
        return credential_from_google(creds, account=credential.account)
