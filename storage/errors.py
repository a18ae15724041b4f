from typing import Optional


class RemoteStoreError(RuntimeError):
    """Any failed call to the remote object store (network, auth, not-found)."""

    def __init__(self, message: str, *, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


class CredentialError(RemoteStoreError):
    """Credential is missing, expired, or could not be refreshed."""


class UserCancelled(Exception):
    """User declined to supply a passphrase."""
