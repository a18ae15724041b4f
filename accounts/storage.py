from __future__ import annotations
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Optional, Union
from .models import Credential
import json, os, tempfile

class ITokenStorage(ABC):
    @abstractmethod
    def load(self) -> Optional[Credential]: ...
    @abstractmethod
    def save(self, credential: Credential) -> None: ...
    @abstractmethod
    def clear(self) -> None: ...

class MemoryTokenStorage(ITokenStorage):
    """Keeps the credential for the lifetime of the process only."""

    def __init__(self, credential: Optional[Credential] = None):
        self._credential = credential

    def load(self) -> Optional[Credential]:
        return self._credential

    def save(self, credential: Credential) -> None:
        self._credential = credential

    def clear(self) -> None:
        self._credential = None

class JSONTokenStorage(ITokenStorage):
    def __init__(self, path: Union[str, Path] = "token.json"):
        self.path = Path(path).expanduser()

    def load(self) -> Optional[Credential]:
        if not self.path.exists():
            return None
        with self.path.open("r", encoding="utf-8") as f:
            data = json.load(f)
        if not data.get("access_token"):
            return None
        return Credential.from_dict(data)

    def save(self, credential: Credential) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        # atomic-ish write to avoid corruption
        fd, tmp = tempfile.mkstemp(prefix="token.", suffix=".tmp", dir=str(self.path.parent))
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                json.dump(credential.to_dict(), f, indent=2)
            os.chmod(tmp, 0o600)
            os.replace(tmp, self.path)
        finally:
            if os.path.exists(tmp):
                try: os.remove(tmp)
                except OSError: pass

    def clear(self) -> None:
        self.path.unlink(missing_ok=True)
