"""
Runtime configuration for Drive View.

Values come from the environment, after a local `.env` file (if any) has
been loaded with python-dotenv.
"""

import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Mapping, Optional

from dotenv import load_dotenv

ENV_PREFIX = "DRIVEVIEW_"
LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


def _base_path() -> Path:
    """Directory holding credentials.json / token.json for local use."""
    return Path.home() / ".drive-view"


def _get_float(env: Mapping[str, str], key: str, default: float) -> float:
    raw = env.get(ENV_PREFIX + key)
    if raw is None or raw == "":
        return default
    try:
        return float(raw)
    except ValueError:
        raise ValueError(f"{ENV_PREFIX}{key} must be a number, got {raw!r}") from None


def _get_int(env: Mapping[str, str], key: str, default: int) -> int:
    raw = env.get(ENV_PREFIX + key)
    if raw is None or raw == "":
        return default
    try:
        return int(raw)
    except ValueError:
        raise ValueError(f"{ENV_PREFIX}{key} must be an integer, got {raw!r}") from None


@dataclass(frozen=True)
class Settings:
    client_secrets_path: Path
    token_path: Path
    download_dir: Path
    client_id: Optional[str] = None
    client_secret: Optional[str] = None
    encrypted_folder: str = "Encrypted-Drive"
    favorites_folder: str = "Favorites"
    http_timeout: float = 60.0
    image_cache_size: int = 64
    image_cache_ttl: float = 900.0
    log_level: str = "WARNING"

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> "Settings":
        """
        Build settings from `environ` (default: os.environ after loading .env).
        """
        if environ is None:
            load_dotenv()
            environ = os.environ
        env = environ
        base = _base_path()

        def get(key: str, default: Optional[str] = None) -> Optional[str]:
            value = env.get(ENV_PREFIX + key)
            return value if value else default

        return cls(
            client_secrets_path=Path(get("CLIENT_SECRETS", str(base / "credentials.json"))).expanduser(),
            token_path=Path(get("TOKEN_PATH", str(base / "token.json"))).expanduser(),
            download_dir=Path(get("DOWNLOAD_DIR", str(Path.home() / "Downloads" / "drive-view"))).expanduser(),
            client_id=get("CLIENT_ID"),
            client_secret=get("CLIENT_SECRET"),
            encrypted_folder=get("ENCRYPTED_FOLDER", "Encrypted-Drive"),
            favorites_folder=get("FAVORITES_FOLDER", "Favorites"),
            http_timeout=_get_float(env, "HTTP_TIMEOUT", 60.0),
            image_cache_size=_get_int(env, "CACHE_SIZE", 64),
            image_cache_ttl=_get_float(env, "CACHE_TTL", 900.0),
            log_level=get("LOG_LEVEL", "WARNING").upper(),
        )


def configure_logging(level: str = "WARNING") -> None:
    logging.basicConfig(level=getattr(logging, level.upper(), logging.WARNING), format=LOG_FORMAT)
    # httpx logs every request at INFO
    logging.getLogger("httpx").setLevel(logging.WARNING)
