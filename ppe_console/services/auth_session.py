"""Auth context holding the API token for the console process."""

import logging
import os
import threading
from pathlib import Path
from typing import Any

from ppe_console.config import get_settings

logger = logging.getLogger(__name__)


class AuthSession:
    """Explicit owner of the bearer token and the signed-in user.

    The token is loaded from durable storage on init, persisted on sign-in and
    removed on sign-out or when the API rejects it.
    """

    def __init__(self, token_file: Path) -> None:
        self.token_file = token_file
        self.user: dict[str, Any] | None = None
        self._token: str | None = None
        self._lock = threading.Lock()

    @property
    def token(self) -> str | None:
        return self._token

    @property
    def is_authenticated(self) -> bool:
        return self._token is not None

    def load(self) -> str | None:
        """Load the persisted token, if any."""
        try:
            token = self.token_file.read_text(encoding="utf-8").strip()
        except FileNotFoundError:
            token = ""
        except OSError:
            logger.warning("Could not read token file %s", self.token_file, exc_info=True)
            token = ""
        with self._lock:
            self._token = token or None
        return self._token

    def set_token(self, token: str, user: dict[str, Any] | None = None) -> None:
        """Store a new token and persist it."""
        with self._lock:
            self._token = token
            self.user = user
            self.token_file.parent.mkdir(parents=True, exist_ok=True)
            self.token_file.write_text(token, encoding="utf-8")
            os.chmod(self.token_file, 0o600)

    def clear(self) -> None:
        """Forget the token and remove it from storage."""
        with self._lock:
            self._token = None
            self.user = None
            try:
                self.token_file.unlink()
            except FileNotFoundError:
                pass

    def auth_headers(self) -> dict[str, str]:
        """Authorization header for the current token, empty when signed out."""
        token = self._token
        if token:
            return {"Authorization": f"Bearer {token}"}
        return {}


_auth_session: AuthSession | None = None


def get_auth_session() -> AuthSession:
    """Get the process-wide AuthSession, loading the stored token on first use."""
    global _auth_session
    if _auth_session is None:
        _auth_session = AuthSession(get_settings().token_file)
        _auth_session.load()
    return _auth_session
