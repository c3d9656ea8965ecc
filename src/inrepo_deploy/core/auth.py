"""Credential provider: token storage, token validation and auth state.

Token values are never logged and never appear in ``AuthState``.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import TYPE_CHECKING, Callable, Literal

from pydantic import BaseModel, Field

from ..errors import (
    InvalidToken,
    NetworkError,
    RateLimitExceeded,
    RemoteApiError,
)
from ..file_handler import atomic_write_bytes

if TYPE_CHECKING:
    from .client import ContentsClient

logger = logging.getLogger(__name__)

TOKEN_FILENAME = "token"


class AuthState(BaseModel):
    username: str | None = None
    scopes: list[str] = Field(default_factory=list)
    is_persistent: bool = False
    is_authenticated: bool = False

    model_config = {"frozen": True}


class TokenValidationResult(BaseModel):
    valid: bool
    username: str | None = None
    scopes: list[str] = Field(default_factory=list)
    error: str | None = None
    rejected: bool = False

    model_config = {"frozen": True}


_SIGNED_OUT = AuthState()


# ---------------------------------------------------------------------------
# Token storage
# ---------------------------------------------------------------------------


class TokenStorage:
    """Session (in-memory) or persistent (0600 file) token storage.

    A session token shadows a persistent one, so ``get_token()`` prefers
    it. ``set_token()`` always clears both slots first.
    """

    def __init__(self, state_dir: str | Path):
        self.token_path = Path(state_dir) / TOKEN_FILENAME
        self._session_token: str | None = None

    def get_token(self) -> str | None:
        if self._session_token:
            return self._session_token
        try:
            token = self.token_path.read_text(encoding="utf-8").strip()
        except FileNotFoundError:
            return None
        except OSError as e:
            logger.warning("Failed to read persistent token: %s", e)
            return None
        return token or None

    def set_token(self, token: str, persistent: bool) -> None:
        self.clear_token()
        if persistent:
            atomic_write_bytes(
                self.token_path, token.encode("utf-8"), mode=0o600
            )
        else:
            self._session_token = token

    def clear_token(self) -> None:
        self._session_token = None
        try:
            self.token_path.unlink()
        except FileNotFoundError:
            pass
        except OSError as e:
            logger.warning("Failed to clear persistent token: %s", e)

    def has_persistent_token(self) -> bool:
        return self.token_path.is_file()

    def get_storage_type(self) -> Literal["session", "persistent"] | None:
        if self._session_token:
            return "session"
        if self.has_persistent_token():
            return "persistent"
        return None


# ---------------------------------------------------------------------------
# Validation
# ---------------------------------------------------------------------------


def validate_token(client: ContentsClient, token: str) -> TokenValidationResult:
    """Check a token against the remote user endpoint.

    Never raises for remote failures; every outcome is folded into the
    returned result with a human-readable error.
    """
    try:
        username, scopes = client.get_authenticated_user(token=token)
    except InvalidToken:
        return TokenValidationResult(
            valid=False,
            error="Invalid token. Please check your Personal Access Token.",
            rejected=True,
        )
    except RateLimitExceeded as e:
        return TokenValidationResult(valid=False, error=str(e))
    except RemoteApiError as e:
        if e.status_code == 403:
            return TokenValidationResult(
                valid=False,
                error="Access forbidden. Token may lack required permissions.",
            )
        return TokenValidationResult(
            valid=False, error=f"GitHub API error: {e.status_code}"
        )
    except NetworkError as e:
        logger.warning("Token validation failed: %s", e)
        return TokenValidationResult(valid=False, error=str(e))

    return TokenValidationResult(valid=True, username=username, scopes=scopes)


# ---------------------------------------------------------------------------
# Auth manager
# ---------------------------------------------------------------------------


class AuthManager:
    """Resolves, caches and broadcasts the current authentication state.

    Args:
        storage: Where interactive logins are kept.
        validator: Callable checking a token (usually ``validate_token``
            bound to a client).
        explicit_token: Token supplied by config or environment; takes
            precedence over storage and is never written to it.
    """

    def __init__(
        self,
        storage: TokenStorage,
        validator: Callable[[str], TokenValidationResult],
        explicit_token: str | None = None,
    ):
        self.storage = storage
        self._validator = validator
        self._explicit_token = explicit_token
        self._cached_state: AuthState | None = None
        self._listeners: list[Callable[[AuthState], None]] = []

    def _notify(self, state: AuthState) -> None:
        for listener in list(self._listeners):
            listener(state)

    def _resolve_state(self) -> AuthState:
        if self._explicit_token:
            result = self._validator(self._explicit_token)
            if result.valid:
                return AuthState(
                    username=result.username,
                    scopes=result.scopes,
                    is_authenticated=True,
                )
            logger.warning("Configured token rejected: %s", result.error)
            return _SIGNED_OUT

        token = self.storage.get_token()
        if not token:
            return _SIGNED_OUT

        result = self._validator(token)
        if result.valid:
            return AuthState(
                username=result.username,
                scopes=result.scopes,
                is_persistent=self.storage.get_storage_type() == "persistent",
                is_authenticated=True,
            )

        if result.rejected:
            logger.warning("Stored token invalid, clearing")
            self.storage.clear_token()
        else:
            # Transient failures keep the stored token for the next attempt
            logger.warning("Could not validate stored token: %s", result.error)
        return _SIGNED_OUT

    def get_state(self) -> AuthState:
        if self._cached_state is not None:
            return self._cached_state
        state = self._resolve_state()
        # Signed-out results are re-checked next time
        if state.is_authenticated:
            self._cached_state = state
        return state

    def is_authenticated(self) -> bool:
        return self.get_state().is_authenticated

    def authenticate(
        self, token: str, persistent: bool = False
    ) -> TokenValidationResult:
        """Validate a token and, if accepted, store it and broadcast the new state."""
        result = self._validator(token)
        if result.valid:
            self.storage.set_token(token, persistent)
            self._cached_state = AuthState(
                username=result.username,
                scopes=result.scopes,
                is_persistent=persistent,
                is_authenticated=True,
            )
            self._notify(self._cached_state)
        return result

    def logout(self) -> None:
        self.storage.clear_token()
        self._cached_state = _SIGNED_OUT
        self._notify(self._cached_state)

    def get_token(self) -> str | None:
        return self._explicit_token or self.storage.get_token()

    def on_state_change(
        self, callback: Callable[[AuthState], None]
    ) -> Callable[[], None]:
        """Register a listener; returns a function that unregisters it."""
        self._listeners.append(callback)

        def _unsubscribe() -> None:
            if callback in self._listeners:
                self._listeners.remove(callback)

        return _unsubscribe


def build_auth(
    client: ContentsClient, state_dir: str | Path, explicit_token: str | None
) -> AuthManager:
    """Wire an AuthManager whose validator talks to ``client``."""
    return AuthManager(
        TokenStorage(state_dir),
        lambda token: validate_token(client, token),
        explicit_token=explicit_token,
    )
