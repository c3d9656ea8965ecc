import base64
import logging
import threading
from typing import Any, Callable
from urllib.parse import quote

import requests

from ..config import Config
from ..errors import (
    InvalidToken,
    NetworkError,
    NotAuthenticated,
    PreconditionFailed,
    RateLimitExceeded,
    RemoteApiError,
)
from ..validators import normalize_repo_path, validate_content, validate_repo_path

logger = logging.getLogger(__name__)

API_VERSION = "2022-11-28"
CONNECT_TIMEOUT = 10


class ContentsClient:
    """Wire client for a GitHub-style repository contents API.

    Every request is issued synchronously; callers needing concurrency use
    separate threads, each of which gets its own ``requests.Session``.
    """

    def __init__(
        self,
        config: Config,
        token_provider: Callable[[], str | None] | None = None,
    ):
        self.config = config
        self.token_provider = token_provider or (lambda: config.token)
        self._thread_local = threading.local()
        self.repo_url = self._get_repo_url()

    @property
    def session(self) -> requests.Session:
        """Return the current thread's session."""
        return self._get_session()

    def _get_repo_url(self) -> str:
        return (
            f"{self.config.api_url.rstrip('/')}/repos/"
            f"{self.config.repo_owner}/{self.config.repo_name}"
        )

    def _get_session(self) -> requests.Session:
        """Get or create a thread-local requests.Session."""
        if not hasattr(self._thread_local, "session"):
            self._thread_local.session = self._create_session()
        return self._thread_local.session

    def _create_session(self) -> requests.Session:
        session = requests.Session()
        session.verify = not self.config.insecure
        session.headers.update(
            {
                "Accept": "application/vnd.github+json",
                "X-GitHub-Api-Version": API_VERSION,
            }
        )
        return session

    def _contents_url(self, path: str) -> str:
        path = normalize_repo_path(path)
        is_valid, error_msg = validate_repo_path(path)
        if not is_valid:
            raise ValueError(error_msg)
        return f"{self.repo_url}/contents/{quote(path)}"

    def _request(
        self,
        method: str,
        url: str,
        token: str | None = None,
        **kwargs: Any,
    ) -> requests.Response:
        """
        Issue one authenticated request and map failures onto the error taxonomy.

        404 responses are returned to the caller; everything else that is not
        2xx raises.
        """
        token = token or self.token_provider()
        if not token:
            raise NotAuthenticated()

        headers = {"Authorization": f"Bearer {token}"}
        try:
            response = self._get_session().request(
                method,
                url,
                headers=headers,
                timeout=(CONNECT_TIMEOUT, self.config.timeout),
                **kwargs,
            )
        except requests.Timeout as e:
            raise NetworkError(
                "Connection timed out. Please check your network."
            ) from e
        except requests.RequestException as e:
            raise NetworkError(f"Network error: {e}") from e

        logger.debug("%s %s -> %d", method, url, response.status_code)

        if response.status_code == 404 or response.ok:
            return response

        rate_limit = parse_rate_limit(response)
        if rate_limit is not None:
            raise rate_limit

        message = _error_message(response)
        if response.status_code == 401:
            raise InvalidToken(
                "Invalid token. Please check your Personal Access Token."
            )
        if response.status_code in (409, 422):
            raise PreconditionFailed(message, response.status_code)
        raise RemoteApiError(message, response.status_code)

    # ------------------------------------------------------------------
    # Contents API
    # ------------------------------------------------------------------

    def get_contents(self, path: str) -> dict[str, Any] | None:
        """
        Get the contents entry for a file.

        Args:
            path: Repository-relative file path

        Returns:
            Decoded JSON entry (``sha``, ``encoding``, ``content``...), or
            None if the file does not exist remotely

        Raises:
            RateLimitExceeded, NotAuthenticated, NetworkError, RemoteApiError
        """
        params = {"ref": self.config.branch} if self.config.branch else None
        response = self._request(
            "GET", self._contents_url(path), params=params
        )
        if response.status_code == 404:
            return None
        data = response.json()
        if not isinstance(data, dict):
            # A directory listing comes back as a list
            raise RemoteApiError(
                f"Remote path is not a file: {path}", response.status_code
            )
        return data

    def put_contents(
        self,
        path: str,
        content: bytes,
        message: str,
        version_id: str | None = None,
        branch: str | None = None,
    ) -> str:
        """
        Create or update a file.

        Args:
            path: Repository-relative file path
            content: Raw file bytes (base64-encoded on the wire)
            message: Commit message
            version_id: Expected current blob sha; required to update an
                existing file, omitted to create one
            branch: Target branch (default: configured branch)

        Returns:
            New version id of the file

        Raises:
            ValueError: If the path or content is invalid
            PreconditionFailed: If the expected version no longer matches
            RateLimitExceeded, NotAuthenticated, NetworkError, RemoteApiError
        """
        is_valid, error_msg = validate_content(content)
        if not is_valid:
            raise ValueError(error_msg)

        body: dict[str, Any] = {
            "message": message,
            "content": base64.b64encode(content).decode("ascii"),
        }
        if version_id:
            body["sha"] = version_id
        target_branch = branch or self.config.branch
        if target_branch:
            body["branch"] = target_branch

        response = self._request("PUT", self._contents_url(path), json=body)
        if response.status_code == 404:
            raise RemoteApiError(
                f"Repository or branch not found for {path}", 404
            )
        data = response.json()
        new_sha = (data.get("content") or {}).get("sha")
        if not new_sha:
            raise RemoteApiError(
                f"Response for {path} carried no version id",
                response.status_code,
            )
        return new_sha

    def delete_contents(
        self,
        path: str,
        message: str,
        version_id: str,
        branch: str | None = None,
    ) -> None:
        """
        Delete a file.

        Args:
            path: Repository-relative file path
            message: Commit message
            version_id: Expected current blob sha
            branch: Target branch (default: configured branch)

        Raises:
            PreconditionFailed: If the expected version no longer matches
            RateLimitExceeded, NotAuthenticated, NetworkError, RemoteApiError
        """
        body: dict[str, Any] = {"message": message, "sha": version_id}
        target_branch = branch or self.config.branch
        if target_branch:
            body["branch"] = target_branch

        response = self._request(
            "DELETE", self._contents_url(path), json=body
        )
        if response.status_code == 404:
            raise RemoteApiError(f"File not found: {path}", 404)

    def get_authenticated_user(
        self, token: str | None = None
    ) -> tuple[str, list[str]]:
        """
        Identify the owner of a token.

        Args:
            token: Token to check (default: the provider's token)

        Returns:
            Tuple of (login, scopes) where scopes come from X-OAuth-Scopes

        Raises:
            InvalidToken: If the remote rejects the token (401)
            RateLimitExceeded, NotAuthenticated, NetworkError, RemoteApiError
        """
        url = f"{self.config.api_url.rstrip('/')}/user"
        response = self._request("GET", url, token=token)
        if response.status_code == 404:
            raise RemoteApiError("User endpoint not found", 404)
        data = response.json()
        scope_header = response.headers.get("X-OAuth-Scopes", "")
        scopes = [s.strip() for s in scope_header.split(",") if s.strip()]
        return (data.get("login") or "Unknown", scopes)


def parse_rate_limit(response: requests.Response) -> RateLimitExceeded | None:
    """Return a RateLimitExceeded for an exhausted-quota response, else None."""
    if response.status_code not in (403, 429):
        return None
    if response.headers.get("X-RateLimit-Remaining") != "0":
        return None
    reset_raw = response.headers.get("X-RateLimit-Reset")
    reset_at = int(reset_raw) if reset_raw and reset_raw.isdigit() else None
    return RateLimitExceeded(reset_at=reset_at)


def _error_message(response: requests.Response) -> str:
    try:
        data = response.json()
    except ValueError:
        data = {}
    if isinstance(data, dict) and data.get("message"):
        return str(data["message"])
    return f"API error: {response.status_code}"
