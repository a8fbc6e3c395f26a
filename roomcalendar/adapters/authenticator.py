"""
Local username/password authentication against the CMS users plugin.
"""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any, Dict, Optional

import keyring
import requests
from keyring.errors import KeyringError

from ..domain.exceptions import AuthenticationError
from ..domain.models import Session, User

logger = logging.getLogger(__name__)


KEYRING_SERVICE_NAME = "roomcalendar"


class Authenticator:
    """
    Logs users in, registers them and remembers the session between runs.

    Sessions are stored in the system keyring. When no keyring backend is
    usable they fall back to a plaintext file readable only by the owner.
    """

    def __init__(
        self,
        base_url: str,
        session_file: Path | None = None,
        timeout: int = 30,
        use_keyring: bool = True
    ):
        """
        Initialize the authenticator.

        Args:
            base_url: Backend root, e.g. http://localhost:15000
            session_file: Optional path of the plaintext session fallback
            timeout: Request timeout in seconds
            use_keyring: Try the system keyring before the session file
        """
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.session_file = session_file or Path.home() / ".roomcalendar_session.json"
        self._keyring_supported = use_keyring
        self._key_identifier = self.base_url

    @property
    def storage_backend(self) -> str:
        """Return the active session storage (keyring or file)."""
        return "keyring" if self._keyring_supported else "file"

    def _post(self, endpoint: str, payload: Dict[str, Any]) -> Dict[str, Any]:
        try:
            response = requests.post(
                f"{self.base_url}{endpoint}",
                json=payload,
                timeout=self.timeout
            )
        except requests.exceptions.RequestException as e:
            raise AuthenticationError(f"Could not reach authentication backend: {e}") from e

        return self._parse_response(response)

    @staticmethod
    def _parse_response(response: requests.Response) -> Dict[str, Any]:
        try:
            body = response.json()
        except ValueError:
            body = {}

        if not response.ok:
            error = body.get("error") if isinstance(body, dict) else None
            message = error.get("message") if isinstance(error, dict) else None
            raise AuthenticationError(message or f"Request failed: {response.status_code}")

        if not isinstance(body, dict):
            raise AuthenticationError("Unexpected response from authentication backend")
        return body

    def _session_from_auth_response(self, body: Dict[str, Any]) -> Session:
        jwt = body.get("jwt")
        user = body.get("user")
        if not jwt or not isinstance(user, dict):
            raise AuthenticationError("Authentication response did not contain a token")
        return Session(token=jwt, user=User.from_api(user))

    def login(self, identifier: str, password: str) -> Session:
        """
        Log in with username or email and password.

        Raises:
            AuthenticationError: If the credentials are rejected
        """
        body = self._post("/api/auth/local", {"identifier": identifier, "password": password})
        session = self._session_from_auth_response(body)
        logger.info("Logged in as %s", session.user.username)
        return session

    def register(self, username: str, email: str, password: str) -> Session:
        body = self._post(
            "/api/auth/local/register",
            {"username": username, "email": email, "password": password},
        )
        session = self._session_from_auth_response(body)
        logger.info("Registered user %s", session.user.username)
        return session

    def get_me(self, token: str) -> User:
        """Fetch the user behind a token, verifying that it is still valid."""
        try:
            response = requests.get(
                f"{self.base_url}/api/users/me",
                headers={"Authorization": f"Bearer {token}"},
                timeout=self.timeout
            )
        except requests.exceptions.RequestException as e:
            raise AuthenticationError(f"Could not reach authentication backend: {e}") from e

        return User.from_api(self._parse_response(response))

    def restore_session(self, verify: bool = True) -> Session:
        """
        Load the stored session, or an anonymous one.

        With ``verify`` the token is checked against the backend and a
        rejected token is discarded.
        """
        session = self.load_session()
        if not session.token or not verify:
            return session

        try:
            user = self.get_me(session.token)
        except AuthenticationError as exc:
            logger.warning("Stored session is no longer valid: %s", exc)
            self.clear_session()
            return Session.anonymous()

        return Session(token=session.token, user=user)

    def load_session(self) -> Session:
        serialized = self._load_from_keyring()
        if serialized is None:
            serialized = self._load_from_file()
        if not serialized:
            return Session.anonymous()

        try:
            return Session.from_dict(json.loads(serialized))
        except (ValueError, KeyError, TypeError) as exc:
            logger.warning("Could not read stored session: %s", exc)
            return Session.anonymous()

    def save_session(self, session: Session) -> None:
        serialized = json.dumps(session.to_dict())
        if self._save_to_keyring(serialized):
            return
        self._save_to_file(serialized)

    def clear_session(self) -> None:
        """Forget the stored session (log out)."""
        if self.session_file.exists():
            self.session_file.unlink()
        if self._keyring_supported:
            try:
                keyring.delete_password(KEYRING_SERVICE_NAME, self._key_identifier)
            except KeyringError as exc:
                logger.debug("Nothing removed from keyring: %s", exc)

    def _load_from_keyring(self) -> Optional[str]:
        if not self._keyring_supported:
            return None

        try:
            return keyring.get_password(KEYRING_SERVICE_NAME, self._key_identifier)
        except KeyringError as exc:
            self._handle_keyring_failure(f"reading credentials failed: {exc}")
            return None

    def _save_to_keyring(self, serialized: str) -> bool:
        if not self._keyring_supported:
            return False

        try:
            keyring.set_password(KEYRING_SERVICE_NAME, self._key_identifier, serialized)
            return True
        except KeyringError as exc:
            self._handle_keyring_failure(f"writing credentials failed: {exc}")
            return False

    def _load_from_file(self) -> Optional[str]:
        if self.session_file.exists():
            try:
                with open(self.session_file, "r", encoding="utf-8") as file_handle:
                    return file_handle.read()
            except OSError as exc:
                logger.warning("Could not load session file %s: %s", self.session_file, exc)
        return None

    def _save_to_file(self, serialized: str) -> None:
        try:
            self.session_file.parent.mkdir(parents=True, exist_ok=True)
            with open(self.session_file, "w", encoding="utf-8") as file_handle:
                file_handle.write(serialized)
            self.session_file.chmod(0o600)
        except OSError as exc:
            logger.warning("Could not save session to %s: %s", self.session_file, exc)

    def _handle_keyring_failure(self, reason: str) -> None:
        logger.warning(
            "Secure credential storage unavailable (%s). Falling back to %s.",
            reason,
            self.session_file,
        )
        self._keyring_supported = False
