"""
Authorization contexts that supply bearer tokens to the request profiler.
"""

import logging
import threading
from typing import Dict, Optional

import google.auth
from google.auth.exceptions import GoogleAuthError
from google.auth.transport.requests import Request as GoogleAuthRequest

from common.exceptions import AuthorizationError
from configuration import ACCESS_TOKEN, AUTH_SCOPES

logger = logging.getLogger(__name__)


class AuthorizationContext:
    """Owns the credential used by every request of a benchmark run.

    authorize() is called once by the controller before the first
    iteration; refresh() is called by the profiler when the server rejects
    the token.
    """

    def __init__(self):
        self._token: Optional[str] = None
        self._lock = threading.Lock()

    @property
    def token(self) -> Optional[str]:
        return self._token

    @property
    def is_authorized(self) -> bool:
        return bool(self._token)

    def authorize(self) -> None:
        with self._lock:
            self._token = self._acquire_token()
        logger.info("Authorization succeeded")

    def refresh(self) -> None:
        """Acquire a new token, replacing the rejected one."""
        with self._lock:
            self._token = self._refresh_token()
        logger.info("Access token refreshed")

    def headers(self) -> Dict[str, str]:
        if not self._token:
            raise AuthorizationError("Not authorized: call authorize() first")
        return {"Authorization": f"Bearer {self._token}"}

    def _acquire_token(self) -> str:
        raise NotImplementedError

    def _refresh_token(self) -> str:
        return self._acquire_token()


class GoogleAuthorizationContext(AuthorizationContext):
    """Application Default Credentials scoped for the Cloud Healthcare API."""

    def __init__(self, scopes=AUTH_SCOPES):
        super().__init__()
        self.scopes = list(scopes)
        self._credentials = None

    def _acquire_token(self) -> str:
        try:
            if self._credentials is None:
                self._credentials, project = google.auth.default(scopes=self.scopes)
                logger.debug(f"Loaded application default credentials (project={project})")
            self._credentials.refresh(GoogleAuthRequest())
        except GoogleAuthError as e:
            raise AuthorizationError(f"Authorization failed: {e}") from e

        if not self._credentials.token:
            raise AuthorizationError("Authorization failed: no access token issued")
        return self._credentials.token


class StaticTokenAuthorizationContext(AuthorizationContext):
    """A pre-issued bearer token. It cannot be refreshed."""

    def __init__(self, token: str):
        super().__init__()
        self._static_token = token

    def _acquire_token(self) -> str:
        if not self._static_token:
            raise AuthorizationError("Authorization failed: empty access token")
        return self._static_token

    def _refresh_token(self) -> str:
        logger.warning("Static access token was rejected and cannot be refreshed")
        return self._static_token


def create_authorization_context(token: Optional[str] = None) -> AuthorizationContext:
    """Pick the authorization context for the run.

    Args:
        token: Explicit bearer token; falls back to DICOMWEB_ACCESS_TOKEN,
            then to Application Default Credentials
    """
    token = token or ACCESS_TOKEN
    if token:
        return StaticTokenAuthorizationContext(token)
    return GoogleAuthorizationContext()
