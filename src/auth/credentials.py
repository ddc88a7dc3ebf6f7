"""
Session / Credential Providers

The sync engine never authenticates by itself. It asks a provider for
the current bearer token and treats "no token" as "not signed in".

Two providers:
- TokenCredentialProvider: holds an OAuth access token handed over by an
  interactive sign-in flow (the UI owns the flow itself)
- ServiceAccountCredentialProvider: mints tokens from a service account
  JSON via google-auth, for headless use
"""

from abc import ABC, abstractmethod
from pathlib import Path
from typing import Any, Optional

import structlog
from google.auth.exceptions import RefreshError, TransportError
from google.auth.transport.requests import Request
from google.oauth2 import service_account

from src.events import EventBus
from src.models.events import AuthChanged
from src.services.storage.interface import (
    CredentialExpiredError,
    RemoteUnavailableError,
)


logger = structlog.get_logger(__name__)

SHEETS_SCOPES = [
    "https://www.googleapis.com/auth/spreadsheets",
    "https://www.googleapis.com/auth/drive.file",
]


class CredentialProviderInterface(ABC):
    """What the sync engine needs to know about the session."""

    @abstractmethod
    def is_authenticated(self) -> bool:
        pass

    @abstractmethod
    def current_token(self) -> Optional[str]:
        """Bearer token for remote calls, or None when signed out."""
        pass


class TokenCredentialProvider(CredentialProviderInterface):
    """
    Holds an access token obtained elsewhere.

    Emits AuthChanged on the event bus whenever the login state changes.
    """

    def __init__(self, events: Optional[EventBus] = None):
        self._events = events
        self._token: Optional[str] = None
        self._user_info: Optional[dict[str, Any]] = None

    @property
    def user_info(self) -> Optional[dict[str, Any]]:
        return self._user_info

    def is_authenticated(self) -> bool:
        return bool(self._token)

    def current_token(self) -> Optional[str]:
        return self._token

    def sign_in(self, token: str, user_info: Optional[dict[str, Any]] = None) -> None:
        if not token:
            raise ValueError("Access token must not be empty")
        self._token = token
        self._user_info = user_info
        logger.info("signed_in", user=(user_info or {}).get("email"))
        self._notify()

    def sign_out(self) -> None:
        self._token = None
        self._user_info = None
        logger.info("signed_out")
        self._notify()

    def _notify(self) -> None:
        if self._events:
            self._events.emit(
                AuthChanged(
                    is_authenticated=self.is_authenticated(),
                    user_info=self._user_info,
                )
            )


class ServiceAccountCredentialProvider(CredentialProviderInterface):
    """
    Service account credentials, refreshed on demand.

    The spreadsheet must be shared with the service account's email
    for an existing table id to open.
    """

    def __init__(
        self,
        credentials_path: str,
        scopes: Optional[list[str]] = None,
    ):
        self._credentials_path = credentials_path
        self._scopes = scopes or SHEETS_SCOPES
        self._credentials: Optional[service_account.Credentials] = None

    def _load(self) -> Optional[service_account.Credentials]:
        if self._credentials is None:
            try:
                self._credentials = service_account.Credentials.from_service_account_file(
                    self._credentials_path,
                    scopes=self._scopes,
                )
            except (OSError, ValueError) as e:
                logger.warning(
                    "service_account_unavailable",
                    path=self._credentials_path,
                    error=str(e),
                )
                return None
        return self._credentials

    def is_authenticated(self) -> bool:
        return Path(self._credentials_path).exists() and self._load() is not None

    def current_token(self) -> Optional[str]:
        credentials = self._load()
        if credentials is None:
            return None

        if not credentials.valid:
            try:
                credentials.refresh(Request())
            except RefreshError as e:
                raise CredentialExpiredError(f"Service account token refresh rejected: {e}") from e
            except TransportError as e:
                raise RemoteUnavailableError(f"Service account token refresh failed: {e}") from e

        return credentials.token
