"""Session and credential providers."""

from src.auth.credentials import (
    SHEETS_SCOPES,
    CredentialProviderInterface,
    ServiceAccountCredentialProvider,
    TokenCredentialProvider,
)

__all__ = [
    "SHEETS_SCOPES",
    "CredentialProviderInterface",
    "ServiceAccountCredentialProvider",
    "TokenCredentialProvider",
]
