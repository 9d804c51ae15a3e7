"""Per-repository git status and origin fetching."""

from .status import StatusExtractor, extract
from .fetch import OriginFetcher, fetch_origin, calculate_backoff
from .auth import (
    Credentials,
    CredentialProvider,
    GitCredentialHelper,
    get_credentials_for_url,
)

__all__ = [
    'StatusExtractor',
    'extract',
    'OriginFetcher',
    'fetch_origin',
    'calculate_backoff',
    'Credentials',
    'CredentialProvider',
    'GitCredentialHelper',
    'get_credentials_for_url',
]
