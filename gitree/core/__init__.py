"""Core package for gitree."""

from .types import (
    StatusSnapshot,
    RepositoryRecord,
    ScanOutcome,
    FetchStatus,
    FetchResult,
    FetchSummary,
    BatchOutcome,
)

from .errors import (
    GitreeError,
    ScanError,
    ValidationError,
    OperationCancelled,
    GitCommandError,
    GitTimeoutError,
    CredentialError,
)

from .scanner import Scanner, scan
from .logger import setup_logging

__all__ = [
    # Types
    'StatusSnapshot',
    'RepositoryRecord',
    'ScanOutcome',
    'FetchStatus',
    'FetchResult',
    'FetchSummary',
    'BatchOutcome',
    # Errors
    'GitreeError',
    'ScanError',
    'ValidationError',
    'OperationCancelled',
    'GitCommandError',
    'GitTimeoutError',
    'CredentialError',
    # Scanning
    'Scanner',
    'scan',
    'setup_logging',
]
