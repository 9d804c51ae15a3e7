"""Predicates package: composable status conditions and the clean classifier."""

from .base import (
    Predicate,
    AllOf,
    all_of,
)

from .core import (
    NoStatusError,
    OnBranch,
    NoUncommittedChanges,
    NoStashes,
    HasRemote,
    NotAhead,
    NotBehind,
    NotDetached,
    STANDARD_STATUS,
)

from .classifier import (
    is_clean,
    attention_reasons,
    filter_repositories,
)

__all__ = [
    # Base
    'Predicate',
    'AllOf',
    'all_of',
    # Status predicates
    'NoStatusError',
    'OnBranch',
    'NoUncommittedChanges',
    'NoStashes',
    'HasRemote',
    'NotAhead',
    'NotBehind',
    'NotDetached',
    'STANDARD_STATUS',
    # Classification
    'is_clean',
    'attention_reasons',
    'filter_repositories',
]
