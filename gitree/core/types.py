"""Core data types shared by the scanner, status extraction and batch layers."""

import os
from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, List, Optional

from .errors import ValidationError

DETACHED_BRANCH = "DETACHED"
UNKNOWN_BRANCH = "N/A"
STANDARD_BRANCHES = ("main", "master")
TIMEOUT_ERROR = "timeout"
CANCELLED_ERROR = "cancelled"


@dataclass
class StatusSnapshot:
    """Status of a single repository at extraction time.

    Extraction problems never raise; they are reported through
    ``status_error`` (and ``fetch_error`` for remote synchronization) while
    every other field keeps whatever could be determined.
    """
    branch: str = UNKNOWN_BRANCH
    is_detached: bool = False
    has_remote: bool = False
    ahead: int = 0
    behind: int = 0
    has_stashes: bool = False
    has_changes: bool = False
    status_error: Optional[str] = None
    fetch_error: Optional[str] = None

    @classmethod
    def failed(cls, error: str) -> 'StatusSnapshot':
        """Create a partial snapshot carrying only an error."""
        return cls(branch=UNKNOWN_BRANCH, status_error=error)

    @property
    def timed_out(self) -> bool:
        return self.status_error == TIMEOUT_ERROR

    def is_standard(self) -> bool:
        """Check whether this status needs no attention.

        True only on main/master, in sync with a configured remote, with no
        stashes, no uncommitted changes, no detached HEAD and no error.
        """
        from ..predicates.core import STANDARD_STATUS

        passes, _ = STANDARD_STATUS.check(self)
        return passes

    def validate(self) -> None:
        """Check the snapshot invariants.

        Raises:
            ValidationError: If an invariant does not hold
        """
        if not self.branch:
            raise ValidationError("branch cannot be empty")
        if self.is_detached and self.branch != DETACHED_BRANCH:
            raise ValidationError(
                f"detached HEAD must have branch = '{DETACHED_BRANCH}', got '{self.branch}'"
            )
        if self.branch == DETACHED_BRANCH and not self.is_detached:
            raise ValidationError(f"branch '{DETACHED_BRANCH}' requires a detached HEAD")
        if self.ahead < 0 or self.behind < 0:
            raise ValidationError("ahead/behind counts cannot be negative")
        if not self.has_remote and (self.ahead != 0 or self.behind != 0):
            raise ValidationError("no remote but ahead/behind counts are non-zero")


@dataclass
class RepositoryRecord:
    """A repository discovered by the scanner.

    ``path``, ``name`` and ``is_bare`` are fixed at discovery; ``status`` is
    filled in later by the batch coordinator.
    """
    path: str
    name: str
    is_bare: bool = False
    is_symlink: bool = False
    status: Optional[StatusSnapshot] = None
    error: Optional[str] = None

    @property
    def has_timeout(self) -> bool:
        return self.status is not None and self.status.timed_out

    def validate(self) -> None:
        """Check the record invariants, including its status if present.

        Raises:
            ValidationError: If an invariant does not hold
        """
        if not self.path:
            raise ValidationError("path cannot be empty")
        if not os.path.isabs(self.path):
            raise ValidationError(f"path must be absolute: {self.path}")
        if not self.name:
            raise ValidationError("name cannot be empty")
        if self.status is not None:
            if self.is_bare and self.status.has_changes:
                raise ValidationError("bare repository cannot have uncommitted changes")
            self.status.validate()


@dataclass
class ScanOutcome:
    """Result of one scanner run. Read-only once returned."""
    root_path: str
    repositories: List[RepositoryRecord] = field(default_factory=list)
    total_directories_visited: int = 0
    total_repositories_found: int = 0
    errors: List[str] = field(default_factory=list)
    elapsed: float = 0.0

    @property
    def has_errors(self) -> bool:
        return bool(self.errors)

    @property
    def success_rate(self) -> float:
        """Share of repositories whose status was determined without error or timeout."""
        if not self.repositories:
            return 1.0
        ok = sum(1 for r in self.repositories if r.error is None and not r.has_timeout)
        return ok / len(self.repositories)

    def validate(self) -> None:
        """Check that the outcome is internally consistent.

        Raises:
            ValidationError: If an invariant does not hold
        """
        if not self.root_path:
            raise ValidationError("root path cannot be empty")
        if not os.path.isabs(self.root_path):
            raise ValidationError(f"root path must be absolute: {self.root_path}")
        if self.repositories is None:
            raise ValidationError("repositories list cannot be None")
        if self.total_repositories_found != len(self.repositories):
            raise ValidationError(
                f"total repos mismatch: {self.total_repositories_found} != {len(self.repositories)}"
            )
        if self.total_directories_visited < self.total_repositories_found:
            raise ValidationError("total scanned < total repos")
        if self.elapsed < 0:
            raise ValidationError("duration cannot be negative")


class FetchStatus(Enum):
    """Outcome of a fetch from origin."""
    SUCCEEDED = "succeeded"
    SKIPPED = "skipped"
    FAILED = "failed"


@dataclass
class FetchResult:
    """Result of fetching one repository from its origin remote."""
    status: FetchStatus
    message: str = ""
    error: Optional[str] = None
    attempts: int = 0

    @classmethod
    def skip(cls, reason: str) -> 'FetchResult':
        return cls(status=FetchStatus.SKIPPED, message=reason)

    @property
    def succeeded(self) -> bool:
        return self.status == FetchStatus.SUCCEEDED

    @property
    def skipped(self) -> bool:
        return self.status == FetchStatus.SKIPPED

    @property
    def failed(self) -> bool:
        return self.status == FetchStatus.FAILED


@dataclass
class FetchSummary:
    """Fetch counters for one batch.

    ``skipped`` covers bare repositories and repositories without a usable
    origin; those are not counted as ``attempted``.
    """
    attempted: int = 0
    succeeded: int = 0
    skipped: int = 0
    failed: int = 0
    failed_repos: List[str] = field(default_factory=list)

    def record(self, path: str, result: FetchResult) -> None:
        """Add one fetch result to the counters."""
        if result.skipped:
            self.skipped += 1
            return

        self.attempted += 1
        if result.succeeded:
            self.succeeded += 1
        else:
            self.failed += 1
            self.failed_repos.append(path)


@dataclass
class BatchOutcome:
    """Aggregated result of one batch run, keyed by repository path."""
    statuses: Dict[str, StatusSnapshot] = field(default_factory=dict)
    success_count: int = 0
    failure_count: int = 0
    failed_repos: List[str] = field(default_factory=list)
    fetch_summary: Optional[FetchSummary] = None
