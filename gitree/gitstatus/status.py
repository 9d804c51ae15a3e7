"""Per-repository status extraction."""

import time
import logging
import threading
from typing import Dict, List, Optional

from ..core.errors import GitCommandError, GitreeError, GitTimeoutError, OperationCancelled
from ..core.types import (
    CANCELLED_ERROR,
    DETACHED_BRANCH,
    TIMEOUT_ERROR,
    UNKNOWN_BRANCH,
    StatusSnapshot,
)
from ..utils.git import Deadline, GitResult, repository_environment, run_git

logger = logging.getLogger('gitree')

DEFAULT_EXTRACT_TIMEOUT = 10.0
ORIGIN_REMOTE = "origin"
SLOW_EXTRACTION_THRESHOLD = 0.1
MAX_FILES_PER_CATEGORY = 20


class StatusExtractor:
    """Computes a StatusSnapshot for one repository within a time budget.

    Each step is best effort: a failing step records the first error in
    ``status_error`` and the remaining steps still run. Only a timeout or a
    cancellation discards the partial result.
    """

    def __init__(self, timeout: Optional[float] = DEFAULT_EXTRACT_TIMEOUT):
        """Initialize extractor.

        Args:
            timeout: Default overall time budget per repository (None = unbounded)
        """
        self.timeout = timeout

    def extract(
        self,
        repo_path: str,
        timeout: Optional[float] = None,
        cancel: Optional[threading.Event] = None
    ) -> StatusSnapshot:
        """Extract the status of a repository. Never raises.

        Args:
            repo_path: Repository path
            timeout: Overall budget in seconds (defaults to the extractor's)
            cancel: Cooperative cancellation signal

        Returns:
            StatusSnapshot; on timeout ``branch="N/A"`` and ``status_error="timeout"``
        """
        start_time = time.monotonic()
        deadline = Deadline(self.timeout if timeout is None else timeout)

        try:
            status = _Extraction(repo_path, deadline, cancel).run()
        except GitTimeoutError:
            logger.debug(f"Status extraction timed out for {repo_path}")
            return StatusSnapshot.failed(TIMEOUT_ERROR)
        except OperationCancelled:
            return StatusSnapshot.failed(CANCELLED_ERROR)
        except GitreeError as e:
            return StatusSnapshot.failed(str(e))

        if logger.isEnabledFor(logging.DEBUG):
            _log_summary(repo_path, status, time.monotonic() - start_time)

        return status


class _Extraction:
    """State of a single extraction run."""

    def __init__(self, repo_path: str, deadline: Deadline, cancel: Optional[threading.Event]):
        self.repo_path = repo_path
        self.deadline = deadline
        self.cancel = cancel
        self.env = repository_environment(repo_path)
        self.status = StatusSnapshot()

    def git(self, *args: str, check: bool = True) -> GitResult:
        return run_git(
            args,
            cwd=self.repo_path,
            timeout=self.deadline.remaining(),
            cancel=self.cancel,
            env=self.env,
            check=check,
        )

    def record_error(self, message: str) -> None:
        # Keep the first error; later ones are usually consequences
        if self.status.status_error is None:
            self.status.status_error = message

    def run(self) -> StatusSnapshot:
        try:
            is_bare = self.git("rev-parse", "--is-bare-repository").stdout.strip() == "true"
        except GitCommandError as e:
            return StatusSnapshot.failed(f"failed to open repository: {e.stderr or e}")

        self.extract_branch()
        self.extract_remote()
        if self.status.has_remote:
            self.extract_ahead_behind()
        self.extract_stashes()
        if not is_bare:
            # A bare repository has no working tree to be dirty
            self.extract_uncommitted_changes()

        return self.status

    def extract_branch(self) -> None:
        head = self.git("rev-parse", "--verify", "--quiet", "HEAD", check=False)
        if not head.ok:
            self.status.branch = UNKNOWN_BRANCH
            self.record_error("failed to get HEAD: reference not found")
            return

        symbolic = self.git("symbolic-ref", "--quiet", "--short", "HEAD", check=False)
        if symbolic.ok and symbolic.stdout.strip():
            self.status.is_detached = False
            self.status.branch = symbolic.stdout.strip()
        else:
            self.status.is_detached = True
            self.status.branch = DETACHED_BRANCH

    def extract_remote(self) -> None:
        try:
            remotes = self.git("remote").lines
        except GitCommandError as e:
            logger.debug(f"Could not list remotes for {self.repo_path}: {e}")
            remotes = []
        self.status.has_remote = len(remotes) > 0

    def extract_ahead_behind(self) -> None:
        branch = self.status.branch
        if self.status.is_detached or branch == UNKNOWN_BRANCH:
            # No branch, so no tracking reference to compare against
            return

        tracking_ref = f"refs/remotes/{ORIGIN_REMOTE}/{branch}"
        tracking = self.git("rev-parse", "--verify", "--quiet", f"{tracking_ref}^{{commit}}", check=False)
        if not tracking.ok:
            logger.debug(f"No tracking reference {tracking_ref} in {self.repo_path}")
            return

        try:
            # Left side: commits only reachable from HEAD; right: only from the remote tip
            counts = self.git("rev-list", "--left-right", "--count", f"HEAD...{tracking.stdout.strip()}")
            ahead, behind = (int(n) for n in counts.stdout.split())
        except (GitCommandError, ValueError) as e:
            self.record_error(f"failed to count commits against {ORIGIN_REMOTE}/{branch}: {e}")
            return

        self.status.ahead = ahead
        self.status.behind = behind

    def extract_stashes(self) -> None:
        stash = self.git("rev-parse", "--verify", "--quiet", "refs/stash", check=False)
        self.status.has_stashes = stash.ok

    def extract_uncommitted_changes(self) -> None:
        # Native status honours core.excludesFile and the system excludes
        try:
            result = self.git("status", "--porcelain", "--untracked-files=normal")
        except GitCommandError as e:
            self.record_error(f"failed to get worktree status: {e.stderr or e}")
            return

        entries = result.lines
        self.status.has_changes = bool(entries)
        if entries and logger.isEnabledFor(logging.DEBUG):
            _log_changed_files(self.repo_path, entries)


def categorize_changes(porcelain_lines: List[str]) -> Dict[str, List[str]]:
    """Group ``git status --porcelain`` lines into change categories."""
    categories: Dict[str, List[str]] = {
        "Modified": [],
        "Untracked": [],
        "Staged": [],
        "Deleted": [],
    }
    for line in porcelain_lines:
        if len(line) < 4:
            continue
        index, worktree, filename = line[0], line[1], line[3:]
        if index == "?" and worktree == "?":
            categories["Untracked"].append(filename)
        elif index not in (" ", "?"):
            categories["Staged"].append(filename)
        elif worktree == "D":
            categories["Deleted"].append(filename)
        elif worktree != " ":
            categories["Modified"].append(filename)
    return categories


def _log_changed_files(repo_path: str, porcelain_lines: List[str]) -> None:
    for category, files in categorize_changes(porcelain_lines).items():
        if not files:
            continue
        shown = ", ".join(files[:MAX_FILES_PER_CATEGORY])
        logger.debug(f"{repo_path}: {category} files ({len(files)}): {shown}")
        if len(files) > MAX_FILES_PER_CATEGORY:
            logger.debug(f"...and {len(files) - MAX_FILES_PER_CATEGORY} more {category.lower()} files")


def _log_summary(repo_path: str, status: StatusSnapshot, duration: float) -> None:
    if duration > SLOW_EXTRACTION_THRESHOLD:
        logger.debug(f"Repository {repo_path} status extraction: {duration * 1000:.0f}ms")

    parts = [f"branch={status.branch}", f"changes={status.has_changes}"]
    if status.has_remote:
        parts.append("remote=yes")
        if status.ahead:
            parts.append(f"ahead={status.ahead}")
        if status.behind:
            parts.append(f"behind={status.behind}")
    else:
        parts.append("remote=no")
    if status.has_stashes:
        parts.append("stashes=yes")
    if status.status_error:
        parts.append(f"error={status.status_error}")
    logger.debug(f"Repository {repo_path}: {', '.join(parts)}")


def extract(
    repo_path: str,
    timeout: Optional[float] = DEFAULT_EXTRACT_TIMEOUT,
    cancel: Optional[threading.Event] = None
) -> StatusSnapshot:
    """Extract the status of one repository. Never raises."""
    return StatusExtractor(timeout=timeout).extract(repo_path, cancel=cancel)
