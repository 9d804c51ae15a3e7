"""Exception hierarchy for gitree."""

from typing import Optional


class GitreeError(Exception):
    """Base class for all gitree errors."""


class ScanError(GitreeError):
    """Fatal scan failure: the root path is missing, not a directory or unreadable."""


class ValidationError(GitreeError, ValueError):
    """A record violates one of its structural invariants."""


class OperationCancelled(GitreeError):
    """The cooperative cancellation signal fired."""

    def __init__(self, message: str = "operation cancelled"):
        super().__init__(message)


class GitCommandError(GitreeError):
    """A git invocation exited with a non-zero status."""

    def __init__(self, args, returncode: int, stderr: Optional[str] = None):
        self.command = list(args)
        self.returncode = returncode
        self.stderr = (stderr or "").strip()
        detail = f": {self.stderr}" if self.stderr else ""
        super().__init__(
            f"git {' '.join(self.command)} failed with exit code {returncode}{detail}"
        )


class GitTimeoutError(GitreeError):
    """A git invocation exceeded its deadline."""

    def __init__(self, args, timeout: Optional[float]):
        self.command = list(args)
        self.timeout = timeout
        limit = f" after {timeout:.1f}s" if timeout is not None else ""
        super().__init__(f"git {' '.join(self.command)} timed out{limit}")


class CredentialError(GitreeError):
    """The credential helper failed or returned incomplete credentials."""
