"""Git command execution with deadlines and cooperative cancellation."""

import os
import time
import logging
import subprocess
import threading
from dataclasses import dataclass
from typing import Dict, List, Optional, Sequence

from ..core.errors import GitCommandError, GitTimeoutError, OperationCancelled

logger = logging.getLogger('gitree')

# How often a running git process is checked for cancellation
POLL_INTERVAL = 0.05


@dataclass
class GitResult:
    """Completed git invocation."""
    args: List[str]
    returncode: int
    stdout: str
    stderr: str

    @property
    def ok(self) -> bool:
        return self.returncode == 0

    @property
    def lines(self) -> List[str]:
        """Non-empty stdout lines."""
        return [line for line in self.stdout.splitlines() if line.strip()]


class Deadline:
    """Absolute point in time shared by several git calls.

    A ``None`` timeout never expires.
    """

    def __init__(self, timeout: Optional[float]):
        self.timeout = timeout
        self._expires_at = None if timeout is None else time.monotonic() + timeout

    def remaining(self) -> Optional[float]:
        """Seconds left, clamped at zero, or None when unbounded."""
        if self._expires_at is None:
            return None
        return max(0.0, self._expires_at - time.monotonic())

    @property
    def expired(self) -> bool:
        remaining = self.remaining()
        return remaining is not None and remaining <= 0


def git_environment(extra: Optional[Dict[str, str]] = None) -> Dict[str, str]:
    """Build a subprocess environment that disables interactive git prompts."""
    env = os.environ.copy()
    env["GIT_TERMINAL_PROMPT"] = "0"
    env["GCM_INTERACTIVE"] = "never"
    if extra:
        env.update(extra)
    return env


def repository_environment(repo_path: str, extra: Optional[Dict[str, str]] = None) -> Dict[str, str]:
    """Build an environment that confines repository discovery to ``repo_path``.

    Without a ceiling, git run inside a directory holding a broken ``.git``
    climbs to the enclosing repository and reports on that one instead.

    Args:
        repo_path: Repository the command must operate on
        extra: Additional variables to set

    Returns:
        Environment dict for ``run_git``
    """
    parent = os.path.dirname(os.path.realpath(repo_path))
    env = git_environment(extra)
    env["GIT_CEILING_DIRECTORIES"] = parent
    # Inherited values would override discovery entirely
    env.pop("GIT_DIR", None)
    env.pop("GIT_WORK_TREE", None)
    return env


def run_git(
    args: Sequence[str],
    cwd: Optional[str] = None,
    timeout: Optional[float] = None,
    cancel: Optional[threading.Event] = None,
    env: Optional[Dict[str, str]] = None,
    input_text: Optional[str] = None,
    check: bool = True
) -> GitResult:
    """Run a git command and capture its output.

    The child process is killed when the timeout elapses or the cancellation
    event fires.

    Args:
        args: Arguments after ``git``
        cwd: Working directory (usually the repository path)
        timeout: Seconds allowed for the command (None = unbounded)
        cancel: Cooperative cancellation signal
        env: Process environment (defaults to ``git_environment()``)
        input_text: Text written to the command's stdin
        check: Raise GitCommandError on a non-zero exit code

    Returns:
        GitResult with decoded stdout and stderr

    Raises:
        GitCommandError: If git is missing or exits non-zero with ``check``
        GitTimeoutError: If the timeout elapses
        OperationCancelled: If the cancellation event fires
    """
    args = list(args)
    if cancel is not None and cancel.is_set():
        raise OperationCancelled()
    if timeout is not None and timeout <= 0:
        raise GitTimeoutError(args, timeout)

    try:
        proc = subprocess.Popen(
            ["git", *args],
            cwd=cwd,
            env=env if env is not None else git_environment(),
            stdin=subprocess.PIPE if input_text is not None else subprocess.DEVNULL,
            stdout=subprocess.PIPE,
            stderr=subprocess.PIPE,
            text=True,
            encoding="utf-8",
            errors="replace",
        )
    except FileNotFoundError as e:
        if cwd is not None and not os.path.isdir(cwd):
            raise GitCommandError(args, 128, f"not a directory: {cwd}") from e
        raise GitCommandError(args, 127, f"git executable not found: {e}") from e
    except OSError as e:
        raise GitCommandError(args, 126, f"cannot run git: {e}") from e

    expires_at = None if timeout is None else time.monotonic() + timeout
    pending_input = input_text

    while True:
        wait = None if cancel is None else POLL_INTERVAL
        if expires_at is not None:
            remaining = expires_at - time.monotonic()
            if remaining <= 0:
                _kill(proc)
                raise GitTimeoutError(args, timeout)
            wait = remaining if wait is None else min(wait, remaining)

        try:
            stdout, stderr = proc.communicate(input=pending_input, timeout=wait)
            break
        except subprocess.TimeoutExpired:
            # Input can only be sent on the first communicate() call
            pending_input = None
            if cancel is not None and cancel.is_set():
                _kill(proc)
                raise OperationCancelled()

    result = GitResult(args=args, returncode=proc.returncode, stdout=stdout or "", stderr=stderr or "")
    if check and not result.ok:
        raise GitCommandError(args, result.returncode, result.stderr)
    return result


def _kill(proc: subprocess.Popen) -> None:
    """Kill a child process and reap it."""
    proc.kill()
    try:
        proc.communicate(timeout=5)
    except subprocess.TimeoutExpired:
        logger.warning(f"git process {proc.pid} did not exit after kill")
