"""Fetch from the origin remote with retries and exponential backoff."""

import time
import logging
import threading
from typing import Optional, Tuple

from .auth import CredentialProvider, GitCredentialHelper, askpass_environment, get_credentials_for_url
from ..core.errors import GitreeError, GitTimeoutError, OperationCancelled
from ..core.types import FetchResult, FetchStatus
from ..utils.git import repository_environment, run_git

logger = logging.getLogger('gitree')

ORIGIN_REMOTE = "origin"
BASE_BACKOFF_DELAY = 0.5
MAX_BACKOFF_DELAY = 10.0
DEFAULT_FETCH_RETRIES = 3
DEFAULT_ATTEMPT_TIMEOUT = 10.0

# Past this exponent the delay is always capped; keeps 2**n within float range
_MAX_BACKOFF_EXPONENT = 32


def calculate_backoff(
    retry: int,
    base_delay: float = BASE_BACKOFF_DELAY,
    max_delay: float = MAX_BACKOFF_DELAY
) -> float:
    """Return the delay before a retry: ``base * 2**(retry - 1)``, capped.

    With the defaults: retry 1 waits 0.5s, 2 waits 1s, 3 waits 2s, 4 waits
    4s, 5 waits 8s and every later retry waits 10s.

    Args:
        retry: 1-based retry number
        base_delay: Delay of the first retry in seconds
        max_delay: Upper bound in seconds

    Returns:
        Delay in seconds
    """
    exponent = min(max(retry - 1, 0), _MAX_BACKOFF_EXPONENT)
    return min(base_delay * (2 ** exponent), max_delay)


class OriginFetcher:
    """Synchronizes a repository with its ``origin`` remote.

    Bare repositories and repositories without an origin URL are skipped.
    Transient failures are retried with exponential backoff; timeouts and
    cancellation end the retry loop at once.
    """

    def __init__(
        self,
        credential_provider: Optional[CredentialProvider] = None,
        base_delay: float = BASE_BACKOFF_DELAY,
        max_delay: float = MAX_BACKOFF_DELAY
    ):
        """Initialize fetcher.

        Args:
            credential_provider: Source of HTTPS credentials (default: git credential helper)
            base_delay: Backoff delay of the first retry in seconds
            max_delay: Backoff cap in seconds
        """
        self.credential_provider = credential_provider or GitCredentialHelper()
        self.base_delay = base_delay
        self.max_delay = max_delay

    def fetch_origin(
        self,
        repo_path: str,
        retries: int = DEFAULT_FETCH_RETRIES,
        attempt_timeout: Optional[float] = DEFAULT_ATTEMPT_TIMEOUT,
        cancel: Optional[threading.Event] = None
    ) -> FetchResult:
        """Fetch from origin, retrying failed attempts.

        Never raises; every problem is reported through the result.

        Args:
            repo_path: Repository path
            retries: Maximum number of attempts (values below 1 use the default)
            attempt_timeout: Seconds allowed for each attempt
            cancel: Cooperative cancellation signal

        Returns:
            FetchResult that succeeded, was skipped or failed
        """
        if cancel is not None and cancel.is_set():
            return _cancelled(0)

        try:
            remote_url, skip_reason = self._resolve_origin(repo_path, attempt_timeout, cancel)
        except OperationCancelled:
            return _cancelled(0)
        except GitreeError as e:
            return FetchResult(
                status=FetchStatus.FAILED,
                error=f"failed to open repository: {e}",
            )

        if remote_url is None:
            logger.debug(f"Skipping fetch for {repo_path}: {skip_reason}")
            return FetchResult.skip(skip_reason)

        max_attempts = retries if retries > 0 else DEFAULT_FETCH_RETRIES
        last_error: Optional[Exception] = None
        attempt = 0

        for attempt in range(1, max_attempts + 1):
            if attempt > 1:
                delay = calculate_backoff(attempt - 1, self.base_delay, self.max_delay)
                logger.debug(f"Retry {attempt - 1} for {repo_path} after {delay:.1f}s")
                if self._sleep(delay, cancel):
                    return _cancelled(attempt - 1)

            try:
                self._perform_fetch(repo_path, remote_url, attempt_timeout, cancel)
                logger.debug(f"Fetched {repo_path} from {ORIGIN_REMOTE} (attempt {attempt})")
                return FetchResult(
                    status=FetchStatus.SUCCEEDED,
                    message=f"Fetched from {ORIGIN_REMOTE}",
                    attempts=attempt,
                )
            except OperationCancelled:
                return _cancelled(attempt)
            except GitTimeoutError as e:
                # Deadline exceeded: another attempt would hit the same limit
                last_error = e
                break
            except GitreeError as e:
                last_error = e
                logger.debug(f"Fetch attempt {attempt} failed for {repo_path}: {e}")

        return FetchResult(
            status=FetchStatus.FAILED,
            error=f"fetch failed after retries: {last_error}",
            attempts=attempt,
        )

    def _resolve_origin(
        self,
        repo_path: str,
        timeout: Optional[float],
        cancel: Optional[threading.Event]
    ) -> Tuple[Optional[str], str]:
        """Find the origin URL.

        Returns:
            (url, "") when a fetch is possible, otherwise (None, skip reason)
        """
        env = repository_environment(repo_path)
        bare = run_git(
            ["rev-parse", "--is-bare-repository"], cwd=repo_path, timeout=timeout, cancel=cancel, env=env
        )
        if bare.stdout.strip() == "true":
            return None, "bare repository"

        remotes = run_git(["remote"], cwd=repo_path, timeout=timeout, cancel=cancel, env=env)
        if ORIGIN_REMOTE not in remotes.lines:
            return None, f"no {ORIGIN_REMOTE} remote"

        urls = run_git(
            ["config", "--get-all", f"remote.{ORIGIN_REMOTE}.url"],
            cwd=repo_path,
            timeout=timeout,
            cancel=cancel,
            env=env,
            check=False,
        )
        if not urls.ok or not urls.lines:
            return None, f"{ORIGIN_REMOTE} remote has no URL"

        return urls.lines[0].strip(), ""

    def _perform_fetch(
        self,
        repo_path: str,
        remote_url: str,
        timeout: Optional[float],
        cancel: Optional[threading.Event]
    ) -> None:
        """Run a single fetch attempt.

        A remote that is already up to date exits successfully.
        """
        credentials = get_credentials_for_url(remote_url, self.credential_provider, cancel=cancel)
        with askpass_environment(credentials) as extra_env:
            run_git(
                ["fetch", "--quiet", ORIGIN_REMOTE],
                cwd=repo_path,
                timeout=timeout,
                cancel=cancel,
                env=repository_environment(repo_path, extra_env),
            )

    @staticmethod
    def _sleep(delay: float, cancel: Optional[threading.Event]) -> bool:
        """Sleep for the backoff delay; True if cancelled meanwhile."""
        if cancel is None:
            time.sleep(delay)
            return False
        return cancel.wait(delay)


def _cancelled(attempts: int) -> FetchResult:
    return FetchResult(
        status=FetchStatus.FAILED,
        error=str(OperationCancelled()),
        attempts=attempts,
    )


def fetch_origin(
    repo_path: str,
    retries: int = DEFAULT_FETCH_RETRIES,
    attempt_timeout: Optional[float] = DEFAULT_ATTEMPT_TIMEOUT,
    cancel: Optional[threading.Event] = None,
    credential_provider: Optional[CredentialProvider] = None
) -> FetchResult:
    """Fetch one repository from origin with the default backoff settings."""
    fetcher = OriginFetcher(credential_provider=credential_provider)
    return fetcher.fetch_origin(repo_path, retries=retries, attempt_timeout=attempt_timeout, cancel=cancel)
