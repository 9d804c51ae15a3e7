"""Configuration management for gitree."""

import os
import math
from typing import Optional
from dataclasses import dataclass

from .core.batch import DEFAULT_CONCURRENCY as DEFAULT_MAX_CONCURRENT
from .gitstatus.fetch import DEFAULT_FETCH_RETRIES
from .gitstatus.status import DEFAULT_EXTRACT_TIMEOUT as DEFAULT_TIMEOUT

_TRUTHY = ('1', 'true', 'yes', 'on')


def _env_int(name: str, default: int) -> int:
    value = os.getenv(name)
    if value is None or value.strip() == '':
        return default
    try:
        return int(value)
    except ValueError:
        raise ValueError(f"{name} must be an integer, got {value!r}") from None


def _env_float(name: str, default: float) -> float:
    value = os.getenv(name)
    if value is None or value.strip() == '':
        return default
    try:
        return float(value)
    except ValueError:
        raise ValueError(f"{name} must be a number, got {value!r}") from None


def _env_flag(name: str) -> bool:
    return os.getenv(name, '').strip().lower() in _TRUTHY


@dataclass
class Config:
    """Configuration for a gitree run.

    Merges environment variables with CLI arguments.
    CLI arguments take precedence over environment variables.
    """

    root_path: str
    max_concurrent: int = DEFAULT_MAX_CONCURRENT
    timeout: float = DEFAULT_TIMEOUT
    fetch_retries: int = DEFAULT_FETCH_RETRIES
    fetch: bool = True
    show_all: bool = False
    color: bool = True
    debug: bool = False
    log_file: Optional[str] = None

    @classmethod
    def from_env_and_args(
        cls,
        directory: Optional[str] = None,
        max_concurrent: Optional[int] = None,
        timeout: Optional[float] = None,
        retries: Optional[int] = None,
        no_fetch: bool = False,
        show_all: bool = False,
        no_color: bool = False,
        debug: bool = False,
        log_file: Optional[str] = None
    ) -> 'Config':
        """Create config from environment variables and CLI arguments.

        CLI arguments override environment variables.

        Args:
            directory: Directory to scan (default: current directory)
            max_concurrent: Parallel repositories (overrides GITREE_MAX_CONCURRENT)
            timeout: Seconds per repository (overrides GITREE_TIMEOUT)
            retries: Fetch attempts (overrides GITREE_FETCH_RETRIES)
            no_fetch: Skip fetching (also set by GITREE_NO_FETCH)
            show_all: Show clean repositories too
            no_color: Disable colors (also set by NO_COLOR)
            debug: Enable debug logging
            log_file: Optional log file path

        Returns:
            Config instance

        Raises:
            ValueError: If a value is invalid
        """
        final_max_concurrent = (
            max_concurrent if max_concurrent is not None
            else _env_int('GITREE_MAX_CONCURRENT', DEFAULT_MAX_CONCURRENT)
        )
        final_timeout = timeout if timeout is not None else _env_float('GITREE_TIMEOUT', DEFAULT_TIMEOUT)
        final_retries = retries if retries is not None else _env_int('GITREE_FETCH_RETRIES', DEFAULT_FETCH_RETRIES)

        if final_max_concurrent < 1:
            raise ValueError(
                f"max concurrent must be at least 1, got {final_max_concurrent}. "
                "Set GITREE_MAX_CONCURRENT in .env or use --max-concurrent"
            )
        if not math.isfinite(final_timeout) or final_timeout <= 0:
            raise ValueError(
                f"timeout must be a positive number of seconds, got {final_timeout}. "
                "Set GITREE_TIMEOUT in .env or use --timeout"
            )
        if final_retries < 1:
            raise ValueError(
                f"retries must be at least 1, got {final_retries}. "
                "Set GITREE_FETCH_RETRIES in .env or use --retries"
            )

        return cls(
            root_path=os.path.abspath(directory or os.getcwd()),
            max_concurrent=final_max_concurrent,
            timeout=final_timeout,
            fetch_retries=final_retries,
            fetch=not (no_fetch or _env_flag('GITREE_NO_FETCH')),
            show_all=show_all,
            color=not (no_color or bool(os.getenv('NO_COLOR'))),
            debug=debug,
            log_file=log_file
        )
