"""Credential resolution for HTTPS remotes.

Credentials come from a pluggable provider. The default provider speaks
the git credential helper protocol through ``git credential fill``. Fetches
hand the credentials to git through a short-lived ``GIT_ASKPASS`` script
that reads them from the child's environment, so they never touch disk.
"""

import os
import stat
import logging
import tempfile
import threading
from abc import ABC, abstractmethod
from contextlib import contextmanager
from dataclasses import dataclass
from typing import Dict, Iterator, Optional
from urllib.parse import urlparse

from ..core.errors import CredentialError, GitreeError, OperationCancelled
from ..utils.git import run_git

logger = logging.getLogger('gitree')

CREDENTIAL_TIMEOUT = 10.0

ASKPASS_USERNAME_VAR = "GITREE_ASKPASS_USERNAME"
ASKPASS_PASSWORD_VAR = "GITREE_ASKPASS_PASSWORD"


@dataclass
class Credentials:
    """Username/password pair for an HTTPS remote."""
    username: str
    password: str
    protocol: str = ""
    host: str = ""
    path: str = ""

    def __repr__(self) -> str:
        return f"Credentials(username={self.username!r}, host={self.host!r})"


class CredentialProvider(ABC):
    """Source of credentials for a remote."""

    @abstractmethod
    def resolve(
        self,
        protocol: str,
        host: str,
        path: Optional[str] = None,
        cancel: Optional[threading.Event] = None
    ) -> Credentials:
        """Look up credentials.

        Args:
            protocol: URL scheme, e.g. ``https``
            host: Host (with port if any)
            path: Repository path without leading slash or ``.git`` suffix
            cancel: Cooperative cancellation signal

        Returns:
            Complete credentials

        Raises:
            CredentialError: If no complete credentials are available
        """
        pass


class GitCredentialHelper(CredentialProvider):
    """Provider backed by ``git credential fill``."""

    def __init__(self, timeout: float = CREDENTIAL_TIMEOUT):
        self.timeout = timeout

    def resolve(
        self,
        protocol: str,
        host: str,
        path: Optional[str] = None,
        cancel: Optional[threading.Event] = None
    ) -> Credentials:
        request = f"protocol={protocol}\nhost={host}\n"
        if path:
            request += f"path={path}\n"
        request += "\n"  # Blank line ends the request

        logger.debug(f"Running git credential fill for protocol={protocol} host={host}")
        try:
            result = run_git(
                ["credential", "fill"],
                timeout=self.timeout,
                cancel=cancel,
                input_text=request,
            )
        except OperationCancelled:
            raise
        except GitreeError as e:
            raise CredentialError(f"git credential fill failed: {e}") from e

        values = parse_credential_output(result.stdout)
        username = values.get("username", "")
        password = values.get("password", "")
        if not username or not password:
            logger.debug(
                f"Credentials incomplete: username={bool(username)} password={bool(password)}"
            )
            raise CredentialError("no credentials available")

        return Credentials(
            username=username,
            password=password,
            protocol=values.get("protocol", protocol),
            host=values.get("host", host),
            path=values.get("path", path or ""),
        )


def parse_credential_output(output: str) -> Dict[str, str]:
    """Parse ``key=value`` lines of the credential helper protocol."""
    values = {}
    for line in output.splitlines():
        if not line or "=" not in line:
            continue
        key, value = line.split("=", 1)
        values[key] = value
    return values


def is_https_url(remote_url: str) -> bool:
    """Check if a remote URL uses the HTTPS scheme."""
    try:
        return urlparse(remote_url).scheme.lower() == "https"
    except ValueError:
        return remote_url.lower().startswith("https://")


def get_credentials_for_url(
    remote_url: str,
    provider: CredentialProvider,
    cancel: Optional[threading.Event] = None
) -> Optional[Credentials]:
    """Return explicit credentials for a remote URL, or None.

    Only HTTPS URLs are looked up; SSH, file and git URLs rely on ambient
    agent-based authentication. A failed or incomplete lookup also yields
    None and the fetch proceeds anonymously.

    Raises:
        OperationCancelled: If the cancellation signal fires during lookup
    """
    if not is_https_url(remote_url):
        logger.debug(f"URL {remote_url} is not HTTPS, skipping credential lookup")
        return None

    try:
        parsed = urlparse(remote_url)
        # Never send credentials embedded in the URL to the helper
        host = parsed.hostname or ""
        if parsed.port:
            host = f"{host}:{parsed.port}"
    except ValueError as e:
        logger.debug(f"Invalid remote URL {remote_url}: {e}")
        return None

    path = parsed.path.lstrip("/")
    if path.endswith(".git"):
        path = path[:-len(".git")]

    try:
        creds = provider.resolve(parsed.scheme, host, path or None, cancel=cancel)
    except CredentialError as e:
        logger.debug(f"No credentials for {host}: {e}")
        return None

    logger.debug(f"Using credentials for {host} (username: {creds.username})")
    return creds


_ASKPASS_SCRIPT = (
    "#!/bin/sh\n"
    'case "$1" in\n'
    f'  Username*|username*) printf \'%s\\n\' "${ASKPASS_USERNAME_VAR}" ;;\n'
    f'  *) printf \'%s\\n\' "${ASKPASS_PASSWORD_VAR}" ;;\n'
    "esac\n"
)


@contextmanager
def askpass_environment(credentials: Optional[Credentials]) -> Iterator[Dict[str, str]]:
    """Yield extra environment variables that supply credentials to git.

    Without credentials nothing is added. Otherwise a private ``GIT_ASKPASS``
    script is created for the duration of the block and removed afterwards.
    """
    if credentials is None:
        yield {}
        return

    fd, script_path = tempfile.mkstemp(prefix="gitree_askpass_", suffix=".sh")
    try:
        os.write(fd, _ASKPASS_SCRIPT.encode())
    finally:
        os.close(fd)
    os.chmod(script_path, stat.S_IRWXU)

    try:
        yield {
            "GIT_ASKPASS": script_path,
            ASKPASS_USERNAME_VAR: credentials.username,
            ASKPASS_PASSWORD_VAR: credentials.password,
        }
    finally:
        try:
            os.unlink(script_path)
        except OSError as e:
            logger.warning(f"Could not remove askpass helper {script_path}: {e}")
