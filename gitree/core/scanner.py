"""Directory scanner that finds Git repositories below a root path."""

import os
import time
import logging
import threading
from typing import List, Optional, Set, Tuple

from .errors import OperationCancelled, ScanError
from .types import RepositoryRecord, ScanOutcome

logger = logging.getLogger('gitree')


def is_git_repository(path: str) -> Tuple[bool, bool]:
    """Check whether a directory is a Git repository root.

    A regular repository has a ``.git`` directory. A bare repository has
    ``HEAD``, ``refs/`` and ``objects/`` directly inside it; all three are
    required.

    Args:
        path: Directory to check

    Returns:
        (is_repo, is_bare)
    """
    if os.path.isdir(os.path.join(path, '.git')):
        return True, False

    if (
        os.path.exists(os.path.join(path, 'HEAD'))
        and os.path.isdir(os.path.join(path, 'refs'))
        and os.path.isdir(os.path.join(path, 'objects'))
    ):
        return True, True

    return False, False


def _is_within(path: str, root: str) -> bool:
    try:
        return os.path.commonpath([path, root]) == root
    except ValueError:
        # Different drives on Windows
        return False


class Scanner:
    """Depth-first, single-threaded repository scanner.

    Symlink cycles are broken by remembering the filesystem identity
    (device and inode) of every visited directory. Where the platform has no
    stable inode numbers the canonical path is used instead. Found
    repositories are never descended into.
    """

    def __init__(self, root_path: str, cancel: Optional[threading.Event] = None):
        """Initialize scanner.

        Args:
            root_path: Directory to scan
            cancel: Cooperative cancellation signal
        """
        self.root_path = root_path
        self.cancel = cancel
        self.repositories: List[RepositoryRecord] = []
        self.errors: List[str] = []
        self.dir_count = 0
        self._visited: Set[tuple] = set()
        self._root_real = ''

    def scan(self) -> ScanOutcome:
        """Walk the tree and collect repositories.

        Returns:
            ScanOutcome with the repositories in traversal order

        Raises:
            ScanError: If the root is missing, not a directory or unreadable
            OperationCancelled: If the cancellation signal fires during the walk
        """
        start_time = time.monotonic()

        try:
            info = os.stat(self.root_path)
        except OSError as e:
            raise ScanError(f"cannot access root path {self.root_path}: {e}") from e
        if not os.path.isdir(self.root_path):
            raise ScanError(f"root path {self.root_path} is not a directory")

        root = os.path.abspath(self.root_path)
        self._root_real = os.path.realpath(root)
        logger.debug(f"Scanning {root} (device {info.st_dev})")

        self._walk(root)

        return ScanOutcome(
            root_path=root,
            repositories=self.repositories,
            total_directories_visited=self.dir_count,
            total_repositories_found=len(self.repositories),
            errors=self.errors,
            elapsed=time.monotonic() - start_time,
        )

    def _walk(self, root: str) -> None:
        # Explicit stack keeps deep trees clear of the recursion limit.
        # Entries: (path, reached_through_symlink)
        stack: List[Tuple[str, bool]] = [(root, False)]
        # Symlinked entries wait until every real directory has been walked,
        # so a repository is always reported under its real path
        linked: List[Tuple[str, bool]] = []

        while stack or linked:
            path, via_symlink = stack.pop() if stack else linked.pop()

            if self.cancel is not None and self.cancel.is_set():
                raise OperationCancelled("scan cancelled")

            logger.debug(f"Entering directory: {path}")
            self.dir_count += 1

            if not self._mark_visited(path):
                continue

            is_repo, is_bare = is_git_repository(path)
            if is_repo:
                logger.debug(f"Found git repository: {path} ({'bare' if is_bare else 'regular'})")
                self.repositories.append(RepositoryRecord(
                    path=path,
                    name=os.path.basename(path) or path,
                    is_bare=is_bare,
                    is_symlink=via_symlink,
                ))
                # Repository internals are never scanned for nested repositories
                continue

            children = self._list_subdirectories(path, is_root=(path == root))
            # Reverse so the stack pops entries in name order
            for child_path, child_is_link in reversed(children):
                if via_symlink or child_is_link:
                    linked.append((child_path, True))
                else:
                    stack.append((child_path, False))

    def _mark_visited(self, path: str) -> bool:
        """Record a directory's identity; False if it was already visited."""
        try:
            st = os.stat(path)
        except OSError as e:
            logger.debug(f"Skipping {path}: {e}")
            self.errors.append(f"error checking path {path}: {e}")
            return False

        if st.st_ino:
            key = ('inode', st.st_dev, st.st_ino)
        else:
            key = ('path', os.path.realpath(path))

        if key in self._visited:
            logger.debug(f"Skipping {path}: already visited (symlink loop)")
            return False
        self._visited.add(key)
        return True

    def _list_subdirectories(self, path: str, is_root: bool) -> List[Tuple[str, bool]]:
        """List the subdirectories to descend into, sorted by name.

        Returns:
            List of (path, is_symlink)
        """
        try:
            with os.scandir(path) as it:
                entries = sorted(it, key=lambda e: e.name)
        except PermissionError as e:
            if is_root:
                raise ScanError(f"cannot read root path {path}: {e}") from e
            logger.debug(f"Skipping {path}: permission denied")
            self.errors.append(f"permission denied: {path}")
            return []
        except OSError as e:
            if is_root:
                raise ScanError(f"cannot read root path {path}: {e}") from e
            logger.debug(f"Skipping {path}: {e}")
            self.errors.append(f"error reading {path}: {e}")
            return []

        children = []
        for entry in entries:
            try:
                if entry.is_symlink():
                    target = self._resolve_symlink(entry.path)
                    if target is not None:
                        children.append((entry.path, True))
                elif entry.is_dir(follow_symlinks=False):
                    children.append((entry.path, False))
            except OSError as e:
                logger.debug(f"Skipping {entry.path}: {e}")
                self.errors.append(f"error checking path {entry.path}: {e}")
        return children

    def _resolve_symlink(self, path: str) -> Optional[str]:
        """Resolve a symlink to a directory inside the scanned tree.

        Broken links are recorded as scan errors. Links to files or to
        directories outside the tree are skipped without following.
        """
        target = os.path.realpath(path)
        if not os.path.exists(target):
            logger.debug(f"Skipping {path}: broken symlink")
            self.errors.append(f"broken symlink: {path}")
            return None
        if not os.path.isdir(target):
            return None
        if not _is_within(target, self._root_real):
            logger.debug(f"Skipping {path}: symlink target {target} is outside the scanned tree")
            return None
        return target


def scan(root_path: str, cancel: Optional[threading.Event] = None) -> ScanOutcome:
    """Scan a directory tree for Git repositories.

    Args:
        root_path: Directory to scan
        cancel: Cooperative cancellation signal

    Returns:
        ScanOutcome for the tree

    Raises:
        ScanError: If the root path is invalid or unreadable
        OperationCancelled: If cancelled during the walk
    """
    return Scanner(root_path, cancel=cancel).scan()
