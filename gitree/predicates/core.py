"""Status predicates that decide whether a repository needs attention."""

from typing import Iterable, Tuple, TYPE_CHECKING

from .base import Predicate, all_of
from ..core.types import STANDARD_BRANCHES

if TYPE_CHECKING:
    from ..core.types import StatusSnapshot


class NoStatusError(Predicate):
    """Status was extracted without any error."""

    def check(self, status: 'StatusSnapshot') -> Tuple[bool, str]:
        if status.status_error is not None:
            return False, f"Status error: {status.status_error}"
        return True, "No status error"


class OnBranch(Predicate):
    """Current branch is one of the given names."""

    def __init__(self, branches: Iterable[str]):
        """Initialize with accepted branch names.

        Args:
            branches: Branch names that pass the check
        """
        self.branches = tuple(branches)

    def check(self, status: 'StatusSnapshot') -> Tuple[bool, str]:
        if status.branch in self.branches:
            return True, f"On branch {status.branch}"
        return False, f"On branch {status.branch}, not {'/'.join(self.branches)}"


class NoUncommittedChanges(Predicate):
    """Working tree has no uncommitted changes."""

    def check(self, status: 'StatusSnapshot') -> Tuple[bool, str]:
        if status.has_changes:
            return False, "Has uncommitted changes"
        return True, "Working tree is clean"


class NoStashes(Predicate):
    """Repository has no stashed changes."""

    def check(self, status: 'StatusSnapshot') -> Tuple[bool, str]:
        if status.has_stashes:
            return False, "Has stashed changes"
        return True, "No stashes"


class HasRemote(Predicate):
    """At least one remote is configured."""

    def check(self, status: 'StatusSnapshot') -> Tuple[bool, str]:
        if status.has_remote:
            return True, "Remote configured"
        return False, "No remote tracking"


class NotAhead(Predicate):
    """No local commits missing from the remote."""

    def check(self, status: 'StatusSnapshot') -> Tuple[bool, str]:
        if status.ahead > 0:
            return False, f"Unpushed changes (ahead {status.ahead})"
        return True, "Not ahead of remote"


class NotBehind(Predicate):
    """No remote commits missing locally."""

    def check(self, status: 'StatusSnapshot') -> Tuple[bool, str]:
        if status.behind > 0:
            return False, f"Unpulled changes (behind {status.behind})"
        return True, "Not behind remote"


class NotDetached(Predicate):
    """HEAD points to a named branch."""

    def check(self, status: 'StatusSnapshot') -> Tuple[bool, str]:
        if status.is_detached:
            return False, "Detached HEAD"
        return True, "HEAD on a branch"


# A status that needs no attention
STANDARD_STATUS = all_of(
    NoStatusError(),
    OnBranch(STANDARD_BRANCHES),
    NoUncommittedChanges(),
    NoStashes(),
    HasRemote(),
    NotAhead(),
    NotBehind(),
    NotDetached(),
)
