"""Clean/needs-attention classification of scanned repositories."""

from typing import List, Optional

from .core import STANDARD_STATUS
from ..core.types import RepositoryRecord


def is_clean(record: Optional[RepositoryRecord]) -> bool:
    """Determine if a repository is in a clean state.

    A missing record or a record without status is unknown, and unknown is
    never clean. Otherwise every condition of ``STANDARD_STATUS`` must hold.

    Args:
        record: Repository record, possibly without status

    Returns:
        True if the repository needs no attention
    """
    if record is None or record.status is None:
        return False
    return record.status.is_standard()


def attention_reasons(record: Optional[RepositoryRecord]) -> List[str]:
    """List why a repository needs attention (empty when clean)."""
    if record is None or record.status is None:
        return ["Status unknown"]
    return STANDARD_STATUS.failures(record.status)


def filter_repositories(
    records: List[RepositoryRecord],
    show_all: bool = False
) -> List[RepositoryRecord]:
    """Filter the repository list for display.

    By default only repositories needing attention are kept. With
    ``show_all`` the input list is returned unchanged. Order is preserved
    and the input list is never modified.

    Args:
        records: Scanned repository records
        show_all: Keep clean repositories too

    Returns:
        Filtered list of records
    """
    if show_all:
        return records
    return [r for r in records if not is_clean(r)]
