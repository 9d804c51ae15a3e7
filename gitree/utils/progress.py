"""Progress tracking utilities."""

import sys
import logging
from typing import Optional, TextIO

from ..core.types import BatchOutcome, RepositoryRecord, ScanOutcome, StatusSnapshot

logger = logging.getLogger('gitree')


class ProgressTracker:
    """Track and display status extraction progress on stderr."""

    def __init__(self, total: int, operation_name: str = "status", stream: Optional[TextIO] = None):
        """Initialize progress tracker.

        Args:
            total: Total number of repositories to process
            operation_name: Name of the operation being performed
            stream: Output stream (default: sys.stderr)
        """
        self.total = total
        self.operation_name = operation_name
        self.stream = stream or sys.stderr
        self.completed = 0
        self.clean_count = 0
        self.attention_count = 0
        self.error_count = 0
        self.current_repo: Optional[str] = None

    def update(self, record: RepositoryRecord, status: StatusSnapshot) -> None:
        """Update progress with a completed repository.

        Args:
            record: Repository that finished
            status: Its extracted status
        """
        self.current_repo = record.name
        self.completed += 1

        if status.status_error is not None:
            self.error_count += 1
        elif status.is_standard():
            self.clean_count += 1
        else:
            self.attention_count += 1

        self.display()

    def display(self) -> None:
        """Display current progress."""
        percentage = (self.completed / self.total * 100) if self.total > 0 else 0

        bar_width = 20
        filled = int(bar_width * self.completed / self.total) if self.total > 0 else 0
        bar = '█' * filled + '░' * (bar_width - filled)

        # Clear the line first; repository names vary in length
        status = f"\r\033[K[{bar}] {percentage:.0f}% ({self.completed}/{self.total}) "
        if self.current_repo:
            status += f"Last: {self.current_repo} "
        status += f"✓{self.clean_count} !{self.attention_count} ✗{self.error_count}"

        self.stream.write(status)
        self.stream.flush()

    def finish(self) -> None:
        """Finish progress tracking."""
        # Clear the progress line so the summary starts on a fresh one
        self.stream.write("\r\033[K")
        self.stream.flush()

        logger.debug(f"Completed {self.operation_name} for {self.completed}/{self.total} repositories")
        logger.debug(f"Clean: {self.clean_count}, Attention: {self.attention_count}, "
                     f"Errors: {self.error_count}")


def print_summary(
    scan_outcome: ScanOutcome,
    batch_outcome: Optional[BatchOutcome] = None,
    stream: Optional[TextIO] = None
) -> None:
    """Print scan and fetch statistics.

    Args:
        scan_outcome: Result of the directory scan
        batch_outcome: Result of the status batch, if one ran
        stream: Output stream (default: sys.stderr)
    """
    out = stream or sys.stderr

    print(file=out)
    print(f"Scanned: {scan_outcome.total_directories_visited} folders", file=out)
    print(f"Found: {scan_outcome.total_repositories_found} repositories", file=out)

    summary = batch_outcome.fetch_summary if batch_outcome is not None else None
    if summary is not None and (summary.attempted > 0 or summary.skipped > 0):
        print(
            f"Fetch: {summary.attempted} attempted, {summary.succeeded} successful, "
            f"{summary.skipped} skipped, {summary.failed} failed",
            file=out
        )

        if summary.failed_repos:
            print("Fetch failures:", file=out)
            for path in summary.failed_repos:
                status = batch_outcome.statuses.get(path)
                reason = status.fetch_error if status is not None else None
                if reason:
                    print(f"  - {path}: {reason}", file=out)
                else:
                    print(f"  - {path}", file=out)

    if scan_outcome.errors:
        print(f"Scan warnings: {len(scan_outcome.errors)}", file=out)
        for error in scan_outcome.errors:
            print(f"  - {error}", file=out)
