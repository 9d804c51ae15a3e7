"""Bounded-concurrency status/fetch coordinator for many repositories."""

import logging
import threading
from concurrent.futures import ThreadPoolExecutor, as_completed
from dataclasses import dataclass
from typing import Callable, Dict, List, Optional

from .types import BatchOutcome, FetchResult, FetchSummary, RepositoryRecord, StatusSnapshot
from ..gitstatus.fetch import DEFAULT_FETCH_RETRIES, OriginFetcher
from ..gitstatus.status import DEFAULT_EXTRACT_TIMEOUT, StatusExtractor

logger = logging.getLogger('gitree')

DEFAULT_CONCURRENCY = 50


@dataclass
class BatchOptions:
    """Options for one batch run."""
    fetch: bool = False
    timeout: Optional[float] = DEFAULT_EXTRACT_TIMEOUT
    fetch_retries: int = DEFAULT_FETCH_RETRIES
    fetch_timeout: Optional[float] = None  # None = same as timeout

    @property
    def attempt_timeout(self) -> Optional[float]:
        return self.timeout if self.fetch_timeout is None else self.fetch_timeout


@dataclass
class UnitResult:
    """What one unit of work reports back to the coordinator."""
    record: RepositoryRecord
    status: Optional[StatusSnapshot]
    fetch: Optional[FetchResult] = None


class BatchCoordinator:
    """Runs fetch and status extraction across repositories.

    One unit of work is submitted per repository into a thread pool whose
    size is the concurrency limit, so at most that many units are in flight.
    Units never touch shared state: they hand their result back through
    their future, and all counters and the status map are written by the
    coordinator only after every unit has finished.
    """

    def __init__(
        self,
        extractor: Optional[StatusExtractor] = None,
        fetcher: Optional[OriginFetcher] = None
    ):
        """Initialize coordinator.

        Args:
            extractor: Status extractor (default: StatusExtractor())
            fetcher: Origin fetcher (default: OriginFetcher())
        """
        self.extractor = extractor or StatusExtractor()
        self.fetcher = fetcher or OriginFetcher()

    def run_batch(
        self,
        repositories: List[RepositoryRecord],
        concurrency_limit: int = DEFAULT_CONCURRENCY,
        options: Optional[BatchOptions] = None,
        cancel: Optional[threading.Event] = None,
        on_result: Optional[Callable[[RepositoryRecord, StatusSnapshot], None]] = None
    ) -> BatchOutcome:
        """Compute status (and optionally fetch) for every repository.

        Records receive their status during aggregation. Units not yet
        started when ``cancel`` fires contribute nothing; units in flight
        return their partial result.

        Args:
            repositories: Records produced by the scanner
            concurrency_limit: Maximum number of units in flight (>= 1)
            options: Batch options (default: BatchOptions())
            cancel: Cooperative cancellation signal for the whole batch
            on_result: Called in the coordinating thread as each unit completes

        Returns:
            BatchOutcome with the status map and counters

        Raises:
            ValueError: If concurrency_limit is below 1
        """
        if concurrency_limit < 1:
            raise ValueError(f"concurrency limit must be at least 1, got {concurrency_limit}")

        options = options or BatchOptions()
        cancel = cancel or threading.Event()

        # Paths are unique keys
        unique: Dict[str, RepositoryRecord] = {}
        for record in repositories:
            if record is not None:
                unique.setdefault(record.path, record)

        logger.debug(
            f"Processing {len(unique)} repositories with up to {concurrency_limit} workers "
            f"(fetch={'on' if options.fetch else 'off'})"
        )

        results: List[UnitResult] = []
        if unique:
            with ThreadPoolExecutor(max_workers=min(concurrency_limit, len(unique))) as executor:
                futures = [
                    executor.submit(self._process_repository, record, options, cancel)
                    for record in unique.values()
                ]
                try:
                    for future in as_completed(futures):
                        result = future.result()
                        results.append(result)
                        if on_result is not None and result.status is not None:
                            on_result(result.record, result.status)
                except BaseException:
                    # Let in-flight units wind down instead of blocking shutdown
                    cancel.set()
                    raise

        return self._aggregate(results, options)

    def _process_repository(
        self,
        record: RepositoryRecord,
        options: BatchOptions,
        cancel: threading.Event
    ) -> UnitResult:
        """Fetch (optionally) then extract status for one repository."""
        if cancel.is_set():
            return UnitResult(record=record, status=None)

        try:
            fetch_result = None
            if options.fetch:
                if record.is_bare:
                    fetch_result = FetchResult.skip("bare repository")
                else:
                    fetch_result = self.fetcher.fetch_origin(
                        record.path,
                        retries=options.fetch_retries,
                        attempt_timeout=options.attempt_timeout,
                        cancel=cancel,
                    )

            # Status is computed from local state whatever the fetch outcome
            status = self.extractor.extract(record.path, timeout=options.timeout, cancel=cancel)
            if fetch_result is not None and fetch_result.failed:
                status.fetch_error = fetch_result.error
            return UnitResult(record=record, status=status, fetch=fetch_result)
        except Exception as e:
            logger.error(f"Unexpected error processing {record.path}: {e}")
            return UnitResult(record=record, status=StatusSnapshot.failed(f"unexpected error: {e}"))

    def _aggregate(self, results: List[UnitResult], options: BatchOptions) -> BatchOutcome:
        """Build the outcome; the only place shared counters are written."""
        outcome = BatchOutcome(fetch_summary=FetchSummary() if options.fetch else None)

        for result in results:
            if result.status is None:
                continue

            path = result.record.path
            outcome.statuses[path] = result.status
            result.record.status = result.status

            if result.status.status_error is None:
                outcome.success_count += 1
            else:
                outcome.failure_count += 1
                outcome.failed_repos.append(path)
                result.record.error = result.status.status_error

            if outcome.fetch_summary is not None and result.fetch is not None:
                outcome.fetch_summary.record(path, result.fetch)

        outcome.failed_repos.sort()
        if outcome.fetch_summary is not None:
            outcome.fetch_summary.failed_repos.sort()

        logger.debug(
            f"Batch complete: {outcome.success_count} succeeded, {outcome.failure_count} failed"
        )
        return outcome


def run_batch(
    repositories: List[RepositoryRecord],
    concurrency_limit: int = DEFAULT_CONCURRENCY,
    options: Optional[BatchOptions] = None,
    cancel: Optional[threading.Event] = None
) -> BatchOutcome:
    """Run a batch with the default extractor and fetcher."""
    return BatchCoordinator().run_batch(repositories, concurrency_limit, options=options, cancel=cancel)
