"""Tests for the batch coordinator."""

import shutil
import threading
import time
from unittest.mock import Mock, patch

import pytest

from gitree.core.batch import BatchCoordinator, BatchOptions, run_batch
from gitree.core.errors import GitTimeoutError
from gitree.core.types import FetchResult, FetchStatus, RepositoryRecord, StatusSnapshot
from gitree.gitstatus import status as status_module
from gitree.gitstatus.status import StatusExtractor

requires_git = pytest.mark.skipif(shutil.which("git") is None, reason="git executable not available")


class FakeExtractor:
    """Extractor that records concurrency and returns canned statuses."""

    def __init__(self, delay=0.0, statuses=None):
        self.delay = delay
        self.statuses = statuses or {}
        self.calls = []
        self.in_flight = 0
        self.max_in_flight = 0
        self._lock = threading.Lock()

    def extract(self, repo_path, timeout=None, cancel=None):
        with self._lock:
            self.calls.append(repo_path)
            self.in_flight += 1
            self.max_in_flight = max(self.max_in_flight, self.in_flight)
        try:
            time.sleep(self.delay)
            status = self.statuses.get(repo_path)
            if isinstance(status, Exception):
                raise status
            return status or StatusSnapshot(branch="main", has_remote=True)
        finally:
            with self._lock:
                self.in_flight -= 1


def records(count, prefix="/work/repo"):
    return [RepositoryRecord(path=f"{prefix}{i}", name=f"repo{i}") for i in range(count)]


class TestBatchCoordinator:
    """Test cases for BatchCoordinator."""

    def test_empty_input(self):
        outcome = BatchCoordinator(extractor=FakeExtractor()).run_batch([])

        assert outcome.statuses == {}
        assert outcome.success_count == 0
        assert outcome.failure_count == 0
        assert outcome.fetch_summary is None

    def test_every_repository_gets_a_status(self):
        repos = records(5)

        outcome = BatchCoordinator(extractor=FakeExtractor()).run_batch(repos, concurrency_limit=2)

        assert set(outcome.statuses) == {r.path for r in repos}
        assert outcome.success_count == 5
        assert all(r.status is outcome.statuses[r.path] for r in repos)

    def test_concurrency_limit_is_respected(self):
        extractor = FakeExtractor(delay=0.02)

        outcome = BatchCoordinator(extractor=extractor).run_batch(records(20), concurrency_limit=3)

        assert len(outcome.statuses) == 20
        assert 1 <= extractor.max_in_flight <= 3

    def test_invalid_concurrency_limit(self):
        with pytest.raises(ValueError):
            BatchCoordinator(extractor=FakeExtractor()).run_batch(records(1), concurrency_limit=0)

    def test_duplicate_paths_are_processed_once(self):
        extractor = FakeExtractor()
        repo = RepositoryRecord(path="/work/repo", name="repo")

        outcome = BatchCoordinator(extractor=extractor).run_batch([repo, repo])

        assert extractor.calls == ["/work/repo"]
        assert len(outcome.statuses) == 1

    def test_status_errors_are_counted(self):
        repos = records(3)
        extractor = FakeExtractor(statuses={repos[1].path: StatusSnapshot.failed("timeout")})

        outcome = BatchCoordinator(extractor=extractor).run_batch(repos)

        assert outcome.success_count == 2
        assert outcome.failure_count == 1
        assert outcome.failed_repos == [repos[1].path]
        assert repos[1].error == "timeout"

    def test_unexpected_exception_becomes_error_status(self):
        repos = records(2)
        extractor = FakeExtractor(statuses={repos[0].path: RuntimeError("kaboom")})

        outcome = BatchCoordinator(extractor=extractor).run_batch(repos)

        assert outcome.statuses[repos[0].path].status_error == "unexpected error: kaboom"
        assert outcome.success_count == 1
        assert outcome.failure_count == 1

    def test_fetch_failure_is_recorded_and_status_still_computed(self):
        repos = records(2)
        fetcher = Mock()
        fetcher.fetch_origin.side_effect = [
            FetchResult(status=FetchStatus.FAILED, error="fetch failed after retries: boom", attempts=3),
            FetchResult(status=FetchStatus.FAILED, error="fetch failed after retries: boom", attempts=3),
        ]

        outcome = BatchCoordinator(extractor=FakeExtractor(), fetcher=fetcher).run_batch(
            repos, options=BatchOptions(fetch=True)
        )

        for repo in repos:
            status = outcome.statuses[repo.path]
            assert status.branch == "main"
            assert status.fetch_error == "fetch failed after retries: boom"
        assert outcome.fetch_summary.attempted == 2
        assert outcome.fetch_summary.failed == 2
        assert outcome.fetch_summary.failed_repos == sorted(r.path for r in repos)

    def test_fetch_options_are_passed_through(self):
        fetcher = Mock()
        fetcher.fetch_origin.return_value = FetchResult(status=FetchStatus.SUCCEEDED, attempts=1)
        options = BatchOptions(fetch=True, timeout=4.0, fetch_retries=5, fetch_timeout=2.0)

        outcome = BatchCoordinator(extractor=FakeExtractor(), fetcher=fetcher).run_batch(
            records(1), options=options
        )

        _, kwargs = fetcher.fetch_origin.call_args
        assert kwargs["retries"] == 5
        assert kwargs["attempt_timeout"] == 2.0
        assert outcome.fetch_summary.succeeded == 1

    def test_bare_repository_is_not_fetched(self):
        fetcher = Mock()
        bare = RepositoryRecord(path="/srv/repo.git", name="repo.git", is_bare=True)

        outcome = BatchCoordinator(extractor=FakeExtractor(), fetcher=fetcher).run_batch(
            [bare], options=BatchOptions(fetch=True)
        )

        fetcher.fetch_origin.assert_not_called()
        assert outcome.fetch_summary.skipped == 1
        assert outcome.fetch_summary.attempted == 0

    def test_no_fetch_means_no_summary(self):
        fetcher = Mock()

        outcome = BatchCoordinator(extractor=FakeExtractor(), fetcher=fetcher).run_batch(records(2))

        fetcher.fetch_origin.assert_not_called()
        assert outcome.fetch_summary is None

    def test_cancelled_before_start(self):
        extractor = FakeExtractor()
        cancel = threading.Event()
        cancel.set()

        outcome = BatchCoordinator(extractor=extractor).run_batch(records(4), cancel=cancel)

        assert extractor.calls == []
        assert outcome.statuses == {}

    def test_on_result_callback(self):
        seen = []

        BatchCoordinator(extractor=FakeExtractor()).run_batch(
            records(3), on_result=lambda record, status: seen.append(record.name)
        )

        assert sorted(seen) == ["repo0", "repo1", "repo2"]


@requires_git
class TestBatchWithGit:
    """End-to-end batch runs over real repositories."""

    def test_missing_origin_is_skipped_without_fetch_error(self, tmp_path, git):
        repo = git.init_repo(tmp_path / "local")
        record = RepositoryRecord(path=str(repo), name="local")

        outcome = run_batch([record], options=BatchOptions(fetch=True))

        summary = outcome.fetch_summary
        assert summary.skipped == 1
        assert summary.attempted == 0
        assert outcome.statuses[str(repo)].fetch_error is None
        assert outcome.statuses[str(repo)].branch == "main"

    def test_timed_out_repository_does_not_block_others(self, tmp_path, git):
        fast = [git.init_repo(tmp_path / f"fast{i}") for i in range(3)]
        slow = git.init_repo(tmp_path / "slow")
        repos = [RepositoryRecord(path=str(p), name=p.name) for p in fast + [slow]]
        real_run_git = status_module.run_git

        def hang_on_slow(args, cwd=None, timeout=None, **kwargs):
            if cwd == str(slow):
                time.sleep(timeout)
                raise GitTimeoutError(args, timeout)
            return real_run_git(args, cwd=cwd, timeout=timeout, **kwargs)

        coordinator = BatchCoordinator(extractor=StatusExtractor())
        with patch.object(status_module, "run_git", side_effect=hang_on_slow):
            outcome = coordinator.run_batch(
                repos, concurrency_limit=4, options=BatchOptions(timeout=2.0)
            )

        slow_status = outcome.statuses[str(slow)]
        assert slow_status.branch == "N/A"
        assert slow_status.status_error == "timeout"
        for repo in fast:
            assert outcome.statuses[str(repo)].branch == "main"
            assert outcome.statuses[str(repo)].status_error is None
        assert outcome.failure_count == 1
        assert outcome.success_count == 3
