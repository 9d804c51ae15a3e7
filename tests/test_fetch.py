"""Tests for fetching from origin with retries and backoff."""

import shutil
import threading
import time
from unittest.mock import Mock, patch

import pytest

from gitree.core.errors import GitCommandError, GitTimeoutError, OperationCancelled
from gitree.core.types import FetchStatus
from gitree.gitstatus.fetch import OriginFetcher, calculate_backoff, fetch_origin

requires_git = pytest.mark.skipif(shutil.which("git") is None, reason="git executable not available")

REMOTE_URL = "https://example.com/org/repo.git"


@pytest.mark.parametrize("retry, expected", [
    (1, 0.5),
    (2, 1.0),
    (3, 2.0),
    (4, 4.0),
    (5, 8.0),
    (6, 10.0),
    (10, 10.0),
    (1000, 10.0),
])
def test_calculate_backoff(retry, expected):
    assert calculate_backoff(retry) == pytest.approx(expected)


def test_calculate_backoff_custom_bounds():
    assert calculate_backoff(3, base_delay=1.0, max_delay=3.0) == pytest.approx(3.0)


@pytest.fixture
def fetcher():
    """Fetcher with no backoff delay and a resolvable origin."""
    fetcher = OriginFetcher(credential_provider=Mock(), base_delay=0.0, max_delay=0.0)
    with patch.object(fetcher, "_resolve_origin", return_value=(REMOTE_URL, "")):
        yield fetcher


class TestRetries:
    """Test cases for the retry loop."""

    def test_success_on_first_attempt(self, fetcher):
        with patch.object(fetcher, "_perform_fetch") as perform:
            result = fetcher.fetch_origin("/repo", retries=3)

        assert result.status == FetchStatus.SUCCEEDED
        assert result.attempts == 1
        assert perform.call_count == 1

    def test_transient_failure_is_retried(self, fetcher):
        failures = [GitCommandError(["fetch"], 128, "connection reset"), None]

        with patch.object(fetcher, "_perform_fetch", side_effect=failures) as perform:
            result = fetcher.fetch_origin("/repo", retries=3)

        assert result.succeeded
        assert result.attempts == 2
        assert perform.call_count == 2

    def test_gives_up_after_retries(self, fetcher):
        error = GitCommandError(["fetch"], 128, "could not resolve host")

        with patch.object(fetcher, "_perform_fetch", side_effect=error) as perform:
            result = fetcher.fetch_origin("/repo", retries=3)

        assert result.failed
        assert result.attempts == 3
        assert perform.call_count == 3
        assert result.error.startswith("fetch failed after retries")
        assert "could not resolve host" in result.error

    def test_invalid_retry_count_uses_default(self, fetcher):
        with patch.object(fetcher, "_perform_fetch", side_effect=GitCommandError(["fetch"], 1)) as perform:
            fetcher.fetch_origin("/repo", retries=0)

        assert perform.call_count == 3

    def test_timeout_stops_retrying(self, fetcher):
        with patch.object(fetcher, "_perform_fetch", side_effect=GitTimeoutError(["fetch"], 1.0)) as perform:
            result = fetcher.fetch_origin("/repo", retries=5)

        assert result.failed
        assert perform.call_count == 1
        assert "timed out" in result.error

    def test_cancellation_stops_retrying(self, fetcher):
        with patch.object(fetcher, "_perform_fetch", side_effect=OperationCancelled()) as perform:
            result = fetcher.fetch_origin("/repo", retries=5)

        assert result.failed
        assert result.error == "operation cancelled"
        assert perform.call_count == 1

    def test_already_cancelled(self, fetcher):
        cancel = threading.Event()
        cancel.set()

        with patch.object(fetcher, "_perform_fetch") as perform:
            result = fetcher.fetch_origin("/repo", cancel=cancel)

        assert result.failed
        assert result.attempts == 0
        perform.assert_not_called()

    def test_cancel_during_backoff(self):
        cancel = threading.Event()
        fetcher = OriginFetcher(credential_provider=Mock(), base_delay=30.0, max_delay=30.0)

        def fail_and_cancel(*args, **kwargs):
            cancel.set()
            raise GitCommandError(["fetch"], 128, "connection reset")

        with patch.object(fetcher, "_resolve_origin", return_value=(REMOTE_URL, "")), \
                patch.object(fetcher, "_perform_fetch", side_effect=fail_and_cancel) as perform:
            start = time.monotonic()
            result = fetcher.fetch_origin("/repo", retries=3, cancel=cancel)

        assert time.monotonic() - start < 5.0
        assert result.error == "operation cancelled"
        assert perform.call_count == 1


class TestSkips:
    """Test cases for repositories that cannot be fetched."""

    def test_skip_reason_is_reported(self):
        fetcher = OriginFetcher(credential_provider=Mock())

        with patch.object(fetcher, "_resolve_origin", return_value=(None, "no origin remote")), \
                patch.object(fetcher, "_perform_fetch") as perform:
            result = fetcher.fetch_origin("/repo")

        assert result.skipped
        assert result.message == "no origin remote"
        assert result.error is None
        perform.assert_not_called()

    def test_unreadable_repository_fails(self, tmp_path):
        result = fetch_origin(str(tmp_path / "missing"), credential_provider=Mock())

        assert result.failed
        assert result.error.startswith("failed to open repository")


@requires_git
class TestFetchWithGit:
    """Test cases against real repositories and local remotes."""

    def test_no_origin_is_skipped(self, tmp_path, git):
        repo = git.init_repo(tmp_path / "local")

        result = fetch_origin(str(repo), credential_provider=Mock())

        assert result.skipped
        assert result.message == "no origin remote"

    def test_broken_repository_does_not_fetch_enclosing_repository(self, tmp_path, git):
        outer = git.repo_with_origin(tmp_path, name="outer")
        broken = outer / "projects" / "broken"
        (broken / ".git").mkdir(parents=True)

        result = fetch_origin(str(broken), credential_provider=Mock())

        assert result.failed
        assert result.error.startswith("failed to open repository")
        assert not (outer / ".git" / "FETCH_HEAD").exists()

    def test_other_remote_only_is_skipped(self, tmp_path, git):
        repo = git.init_repo(tmp_path / "local")
        git.run(repo, "remote", "add", "upstream", str(tmp_path / "upstream.git"))

        result = fetch_origin(str(repo), credential_provider=Mock())

        assert result.skipped

    def test_bare_repository_is_skipped(self, tmp_path, git):
        bare = git.init_bare(tmp_path / "repo.git")

        result = fetch_origin(str(bare), credential_provider=Mock())

        assert result.skipped
        assert result.message == "bare repository"

    def test_fetch_updates_tracking_branch(self, tmp_path, git):
        work = git.repo_with_origin(tmp_path)
        other = git.clone(tmp_path / "work-origin.git", tmp_path / "other")
        git.commit(other, "remote.txt")
        git.run(other, "push", "-q", "origin", "main")
        provider = Mock()

        result = fetch_origin(str(work), credential_provider=provider)

        assert result.succeeded
        assert result.attempts == 1
        assert git.run(work, "rev-parse", "origin/main") == git.run(other, "rev-parse", "HEAD")
        # Local paths are not HTTPS, so no credential lookup happens
        provider.resolve.assert_not_called()

    def test_up_to_date_is_success(self, tmp_path, git):
        work = git.repo_with_origin(tmp_path)

        first = fetch_origin(str(work), credential_provider=Mock())
        second = fetch_origin(str(work), credential_provider=Mock())

        assert first.succeeded
        assert second.succeeded

    def test_unreachable_origin_fails(self, tmp_path, git):
        repo = git.init_repo(tmp_path / "local")
        git.run(repo, "remote", "add", "origin", str(tmp_path / "does-not-exist.git"))
        fetcher = OriginFetcher(credential_provider=Mock(), base_delay=0.0, max_delay=0.0)

        result = fetcher.fetch_origin(str(repo), retries=2)

        assert result.failed
        assert result.attempts == 2
        assert result.error.startswith("fetch failed after retries")
