"""Shared fixtures for the gitree test suite."""

import os
import subprocess
from pathlib import Path

import pytest



class GitHelper:
    """Builds throw-away repositories with the real git binary."""

    def run(self, path, *args) -> str:
        result = subprocess.run(
            ["git", *args],
            cwd=str(path),
            capture_output=True,
            text=True,
            check=True,
        )
        return result.stdout

    def configure(self, path) -> None:
        self.run(path, "config", "user.name", "Test User")
        self.run(path, "config", "user.email", "test@example.com")
        self.run(path, "config", "commit.gpgsign", "false")

    def init_repo(self, path, branch: str = "main", commit: bool = True) -> Path:
        path = Path(path)
        path.mkdir(parents=True, exist_ok=True)
        self.run(path, "init", "-q")
        self.run(path, "symbolic-ref", "HEAD", f"refs/heads/{branch}")
        self.configure(path)
        if commit:
            self.commit(path, "README.md", "initial\n", "Initial commit")
        return path

    def init_bare(self, path, branch: str = "main") -> Path:
        path = Path(path)
        path.mkdir(parents=True, exist_ok=True)
        self.run(path, "init", "-q", "--bare")
        self.run(path, "symbolic-ref", "HEAD", f"refs/heads/{branch}")
        return path

    def commit(self, path, filename: str = "file.txt", content: str = None, message: str = None) -> None:
        target = Path(path) / filename
        existing = target.read_text() if target.exists() else ""
        target.write_text(content if content is not None else existing + "change\n")
        self.run(path, "add", filename)
        self.run(path, "commit", "-q", "-m", message or f"Update {filename}")

    def clone(self, source, dest) -> Path:
        self.run(Path(dest).parent, "clone", "-q", str(source), str(dest))
        self.configure(dest)
        return Path(dest)

    def repo_with_origin(self, base, name: str = "work", remote_base=None) -> Path:
        """Repository on main, pushed to a local bare origin and in sync with it."""
        base = Path(base)
        remote = self.init_bare(Path(remote_base or base) / f"{name}-origin.git")
        work = self.init_repo(base / name)
        self.run(work, "remote", "add", "origin", str(remote))
        self.run(work, "push", "-q", "-u", "origin", "main")
        return work


@pytest.fixture(autouse=True)
def isolated_environment(tmp_path_factory, monkeypatch):
    """Keep the user's git config and gitree settings out of the tests."""
    home = tmp_path_factory.mktemp("home")
    monkeypatch.setenv("HOME", str(home))
    monkeypatch.setenv("XDG_CONFIG_HOME", str(home / ".config"))
    monkeypatch.setenv("GIT_CONFIG_NOSYSTEM", "1")
    for var in (
        "GIT_CONFIG_GLOBAL",
        "GIT_DIR",
        "GIT_WORK_TREE",
        "GITREE_MAX_CONCURRENT",
        "GITREE_TIMEOUT",
        "GITREE_FETCH_RETRIES",
        "GITREE_NO_FETCH",
        "NO_COLOR",
    ):
        monkeypatch.delenv(var, raising=False)


@pytest.fixture
def git():
    """Helper for building repositories."""
    return GitHelper()


@pytest.fixture
def skip_if_root():
    if hasattr(os, "geteuid") and os.geteuid() == 0:
        pytest.skip("permission checks are bypassed for root")
