"""Tests for the command line interface."""

import shutil

import pytest

from gitree import __version__
from gitree.__main__ import (
    ALL_CLEAN_MESSAGE,
    NO_REPOSITORIES_MESSAGE,
    SHOW_ALL_HINT,
    create_parser,
    main,
)

requires_git = pytest.mark.skipif(shutil.which("git") is None, reason="git executable not available")


class TestParser:
    """Test cases for argument parsing."""

    def test_defaults(self):
        args = create_parser().parse_args([])

        assert args.directory is None
        assert not args.show_all
        assert not args.no_fetch
        assert args.max_concurrent is None
        assert not args.debug

    def test_short_flags(self):
        args = create_parser().parse_args(["src", "-a", "-c", "4"])

        assert args.directory == "src"
        assert args.show_all
        assert args.max_concurrent == 4

    def test_version(self, capsys):
        with pytest.raises(SystemExit) as exc_info:
            main(["--version"])

        assert exc_info.value.code == 0
        assert __version__ in capsys.readouterr().out


class TestMain:
    """Test cases for main()."""

    def test_empty_directory(self, tmp_path, capsys):
        exit_code = main([str(tmp_path), "--no-fetch"])

        captured = capsys.readouterr()
        assert exit_code == 0
        assert NO_REPOSITORIES_MESSAGE in captured.out
        assert "Scanned: 1 folders" in captured.err
        assert "Found: 0 repositories" in captured.err

    def test_missing_directory(self, tmp_path):
        assert main([str(tmp_path / "missing"), "--no-fetch"]) == 1

    def test_invalid_configuration(self, tmp_path):
        assert main([str(tmp_path), "--max-concurrent", "0"]) == 1

    def test_keyboard_interrupt(self, tmp_path, monkeypatch):
        def interrupted(config, cancel):
            raise KeyboardInterrupt

        monkeypatch.setattr("gitree.__main__.run", interrupted)

        assert main([str(tmp_path)]) == 130

    @requires_git
    def test_all_clean(self, tmp_path, git, capsys):
        git.repo_with_origin(tmp_path / "projects", remote_base=tmp_path)

        exit_code = main([str(tmp_path / "projects"), "--no-fetch"])

        captured = capsys.readouterr()
        assert exit_code == 0
        assert ALL_CLEAN_MESSAGE in captured.out
        assert SHOW_ALL_HINT in captured.out
        assert "Found: 1 repositories" in captured.err

    @requires_git
    def test_repository_needing_attention(self, tmp_path, git, capsys):
        projects = tmp_path / "projects"
        git.repo_with_origin(projects, name="clean", remote_base=tmp_path)
        dirty = git.repo_with_origin(projects, name="dirty", remote_base=tmp_path)
        (dirty / "scratch.txt").write_text("new\n")

        exit_code = main([str(projects), "--no-fetch", "--no-color"])

        out = capsys.readouterr().out
        assert exit_code == 0
        assert "└── dirty [[ main | * ]]" in out
        assert "clean [[" not in out

    @requires_git
    def test_show_all(self, tmp_path, git, capsys):
        projects = tmp_path / "projects"
        git.repo_with_origin(projects, name="clean", remote_base=tmp_path)

        exit_code = main([str(projects), "--all", "--no-fetch", "--no-color"])

        out = capsys.readouterr().out
        assert exit_code == 0
        assert "clean [[ main ]]" in out

    @requires_git
    def test_fetch_statistics(self, tmp_path, git, capsys):
        projects = tmp_path / "projects"
        git.repo_with_origin(projects, name="synced", remote_base=tmp_path)
        git.init_repo(projects / "local")

        exit_code = main([str(projects), "--all", "--no-color"])

        err = capsys.readouterr().err
        assert exit_code == 0
        assert "Fetch: 1 attempted, 1 successful, 1 skipped, 0 failed" in err
