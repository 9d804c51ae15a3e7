"""Utilities package for gitree."""

from .git import (
    GitResult,
    Deadline,
    git_environment,
    repository_environment,
    run_git,
)

from .progress import ProgressTracker, print_summary

__all__ = [
    'GitResult',
    'Deadline',
    'git_environment',
    'repository_environment',
    'run_git',
    'ProgressTracker',
    'print_summary',
]
