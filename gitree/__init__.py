"""gitree: find Git repositories under a directory and report their status."""

__version__ = "0.1.0"
