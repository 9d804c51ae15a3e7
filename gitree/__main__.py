"""Main entry point for the gitree CLI."""

from dotenv import load_dotenv
load_dotenv()

import sys
import argparse
import logging
import threading
from typing import List, Optional, TextIO

from . import __version__
from .config import Config
from .core.batch import BatchCoordinator, BatchOptions
from .core.errors import OperationCancelled, ScanError, ValidationError
from .core.logger import setup_logging
from .core.scanner import Scanner
from .predicates import attention_reasons, filter_repositories
from .render import build_tree, format_tree, validate_tree
from .utils.progress import ProgressTracker, print_summary

# Upper bound for a whole run; fires the same cancellation signal as Ctrl-C
OVERALL_TIMEOUT = 300.0

NO_REPOSITORIES_MESSAGE = "No Git repositories found in this directory."
ALL_CLEAN_MESSAGE = (
    "All repositories are in clean state (on main/master, in sync with remote, no changes)."
)
SHOW_ALL_HINT = "Use --all flag to show all repositories including clean ones."


def create_parser() -> argparse.ArgumentParser:
    """Create CLI argument parser.

    Returns:
        Configured ArgumentParser
    """
    parser = argparse.ArgumentParser(
        prog='gitree',
        description='Recursively scan directories for Git repositories and display them '
                    'in a tree structure with status information',
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
By default gitree fetches from the origin remote before computing ahead/behind
counts, and only repositories that need attention are shown.

Examples:
  # Repositories under the current directory that need attention
  gitree

  # Every repository under ~/src, without touching the network
  gitree ~/src --all --no-fetch

  # Limit parallelism and allow slow remotes more time
  gitree -c 8 --timeout 30
        """
    )

    parser.add_argument(
        'directory',
        nargs='?',
        help='Directory to scan (default: current directory)'
    )
    parser.add_argument(
        '--version', '-v',
        action='version',
        version=f'gitree {__version__}'
    )

    display_group = parser.add_argument_group('display')
    display_group.add_argument(
        '--all', '-a',
        action='store_true',
        dest='show_all',
        help='Show all repositories, including clean ones'
    )
    display_group.add_argument(
        '--no-color',
        action='store_true',
        help='Disable colored output (also set by NO_COLOR)'
    )

    exec_group = parser.add_argument_group('execution control')
    exec_group.add_argument(
        '--no-fetch',
        action='store_true',
        help='Do not fetch from origin before computing status'
    )
    exec_group.add_argument(
        '--max-concurrent', '-c',
        type=int,
        metavar='N',
        help='Repositories processed in parallel (default: 50)'
    )
    exec_group.add_argument(
        '--timeout',
        type=float,
        metavar='SECONDS',
        help='Time budget per repository (default: 10)'
    )
    exec_group.add_argument(
        '--retries',
        type=int,
        metavar='N',
        help='Fetch attempts per repository (default: 3)'
    )

    log_group = parser.add_argument_group('logging')
    log_group.add_argument(
        '--debug',
        action='store_true',
        help='Print debug information to stderr (disables the progress bar)'
    )
    log_group.add_argument(
        '--log-file',
        metavar='PATH',
        help='Also write logs to this file'
    )

    return parser


def run(
    config: Config,
    cancel: threading.Event,
    out: Optional[TextIO] = None,
    err: Optional[TextIO] = None
) -> int:
    """Scan, compute statuses, and print the tree and summary.

    Args:
        config: Run configuration
        cancel: Cancellation signal shared by every stage
        out: Stream for the tree (default: sys.stdout)
        err: Stream for progress and summary (default: sys.stderr)

    Returns:
        Exit code

    Raises:
        ScanError: If the root path cannot be scanned
        OperationCancelled: If cancelled during the scan
    """
    out = out or sys.stdout
    err = err or sys.stderr
    logger = logging.getLogger('gitree')

    scan_outcome = Scanner(config.root_path, cancel).scan()
    _warn_invalid("Scan result", scan_outcome)

    if not scan_outcome.repositories:
        print(NO_REPOSITORIES_MESSAGE, file=out)
        print_summary(scan_outcome, None, stream=err)
        return 0

    logger.debug(
        f"{'Fetching and extracting' if config.fetch else 'Extracting'} Git status "
        f"for {len(scan_outcome.repositories)} repositories"
    )

    progress = None
    if not config.debug:
        progress = ProgressTracker(len(scan_outcome.repositories), stream=err)

    options = BatchOptions(
        fetch=config.fetch,
        timeout=config.timeout,
        fetch_retries=config.fetch_retries
    )
    batch_outcome = BatchCoordinator().run_batch(
        scan_outcome.repositories,
        concurrency_limit=config.max_concurrent,
        options=options,
        cancel=cancel,
        on_result=progress.update if progress is not None else None
    )

    if progress is not None:
        progress.finish()

    for record in scan_outcome.repositories:
        _warn_invalid(f"Repository {record.path}", record)

    visible = filter_repositories(scan_outcome.repositories, show_all=config.show_all)
    if logger.isEnabledFor(logging.DEBUG):
        for record in visible:
            reasons = attention_reasons(record)
            if reasons:
                logger.debug(f"{record.path} needs attention: {', '.join(reasons)}")

    if not visible and not config.show_all:
        print(ALL_CLEAN_MESSAGE, file=out)
        print(SHOW_ALL_HINT, file=out)
        print_summary(scan_outcome, batch_outcome, stream=err)
        return 0

    root = build_tree(config.root_path, visible)
    _warn_invalid("Tree", root, validate=validate_tree)

    out.write(format_tree(root, color=config.color and _is_terminal(out)))
    out.flush()

    print_summary(scan_outcome, batch_outcome, stream=err)
    return 0


def _warn_invalid(what: str, item, validate=None) -> None:
    """Log a warning when an item fails validation."""
    try:
        if validate is not None:
            validate(item)
        else:
            item.validate()
    except ValidationError as e:
        logging.getLogger('gitree').warning(f"{what} validation failed: {e}")


def _is_terminal(stream: TextIO) -> bool:
    isatty = getattr(stream, 'isatty', None)
    return bool(isatty and isatty())


def main(argv: Optional[List[str]] = None) -> int:
    """Main entry point."""
    parser = create_parser()
    args = parser.parse_args(argv)

    try:
        logger = setup_logging(debug=args.debug, log_file=args.log_file)
    except OSError as e:
        print(f"Error: cannot open log file: {e}", file=sys.stderr)
        return 1

    try:
        config = Config.from_env_and_args(
            directory=args.directory,
            max_concurrent=args.max_concurrent,
            timeout=args.timeout,
            retries=args.retries,
            no_fetch=args.no_fetch,
            show_all=args.show_all,
            no_color=args.no_color,
            debug=args.debug,
            log_file=args.log_file
        )
    except ValueError as e:
        logger.error(f"Configuration error: {e}")
        return 1

    logger.debug("Configuration loaded")
    logger.debug(f"  Root: {config.root_path}")
    logger.debug(f"  Max concurrent: {config.max_concurrent}")
    logger.debug(f"  Timeout: {config.timeout}s, fetch retries: {config.fetch_retries}")
    logger.debug(f"  Fetch: {config.fetch}")

    cancel = threading.Event()
    deadline = threading.Timer(OVERALL_TIMEOUT, cancel.set)
    deadline.daemon = True
    deadline.start()

    try:
        return run(config, cancel)
    except ScanError as e:
        logger.error(f"Failed to scan directory: {e}")
        return 1
    except OperationCancelled as e:
        logger.error(f"Aborted: {e}")
        return 1
    except KeyboardInterrupt:
        cancel.set()
        logger.warning("Operation cancelled by user")
        return 130
    except Exception as e:
        logger.error(f"Unexpected error: {e}", exc_info=True)
        return 1
    finally:
        deadline.cancel()


if __name__ == "__main__":
    sys.exit(main())
