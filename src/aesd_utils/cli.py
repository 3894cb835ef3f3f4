import argparse
import logging
import os
import sys
from typing import List, Optional, Sequence

from aesd_utils.config import LOG_LEVEL_KEY, RunnerConfig, load_config
from aesd_utils.domain.contracts import MODE_DIRECT, MODE_REDIRECTED, MODE_SHELL, OUTCOME_NONZERO_EXIT
from aesd_utils.domain.errors import ArgumentCountError, ResourceOpenError, WriteError
from aesd_utils.execution.command_runner import CommandRunner
from aesd_utils.observability.structured_log import log_json
from aesd_utils.observability.syslog_scope import open_syslog
from aesd_utils.writers.file_writer import write_text_file

logger = logging.getLogger(__name__)

EXIT_SUCCESS = 0
EXIT_FAILURE = 1


def _configure_logging(level: str) -> None:
    level = (level or "WARNING").upper()
    logging.basicConfig(
        level=getattr(logging, level, logging.WARNING),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


def _split_argv(argv: Optional[Sequence[str]], default_prog: str) -> tuple:
    if argv is None:
        prog = os.path.basename(sys.argv[0]) if sys.argv and sys.argv[0] else default_prog
        return prog, list(sys.argv[1:])
    return default_prog, list(argv)


def _check_arg_count(args: List[str], expected: int, strict: bool) -> None:
    if (strict and len(args) != expected) or len(args) < expected:
        raise ArgumentCountError(f"Expected {expected} arguments, got {len(args)}.")


def _run_writer(argv: Optional[Sequence[str]], prog: str, *, strict: bool, newline: bool, create_parents: bool) -> int:
    prog, args = _split_argv(argv, prog)
    config = load_config()
    _configure_logging(config.log_level)
    try:
        _check_arg_count(args, 2, strict)
    except ArgumentCountError as exc:
        logger.error("%s", exc)
        print(f"Usage: {prog} <file> <text>", file=sys.stderr)
        return EXIT_FAILURE

    path, text = args[0], args[1]
    try:
        write_text_file(path, text, newline=newline, create_parents=create_parents)
    except ResourceOpenError as exc:
        print(f"Error opening file: {exc}", file=sys.stderr)
        return EXIT_FAILURE
    except WriteError as exc:
        print(f"Error writing to file: {exc}", file=sys.stderr)
        return EXIT_FAILURE
    return EXIT_SUCCESS


def writer_main(argv: Optional[Sequence[str]] = None) -> int:
    """``writer <file> <text>``: exactly two arguments, text written with a trailing newline."""
    return _run_writer(argv, "writer", strict=True, newline=True, create_parents=False)


def lenient_writer_main(argv: Optional[Sequence[str]] = None) -> int:
    """``writer-lenient <file> <text> [...]``: extra arguments ignored, no trailing newline."""
    return _run_writer(argv, "writer-lenient", strict=False, newline=False, create_parents=True)


def syslog_writer_main(argv: Optional[Sequence[str]] = None) -> int:
    """``syslog-writer <string> <file>``: write and record the action in syslog."""
    prog, args = _split_argv(argv, "syslog-writer")
    config = load_config()
    _configure_logging(config.log_level)

    with open_syslog(config.syslog_ident) as channel:
        try:
            _check_arg_count(args, 2, strict=True)
        except ArgumentCountError:
            print(f"Usage: {prog} <string> <file>", file=sys.stderr)
            channel.error("Error: Incorrect number of arguments")
            return EXIT_FAILURE

        text, path = args[0], args[1]
        try:
            write_text_file(path, text, newline=False)
        except ResourceOpenError as exc:
            channel.error(f"Error: Unable to open file {path}")
            print(f"open: {exc}", file=sys.stderr)
            return EXIT_FAILURE
        except WriteError as exc:
            channel.error(f"Error: Failed to write to file {path}")
            print(f"write: {exc}", file=sys.stderr)
            return EXIT_FAILURE

        channel.debug(f"Writing {text} to {path}")
    return EXIT_SUCCESS


def _build_run_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="aesd-run",
        description="Run a command as a child process and wait for it to finish.",
    )
    mode = parser.add_mutually_exclusive_group()
    mode.add_argument("--shell", action="store_true", help="Interpret the command with the shell")
    mode.add_argument("--redirect", metavar="FILE", help="Truncate FILE and send the command's stdout to it")
    parser.add_argument("--quiet", action="store_true", help="Do not report failures on stderr")
    parser.add_argument("--log-level", default=os.environ.get(LOG_LEVEL_KEY))
    parser.add_argument("command", nargs=argparse.REMAINDER, help="Executable path and its arguments")
    return parser


def run_main(argv: Optional[Sequence[str]] = None, config: Optional[RunnerConfig] = None) -> int:
    parser = _build_run_parser()
    args = parser.parse_args(argv)
    config = config or load_config()
    _configure_logging(args.log_level or config.log_level)

    command = list(args.command)
    if command and command[0] == "--":
        command = command[1:]

    runner = CommandRunner(config=config)
    if args.shell:
        result = runner.run(" ".join(command), mode=MODE_SHELL)
    elif args.redirect is not None:
        result = runner.run(command, mode=MODE_REDIRECTED, output_path=args.redirect)
    else:
        result = runner.run(command, mode=MODE_DIRECT)

    if result:
        return EXIT_SUCCESS
    if not args.quiet:
        print(f"aesd-run: {result.describe()}", file=sys.stderr)
    log_json(logger, "cli.run.failed", level=logging.WARNING, outcome=result.outcome)
    if result.outcome == OUTCOME_NONZERO_EXIT and result.returncode:
        return result.returncode
    return EXIT_FAILURE


if __name__ == "__main__":
    sys.exit(run_main())
