"""Error taxonomy shared by the command runner and the writer utilities."""
from __future__ import annotations

from typing import Dict, Type


class UtilityError(Exception):
    code = "ERR_UTILITY"


class ArgumentCountError(UtilityError):
    code = "ERR_ARGUMENT_COUNT"


class ResourceOpenError(UtilityError):
    code = "ERR_RESOURCE_OPEN"


class WriteError(UtilityError):
    code = "ERR_WRITE"


class ProcessCreationError(UtilityError):
    code = "ERR_PROCESS_CREATION"


class ProcessExecutionError(UtilityError):
    code = "ERR_PROCESS_EXECUTION"


class ProcessWaitError(UtilityError):
    code = "ERR_PROCESS_WAIT"


class InvalidCommandError(UtilityError, ValueError):
    code = "ERR_INVALID_COMMAND"


# Keyed by the outcome strings in domain.contracts; kept as literals to avoid
# an import cycle.
_OUTCOME_ERRORS: Dict[str, Type[UtilityError]] = {
    "invalid_input": InvalidCommandError,
    "fork_failed": ProcessCreationError,
    "exec_failed": ProcessExecutionError,
    "open_failed": ProcessExecutionError,
    "nonzero_exit": ProcessExecutionError,
    "abnormal_exit": ProcessExecutionError,
    "wait_failed": ProcessWaitError,
}


def error_for_outcome(outcome: str) -> Type[UtilityError]:
    """Return the exception class matching a failed runner outcome."""
    try:
        return _OUTCOME_ERRORS[outcome]
    except KeyError as exc:
        raise ValueError(f"No error class for outcome '{outcome}'") from exc
