"""Command runner data model: command vectors, execution modes and results."""
from __future__ import annotations

from dataclasses import dataclass
from typing import FrozenSet, Iterable, Optional, Sequence, Tuple, Union

from aesd_utils.domain.errors import InvalidCommandError, error_for_outcome


# ---------------------------------------------------------------------------
# Execution modes
# ---------------------------------------------------------------------------

MODE_SHELL = "shell"
MODE_DIRECT = "direct"
MODE_REDIRECTED = "redirected"

EXECUTION_MODES: FrozenSet[str] = frozenset([MODE_SHELL, MODE_DIRECT, MODE_REDIRECTED])

# ---------------------------------------------------------------------------
# Outcomes
# ---------------------------------------------------------------------------

OUTCOME_SUCCESS = "success"
OUTCOME_INVALID_INPUT = "invalid_input"
OUTCOME_FORK_FAILED = "fork_failed"
OUTCOME_EXEC_FAILED = "exec_failed"
OUTCOME_OPEN_FAILED = "open_failed"
OUTCOME_WAIT_FAILED = "wait_failed"
OUTCOME_NONZERO_EXIT = "nonzero_exit"
OUTCOME_ABNORMAL_EXIT = "abnormal_exit"

OUTCOMES: FrozenSet[str] = frozenset(
    [
        OUTCOME_SUCCESS,
        OUTCOME_INVALID_INPUT,
        OUTCOME_FORK_FAILED,
        OUTCOME_EXEC_FAILED,
        OUTCOME_OPEN_FAILED,
        OUTCOME_WAIT_FAILED,
        OUTCOME_NONZERO_EXIT,
        OUTCOME_ABNORMAL_EXIT,
    ]
)


# ---------------------------------------------------------------------------
# Domain records
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class CommandSpec:
    """Argument vector: element 0 is the executable path, the rest its arguments."""

    argv: Tuple[str, ...]

    @classmethod
    def of(cls, argv: Union["CommandSpec", Iterable[str], None]) -> "CommandSpec":
        if isinstance(argv, CommandSpec):
            return argv
        if argv is None or isinstance(argv, (str, bytes)):
            raise InvalidCommandError("Command must be a non-empty sequence of strings.")
        items = tuple(argv)
        if not items:
            raise InvalidCommandError("Command must not be empty.")
        for item in items:
            if not isinstance(item, str):
                raise InvalidCommandError(f"Command element {item!r} is not a string.")
        if not items[0]:
            raise InvalidCommandError("Executable path must not be empty.")
        return cls(argv=items)

    @property
    def executable(self) -> str:
        return self.argv[0]

    @property
    def args(self) -> Tuple[str, ...]:
        return self.argv[1:]

    def __iter__(self):
        return iter(self.argv)

    def __len__(self) -> int:
        return len(self.argv)


CommandLike = Union[CommandSpec, Sequence[str]]


@dataclass(frozen=True)
class ExecutionResult:
    """Outcome of one synchronous child process run.

    ``bool(result)`` is true iff the child was created, ran to completion and
    exited with status 0. ``outcome`` tells the failure causes apart.
    """

    outcome: str
    mode: str
    command: Tuple[str, ...] = ()
    returncode: Optional[int] = None
    signal: Optional[int] = None
    pid: Optional[int] = None
    error: str = ""
    output_path: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.outcome == OUTCOME_SUCCESS

    def __bool__(self) -> bool:
        return self.ok

    def describe(self) -> str:
        if self.ok:
            return "Command succeeded."
        if self.outcome == OUTCOME_NONZERO_EXIT:
            return f"Command exited with status {self.returncode}."
        if self.outcome == OUTCOME_ABNORMAL_EXIT:
            return f"Command terminated by signal {self.signal}."
        detail = f": {self.error}" if self.error else "."
        return f"Command failed ({self.outcome}){detail}"

    def raise_for_status(self) -> None:
        if self.ok:
            return
        raise error_for_outcome(self.outcome)(self.describe())
