import logging
import shlex
import subprocess
from typing import Callable, Optional, Union

from aesd_utils.config import RunnerConfig, load_config
from aesd_utils.domain.contracts import (
    EXECUTION_MODES,
    MODE_DIRECT,
    MODE_REDIRECTED,
    MODE_SHELL,
    OUTCOME_ABNORMAL_EXIT,
    OUTCOME_EXEC_FAILED,
    OUTCOME_FORK_FAILED,
    OUTCOME_INVALID_INPUT,
    OUTCOME_NONZERO_EXIT,
    OUTCOME_OPEN_FAILED,
    OUTCOME_SUCCESS,
    OUTCOME_WAIT_FAILED,
    CommandLike,
    CommandSpec,
    ExecutionResult,
)
from aesd_utils.domain.errors import InvalidCommandError
from aesd_utils.execution.fork_exec import (
    STAGE_EXEC,
    STAGE_FORK,
    STAGE_OPEN,
    STAGE_WAIT,
    ChildReport,
    fork_exec,
    has_fork,
    spawn_exec,
)
from aesd_utils.observability.structured_log import log_json

logger = logging.getLogger(__name__)

Launcher = Callable[..., ChildReport]

_STAGE_OUTCOMES = {
    STAGE_FORK: OUTCOME_FORK_FAILED,
    STAGE_OPEN: OUTCOME_OPEN_FAILED,
    STAGE_EXEC: OUTCOME_EXEC_FAILED,
    STAGE_WAIT: OUTCOME_WAIT_FAILED,
}


class CommandRunner:
    """Runs one external command synchronously and reports how it ended.

    Nothing is retried and nothing is shared between calls; every method
    blocks until its child has been reaped.
    """

    def __init__(self, config: Optional[RunnerConfig] = None, launcher: Optional[Launcher] = None):
        self._config = config or load_config()
        self._launcher = launcher or _select_launcher(self._config.spawn_backend)

    @property
    def config(self) -> RunnerConfig:
        return self._config

    def run(
        self,
        command: Union[str, CommandLike],
        mode: str = MODE_DIRECT,
        output_path: Optional[str] = None,
    ) -> ExecutionResult:
        if mode not in EXECUTION_MODES:
            raise ValueError(f"Unknown execution mode: '{mode}'")
        if mode == MODE_SHELL:
            if command is None or isinstance(command, str):
                return self.run_via_shell(command)
            try:
                spec = CommandSpec.of(command)
            except InvalidCommandError as exc:
                return self._invalid(MODE_SHELL, (), str(exc))
            return self.run_via_shell(shlex.join(spec.argv))
        if mode == MODE_REDIRECTED:
            return self.run_direct_redirected(output_path, command)
        return self.run_direct(command)

    def run_via_shell(self, command_line: Optional[str]) -> ExecutionResult:
        # Whitespace-only lines still go to the shell, as system() does.
        if not command_line:
            return self._invalid(MODE_SHELL, (), "Shell command must not be empty.")

        command = (command_line,)
        log_json(logger, "runner.start", mode=MODE_SHELL, command=list(command))
        try:
            proc = subprocess.run(command_line, shell=True, executable=self._config.shell)
        except ValueError as exc:
            return self._invalid(MODE_SHELL, command, str(exc))
        except OSError as exc:
            return self._finish(
                ExecutionResult(
                    outcome=OUTCOME_FORK_FAILED,
                    mode=MODE_SHELL,
                    command=command,
                    error=str(exc),
                )
            )

        if proc.returncode < 0:
            result = ExecutionResult(
                outcome=OUTCOME_ABNORMAL_EXIT,
                mode=MODE_SHELL,
                command=command,
                signal=-proc.returncode,
            )
        else:
            result = ExecutionResult(
                outcome=OUTCOME_SUCCESS if proc.returncode == 0 else OUTCOME_NONZERO_EXIT,
                mode=MODE_SHELL,
                command=command,
                returncode=proc.returncode,
            )
        return self._finish(result)

    def run_direct(self, command: Optional[CommandLike]) -> ExecutionResult:
        try:
            spec = CommandSpec.of(command)
        except InvalidCommandError as exc:
            return self._invalid(MODE_DIRECT, (), str(exc))

        log_json(logger, "runner.start", mode=MODE_DIRECT, command=list(spec.argv))
        report = self._launcher(spec.argv)
        return self._finish(_result_from_report(report, MODE_DIRECT, spec))

    def run_direct_redirected(
        self,
        output_path: Optional[str],
        command: Optional[CommandLike],
    ) -> ExecutionResult:
        try:
            spec = CommandSpec.of(command)
        except InvalidCommandError as exc:
            return self._invalid(MODE_REDIRECTED, (), str(exc), output_path=output_path)
        if not output_path:
            return self._invalid(MODE_REDIRECTED, spec.argv, "Output path must not be empty.")

        log_json(
            logger,
            "runner.start",
            mode=MODE_REDIRECTED,
            command=list(spec.argv),
            output_path=output_path,
        )
        report = self._launcher(
            spec.argv,
            output_path=output_path,
            output_mode=self._config.output_mode,
        )
        return self._finish(_result_from_report(report, MODE_REDIRECTED, spec, output_path))

    def _invalid(self, mode: str, command, reason: str, output_path: Optional[str] = None) -> ExecutionResult:
        return self._finish(
            ExecutionResult(
                outcome=OUTCOME_INVALID_INPUT,
                mode=mode,
                command=tuple(command),
                error=reason,
                output_path=output_path,
            )
        )

    def _finish(self, result: ExecutionResult) -> ExecutionResult:
        log_json(
            logger,
            "runner.finish",
            level=logging.INFO if result.ok else logging.WARNING,
            mode=result.mode,
            command=list(result.command),
            outcome=result.outcome,
            returncode=result.returncode,
            signal=result.signal,
            pid=result.pid,
            error=result.error,
        )
        return result


def _select_launcher(backend: str) -> Launcher:
    if backend == "subprocess":
        return spawn_exec
    if backend == "fork":
        return fork_exec
    return fork_exec if has_fork() else spawn_exec


def _result_from_report(
    report: ChildReport,
    mode: str,
    spec: CommandSpec,
    output_path: Optional[str] = None,
) -> ExecutionResult:
    if report.failed_stage:
        outcome = _STAGE_OUTCOMES[report.failed_stage]
    elif report.signal is not None:
        outcome = OUTCOME_ABNORMAL_EXIT
    elif report.returncode == 0:
        outcome = OUTCOME_SUCCESS
    elif report.returncode is None:
        outcome = OUTCOME_WAIT_FAILED
    else:
        outcome = OUTCOME_NONZERO_EXIT
    return ExecutionResult(
        outcome=outcome,
        mode=mode,
        command=spec.argv,
        returncode=report.returncode,
        signal=report.signal,
        pid=report.pid,
        error=report.error,
        output_path=output_path,
    )


_default_runner: Optional[CommandRunner] = None


def default_runner() -> CommandRunner:
    global _default_runner
    if _default_runner is None:
        _default_runner = CommandRunner()
    return _default_runner


def run_via_shell(command_line: Optional[str]) -> ExecutionResult:
    return default_runner().run_via_shell(command_line)


def run_direct(command: Optional[CommandLike]) -> ExecutionResult:
    return default_runner().run_direct(command)


def run_direct_redirected(output_path: Optional[str], command: Optional[CommandLike]) -> ExecutionResult:
    return default_runner().run_direct_redirected(output_path, command)
