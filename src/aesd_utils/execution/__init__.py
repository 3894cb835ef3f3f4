from aesd_utils.execution.command_runner import (
    CommandRunner,
    run_direct,
    run_direct_redirected,
    run_via_shell,
)

__all__ = [
    "CommandRunner",
    "run_direct",
    "run_direct_redirected",
    "run_via_shell",
]
