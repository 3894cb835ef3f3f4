from __future__ import annotations

import errno as errno_mod
import os
import signal
import subprocess
import sys
from dataclasses import dataclass
from typing import Optional, Sequence

STAGE_NONE = ""
STAGE_FORK = "fork"
STAGE_OPEN = "open"
STAGE_EXEC = "exec"
STAGE_WAIT = "wait"

# Exit status of a child that could not open its output file or exec.
CHILD_FAILURE_STATUS = 1

_OUTPUT_FLAGS = os.O_WRONLY | os.O_CREAT | os.O_TRUNC
# Python ignores these; exec'd programs expect the default disposition.
_RESTORED_SIGNALS = ("SIGPIPE", "SIGXFZ", "SIGXFSZ")


@dataclass(frozen=True)
class ChildReport:
    """What the parent learned about one child: exit info or the failing stage."""

    pid: int | None = None
    returncode: int | None = None
    signal: int | None = None
    failed_stage: str = STAGE_NONE
    errno: int | None = None
    error: str = ""


def has_fork() -> bool:
    return hasattr(os, "fork")


def fork_exec(
    argv: Sequence[str],
    output_path: str | None = None,
    output_mode: int = 0o644,
) -> ChildReport:
    """Fork, optionally redirect stdout to *output_path*, execv *argv* and wait.

    The child reports open/exec failures through a close-on-exec pipe, so a
    successful exec closes it without writing anything.
    """
    args = list(argv)
    _flush_std_streams()
    try:
        status_r, status_w = os.pipe()
    except OSError as exc:
        return ChildReport(failed_stage=STAGE_FORK, errno=exc.errno, error=str(exc))
    try:
        pid = os.fork()
    except OSError as exc:
        os.close(status_r)
        os.close(status_w)
        return ChildReport(failed_stage=STAGE_FORK, errno=exc.errno, error=str(exc))

    if pid == 0:
        _exec_child(status_r, status_w, args, output_path, output_mode)

    os.close(status_w)
    try:
        payload = _read_all(status_r)
    finally:
        os.close(status_r)

    try:
        _, status = os.waitpid(pid, 0)
    except ChildProcessError as exc:
        return ChildReport(pid=pid, failed_stage=STAGE_WAIT, errno=exc.errno, error=str(exc))

    returncode: Optional[int] = None
    term_signal: Optional[int] = None
    if os.WIFEXITED(status):
        returncode = os.WEXITSTATUS(status)
    elif os.WIFSIGNALED(status):
        term_signal = os.WTERMSIG(status)

    stage, child_errno = _parse_status_payload(payload)
    return ChildReport(
        pid=pid,
        returncode=returncode,
        signal=term_signal,
        failed_stage=stage,
        errno=child_errno,
        error=_strerror(child_errno) if stage else "",
    )


def spawn_exec(
    argv: Sequence[str],
    output_path: str | None = None,
    output_mode: int = 0o644,
) -> ChildReport:
    """Same contract as fork_exec, through subprocess for platforms without fork."""
    args = list(argv)
    stdout_fd: Optional[int] = None
    if output_path is not None:
        try:
            stdout_fd = os.open(output_path, _OUTPUT_FLAGS, output_mode)
        except (OSError, ValueError) as exc:
            return ChildReport(failed_stage=STAGE_OPEN, errno=getattr(exc, "errno", None), error=str(exc))
    try:
        try:
            proc = subprocess.Popen(
                args,
                executable=_no_path_search(args[0]),
                shell=False,
                stdout=stdout_fd,
            )
        except (OSError, ValueError) as exc:
            # ValueError: NUL byte in an argument, the same case execv rejects in fork_exec.
            return ChildReport(failed_stage=STAGE_EXEC, errno=getattr(exc, "errno", None), error=str(exc))
    finally:
        if stdout_fd is not None:
            os.close(stdout_fd)

    try:
        code = proc.wait()
    except ChildProcessError as exc:
        return ChildReport(pid=proc.pid, failed_stage=STAGE_WAIT, errno=exc.errno, error=str(exc))
    if code < 0:
        return ChildReport(pid=proc.pid, signal=-code)
    return ChildReport(pid=proc.pid, returncode=code)


def _exec_child(
    status_r: int,
    status_w: int,
    argv: Sequence[str],
    output_path: str | None,
    output_mode: int,
) -> None:
    # Runs in the forked child and must end in os._exit on every path.
    stage = STAGE_EXEC
    try:
        os.close(status_r)
        for name in _RESTORED_SIGNALS:
            if hasattr(signal, name):
                signal.signal(getattr(signal, name), signal.SIG_DFL)
        if output_path is not None:
            stage = STAGE_OPEN
            fd = os.open(output_path, _OUTPUT_FLAGS, output_mode)
            if fd == 1:
                os.set_inheritable(fd, True)
            else:
                os.dup2(fd, 1)
                os.close(fd)
            stage = STAGE_EXEC
        os.execv(argv[0], argv)
    except BaseException as exc:
        code = getattr(exc, "errno", None) or 0
        try:
            os.write(status_w, f"{stage}:{code}".encode("ascii"))
        except OSError:
            pass
    finally:
        os._exit(CHILD_FAILURE_STATUS)


def _read_all(fd: int) -> bytes:
    chunks = []
    while True:
        chunk = os.read(fd, 64)
        if not chunk:
            break
        chunks.append(chunk)
    return b"".join(chunks)


def _parse_status_payload(payload: bytes) -> tuple[str, int | None]:
    if not payload:
        return STAGE_NONE, None
    stage, _, raw_code = payload.decode("ascii", errors="replace").partition(":")
    if stage not in {STAGE_OPEN, STAGE_EXEC}:
        return STAGE_EXEC, None
    try:
        code = int(raw_code)
    except ValueError:
        code = 0
    return stage, (code or None)


def _strerror(code: int | None) -> str:
    if not code:
        return "child failed before exec"
    name = errno_mod.errorcode.get(code, str(code))
    return f"[{name}] {os.strerror(code)}"


def _no_path_search(executable: str) -> str:
    # execv semantics: a bare name is relative to the cwd, never looked up on PATH.
    if os.sep in executable or (os.altsep and os.altsep in executable):
        return executable
    return os.path.join(os.curdir, executable)


def _flush_std_streams() -> None:
    for stream in (sys.stdout, sys.stderr):
        if stream is None:
            continue
        try:
            stream.flush()
        except (OSError, ValueError):
            continue
