import logging
import os
import sys
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, Mapping, Optional

logger = logging.getLogger(__name__)

SHELL_KEY = "AESD_SHELL"
OUTPUT_MODE_KEY = "AESD_OUTPUT_MODE"
SPAWN_BACKEND_KEY = "AESD_SPAWN_BACKEND"
LOG_LEVEL_KEY = "AESD_LOG_LEVEL"
SYSLOG_IDENT_KEY = "AESD_SYSLOG_IDENT"

DEFAULT_SHELL = "/bin/sh"
DEFAULT_OUTPUT_MODE = 0o644
DEFAULT_SPAWN_BACKEND = "auto"
DEFAULT_LOG_LEVEL = "WARNING"
DEFAULT_SYSLOG_IDENT = "writer_utility"

VALID_SPAWN_BACKENDS = {"auto", "fork", "subprocess"}


@dataclass(frozen=True)
class RunnerConfig:
    shell: str = DEFAULT_SHELL
    output_mode: int = DEFAULT_OUTPUT_MODE
    spawn_backend: str = DEFAULT_SPAWN_BACKEND
    log_level: str = DEFAULT_LOG_LEVEL
    syslog_ident: str = DEFAULT_SYSLOG_IDENT


def load_env_file(path: Path) -> Dict[str, str]:
    data: Dict[str, str] = {}
    if not path.exists():
        return data
    try:
        for line in path.read_text(encoding="utf-8").splitlines():
            line = line.strip()
            if not line or line.startswith("#") or "=" not in line:
                continue
            k, v = line.split("=", 1)
            data[k.strip()] = v.strip()
    except OSError as exc:
        print(f"Failed to read .env: {exc}", file=sys.stderr)
    return data


def get_env_value(
    key: str,
    env_file: Mapping[str, str],
    environ: Optional[Mapping[str, str]] = None,
) -> Optional[str]:
    source = os.environ if environ is None else environ
    return source.get(key) or env_file.get(key)


def parse_output_mode(raw: Optional[str]) -> int:
    if not raw:
        return DEFAULT_OUTPUT_MODE
    try:
        mode = int(raw.strip(), 8)
    except ValueError:
        logger.warning("Invalid %s=%r, using %o", OUTPUT_MODE_KEY, raw, DEFAULT_OUTPUT_MODE)
        return DEFAULT_OUTPUT_MODE
    if mode < 0 or mode > 0o7777:
        logger.warning("Out of range %s=%r, using %o", OUTPUT_MODE_KEY, raw, DEFAULT_OUTPUT_MODE)
        return DEFAULT_OUTPUT_MODE
    return mode


def parse_spawn_backend(raw: Optional[str]) -> str:
    normalized = (raw or "").strip().lower()
    if not normalized:
        return DEFAULT_SPAWN_BACKEND
    if normalized not in VALID_SPAWN_BACKENDS:
        logger.warning("Unknown %s=%r, using %s", SPAWN_BACKEND_KEY, raw, DEFAULT_SPAWN_BACKEND)
        return DEFAULT_SPAWN_BACKEND
    return normalized


def load_config(
    env_path: Optional[Path] = None,
    environ: Optional[Mapping[str, str]] = None,
) -> RunnerConfig:
    """Build a RunnerConfig from the process env, falling back to an optional .env file."""
    env_file = load_env_file(env_path) if env_path is not None else {}
    shell = (get_env_value(SHELL_KEY, env_file, environ) or DEFAULT_SHELL).strip()
    log_level = (get_env_value(LOG_LEVEL_KEY, env_file, environ) or DEFAULT_LOG_LEVEL).strip().upper()
    ident = (get_env_value(SYSLOG_IDENT_KEY, env_file, environ) or DEFAULT_SYSLOG_IDENT).strip()
    return RunnerConfig(
        shell=shell or DEFAULT_SHELL,
        output_mode=parse_output_mode(get_env_value(OUTPUT_MODE_KEY, env_file, environ)),
        spawn_backend=parse_spawn_backend(get_env_value(SPAWN_BACKEND_KEY, env_file, environ)),
        log_level=log_level or DEFAULT_LOG_LEVEL,
        syslog_ident=ident or DEFAULT_SYSLOG_IDENT,
    )
