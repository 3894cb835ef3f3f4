"""Scoped access to the system logger.

``open_syslog`` brackets ``openlog``/``closelog`` so the handle is released on
every exit path, error paths included.
"""
from __future__ import annotations

import contextlib
import logging
import os
import syslog
from dataclasses import dataclass
from typing import Iterator

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SyslogChannel:
    ident: str

    def error(self, message: str) -> None:
        text = _loggable(message)
        syslog.syslog(syslog.LOG_ERR, text)
        logger.error("%s", text)

    def debug(self, message: str) -> None:
        text = _loggable(message)
        syslog.syslog(syslog.LOG_DEBUG, text)
        logger.debug("%s", text)


def _loggable(message: str) -> str:
    # syslog encodes strictly as UTF-8; undecodable argv bytes become \xNN escapes.
    return os.fsencode(message).decode("utf-8", errors="backslashreplace")


@contextlib.contextmanager
def open_syslog(
    ident: str,
    logoption: int = syslog.LOG_PID | syslog.LOG_CONS,
    facility: int = syslog.LOG_USER,
) -> Iterator[SyslogChannel]:
    syslog.openlog(ident, logoption, facility)
    try:
        yield SyslogChannel(ident=ident)
    finally:
        syslog.closelog()
