import logging
import os
from pathlib import Path
from typing import Union

from aesd_utils.domain.errors import ResourceOpenError, WriteError
from aesd_utils.observability.structured_log import log_json

logger = logging.getLogger(__name__)


def write_text_file(
    path: Union[str, Path],
    text: str,
    *,
    newline: bool,
    create_parents: bool = False,
) -> int:
    """Truncate-write *text* to *path* and return the number of bytes written.

    The text is encoded with the filesystem encoding and surrogateescape, so
    arguments that are not valid UTF-8 reach the file byte for byte.

    Raises ResourceOpenError when the file cannot be opened and WriteError
    when writing or flushing it fails. The file is closed on every path.
    """
    target = Path(path)
    payload = os.fsencode(text) + (b"\n" if newline else b"")
    if create_parents:
        try:
            target.parent.mkdir(parents=True, exist_ok=True)
        except OSError as exc:
            raise ResourceOpenError(f"Cannot create directory {target.parent}: {exc}") from exc
    try:
        handle = open(target, "wb")
    except OSError as exc:
        raise ResourceOpenError(f"Cannot open {target}: {exc}") from exc

    try:
        try:
            written = handle.write(payload)
        finally:
            handle.close()
    except OSError as exc:
        raise WriteError(f"Cannot write to {target}: {exc}") from exc

    log_json(logger, "writer.write", path=str(target), bytes=written, newline=newline)
    return written
