"""Root logger setup for the channel engine CLI.

Engine modules only create ``logging.getLogger(__name__)`` loggers; handlers
are installed here, once, by the entry point.
"""

import logging
import os
import sys
from typing import List, Optional

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


def configure_logging(
    *,
    level: int = logging.INFO,
    log_file: Optional[str] = None,
    console: bool = True,
) -> None:
    """Replace the root logger's handlers.

    Args:
        level: Root level (the CLI passes DEBUG for --verbose).
        log_file: Also append to this file; missing parent directories
            are created.
        console: Write to stderr, keeping stdout for analysis results.

    With neither console nor file output, a NullHandler silences the
    engine's loggers.
    """
    handlers: List[logging.Handler] = []
    if console:
        handlers.append(logging.StreamHandler(sys.stderr))

    if log_file:
        parent = os.path.dirname(str(log_file))
        if parent:
            os.makedirs(parent, exist_ok=True)
        handlers.append(logging.FileHandler(str(log_file), encoding="utf-8"))

    if not handlers:
        handlers.append(logging.NullHandler())

    logging.basicConfig(level=level, format=LOG_FORMAT, handlers=handlers, force=True)
