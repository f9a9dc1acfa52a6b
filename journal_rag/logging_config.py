"""
Logging setup for journal_rag.

Every module obtains its logger with `get_logger(__name__)`; all of them are
children of the `journal_rag` logger configured here.

    DEBUG   budget arithmetic, chunk counts, skipped rows
    INFO    indexing and query events
    WARNING corrupt or mismatched vectors that were skipped
    ERROR   storage and generation failures before they propagate

The level defaults to INFO and can be overridden with JOURNAL_RAG_LOG_LEVEL.
"""

import logging
import os
import sys

_LOG_FORMAT = "%(asctime)s [%(levelname)-8s] %(name)s - %(message)s"
_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"
_ROOT_NAME = "journal_rag"
HANDLER_NAME = "journal_rag.stdout"


def configure_logging(level=None) -> None:
    """Attach a stdout handler to the `journal_rag` logger once."""
    root = logging.getLogger(_ROOT_NAME)
    if any(handler.get_name() == HANDLER_NAME for handler in root.handlers):
        return

    if level is None:
        level = os.environ.get("JOURNAL_RAG_LOG_LEVEL", "INFO").upper()

    handler = logging.StreamHandler(sys.stdout)
    handler.set_name(HANDLER_NAME)
    handler.setFormatter(logging.Formatter(_LOG_FORMAT, datefmt=_DATE_FORMAT))
    root.addHandler(handler)
    root.setLevel(level)
    root.propagate = False


def get_logger(name: str) -> logging.Logger:
    configure_logging()
    return logging.getLogger(name)
