"""
ABL Post-processing Logging Configuration

Every rank runs the same collective ``execute`` sequence, so without care a
parallel run prints each message once per rank. ``setup_logging`` therefore
attaches output handlers on rank 0 only, unless per-rank logs are requested,
in which case each rank writes its own file tagged with its rank.
"""

import logging
import sys
from pathlib import Path
from typing import Optional, Union

from .parallel import is_root

PACKAGE_LOGGER = 'abl_postproc'

_DEFAULT_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'
_RANK_FORMAT = '%(asctime)s - [rank {rank}] %(name)s - %(levelname)s - %(message)s'


def _resolve_level(level: Union[int, str], fallback: int) -> int:
    if isinstance(level, str):
        return getattr(logging, level.upper(), fallback)
    return level


def _rank_log_path(log_file: Union[str, Path], rank: int) -> Path:
    """``run/abl.log`` on rank 3 becomes ``run/abl.3.log``."""
    path = Path(log_file)
    return path.with_name(f"{path.stem}.{rank}{path.suffix}")


def setup_logging(
    level: Union[int, str] = logging.INFO,
    log_file: Optional[Union[str, Path]] = None,
    comm=None,
    all_ranks: bool = False,
    format_string: Optional[str] = None,
) -> logging.Logger:
    """
    Configure the abl_postproc logger for a serial or parallel run.

    Args:
        level: Logging level name or constant
        log_file: Optional log file; with ``all_ranks`` each rank writes
                  ``<stem>.<rank><suffix>`` next to it
        comm: Communicator of the run; serial when omitted
        all_ranks: Log on every rank instead of rank 0 only
        format_string: Custom record format

    Returns:
        logging.Logger: The package logger

    Examples:
        >>> from abl_postproc import setup_logging
        >>> setup_logging(comm=MPI.COMM_WORLD)

        # One log per rank while chasing a transfer problem
        >>> setup_logging(level="DEBUG", log_file="run/abl.log",
        ...               comm=MPI.COMM_WORLD, all_ranks=True)
    """
    level = _resolve_level(level, logging.INFO)
    rank = getattr(comm, "rank", 0) if comm is not None else 0

    logger = logging.getLogger(PACKAGE_LOGGER)
    logger.setLevel(level)
    logger.handlers.clear()
    logger.propagate = False

    if not all_ranks and not is_root(comm):
        logger.addHandler(logging.NullHandler())
        return logger

    if format_string is None:
        format_string = _RANK_FORMAT.format(rank=rank) if all_ranks else _DEFAULT_FORMAT
    formatter = logging.Formatter(format_string, datefmt='%Y-%m-%d %H:%M:%S')

    handlers = []
    if log_file is None or not all_ranks:
        handlers.append(logging.StreamHandler(sys.stdout))
    if log_file is not None:
        path = _rank_log_path(log_file, rank) if all_ranks else Path(log_file)
        path.parent.mkdir(parents=True, exist_ok=True)
        handlers.append(logging.FileHandler(path))

    for handler in handlers:
        handler.setLevel(level)
        handler.setFormatter(formatter)
        logger.addHandler(handler)
    return logger


def set_log_level(level: Union[int, str]) -> None:
    """Change the level of the package logger and its handlers."""
    level = _resolve_level(level, logging.WARNING)
    logger = logging.getLogger(PACKAGE_LOGGER)
    logger.setLevel(level)
    for handler in logger.handlers:
        handler.setLevel(level)


# Silent until the host configures logging
_package_logger = logging.getLogger(PACKAGE_LOGGER)
if not _package_logger.handlers:
    _package_logger.addHandler(logging.NullHandler())
_package_logger.setLevel(logging.WARNING)
