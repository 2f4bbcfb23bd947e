"""Logging for the CLI process and its render workers.

Everything logs under the ``mandelanim`` logger. Pool workers hand their
records to the parent over a multiprocessing queue, and the parent's
:func:`queue_listener` replays them through its own handlers.
"""

import logging
import logging.handlers
import multiprocessing as mp
import time
from contextlib import contextmanager
from typing import Iterator, List, Optional, Union

_LOGGER_NAME = "mandelanim"
_FORMAT = "%(asctime)s.%(msecs)03dZ %(processName)s %(levelname)s %(name)s - %(message)s"
_DATEFMT = "%Y-%m-%dT%H:%M:%S"


def get_logger() -> logging.Logger:
    return logging.getLogger(_LOGGER_NAME)


class FrameLogAdapter(logging.LoggerAdapter):
    """Prefixes every message with ``[Frame NNNNNN]``."""

    def process(self, msg, kwargs):
        return f"[Frame {self.extra['frame_id']}] {msg}", kwargs


def frame_logger(frame: Union[int, str]) -> FrameLogAdapter:
    frame_id = f"{frame:06d}" if isinstance(frame, int) else frame
    return FrameLogAdapter(get_logger(), {"frame_id": frame_id})


def _utc_formatter() -> logging.Formatter:
    fmt = logging.Formatter(fmt=_FORMAT, datefmt=_DATEFMT)
    fmt.converter = time.gmtime
    return fmt


def _install(logger: logging.Logger, handlers: List[logging.Handler], level: int) -> None:
    logger.setLevel(level)
    logger.propagate = False
    for h in list(logger.handlers):
        logger.removeHandler(h)
        h.close()
    for h in handlers:
        h.setLevel(level)
        logger.addHandler(h)


def configure_logging(
    level: int = logging.INFO,
    log_file: Optional[str] = "render.log",
    *,
    console: bool = True,
    rotate_bytes: int = 5 * 1024 * 1024,
    rotate_count: int = 5,
) -> logging.Logger:
    """Console and rotating-file handlers for the main process. Safe to call repeatedly."""
    handlers: List[logging.Handler] = []
    if console:
        handlers.append(logging.StreamHandler())
    if log_file:
        handlers.append(
            logging.handlers.RotatingFileHandler(
                log_file, maxBytes=rotate_bytes, backupCount=rotate_count, encoding="utf-8"
            )
        )
    fmt = _utc_formatter()
    for h in handlers:
        h.setFormatter(fmt)
    logger = get_logger()
    _install(logger, handlers, level)
    return logger


@contextmanager
def queue_listener(logger: Optional[logging.Logger] = None) -> Iterator[mp.Queue]:
    """Yield a queue for pool workers; records put on it go to ``logger``'s handlers."""
    logger = logger or get_logger()
    queue = mp.Queue(-1)
    listener = logging.handlers.QueueListener(queue, *logger.handlers, respect_handler_level=True)
    listener.start()
    try:
        yield queue
    finally:
        listener.stop()


def logging_initialiser(queue: Optional[mp.Queue], level: int) -> None:
    # Pool initializer; without a queue the worker keeps its inherited setup.
    if queue is None:
        return
    _install(get_logger(), [logging.handlers.QueueHandler(queue)], level)
