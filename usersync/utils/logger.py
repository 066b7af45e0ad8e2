from __future__ import annotations

import importlib
import logging
import os
import sys
import time
from functools import wraps
from pathlib import Path
from typing import Callable, ParamSpec, TypeVar

from loguru import logger as _loguru_logger
from rich.logging import RichHandler
from rich.traceback import install as rich_tb_install

from usersync.config import settings

"""
usersync.utils.logger
~~~~~~~~~~~~~~~~~~~~~
Pre-configured logging for the synchronization core, with a Rich console
handler and a rotating file sink.
Quick Start
-----------
1. **Usage Example**
    ```python
    logger.info("Hello, world!")
    ```
2. **Timing Functions**
    ```python
    @timeit
    def parse_payload():
         ...
    ```
3. **Silencing Noisy Libraries**
    ```python
    silence_libs("httpx", "httpcore", level="WARNING")
    ```
Environment Variables
---------------------
- `LOG_LEVEL`: Logging level (DEBUG, INFO, WARNING, ERROR). Default: INFO.
- `LOG_DIR`: Directory for log files. Default: `settings.LOGS_DIR`.
- `LOG_ROTATION`: Log rotation policy. Default: 10 MB.
- `LOG_RETENTION`: Log retention policy. Default: 14 days.
- `LOG_COMPRESSION`: Compression for rotated logs (zip, gz, bz2, none). Default: zip.
- `DISABLE_RICH`: Disable Rich console output if set.
- `RICH_THEME`: Rich traceback theme. Default: monokai.
"""


# ╭──────────────────────── Configuração básica ───────────────────────╮ #

_loguru_logger.remove()
_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()
FORMAT = (
    "<green>{time:YYYY-MM-DD HH:mm:ss.SSS}</green> | "
    "<level>{level:8}</level> | "
    "<cyan>{name}</cyan>:<cyan>{function}</cyan>:<cyan>{line}</cyan> | "
    "<cyan>[{extra[resource]:^9}]</cyan> - "
    "<level>{message}</level>"
)

# ─── console (Rich) ─── #
_IS_TTY = "DISABLE_RICH" not in os.environ
if _IS_TTY:
    rich_tb_install(
        show_locals=False,
        theme=os.getenv("RICH_THEME", "monokai"),
    )
    _loguru_logger.add(
        RichHandler(
            rich_tracebacks=True,
            markup=False,
            show_path=False,
            highlighter=None,
        ),
        level=_LEVEL,
        format="{message}",
    )
else:
    _loguru_logger.add(sys.stderr, level=_LEVEL, format=FORMAT, colorize=True)

# ─── arquivo rotativo ─── #
LOG_DIR = Path(os.getenv("LOG_DIR", settings.LOGS_DIR)).expanduser()
LOG_DIR.mkdir(parents=True, exist_ok=True)
_loguru_logger.add(
    LOG_DIR / "{time:YYYY-MM-DD}.log",
    level="DEBUG",
    rotation=os.getenv("LOG_ROTATION", "10 MB"),
    retention=os.getenv("LOG_RETENTION", "14 days"),
    compression=os.getenv("LOG_COMPRESSION", "zip"),
    enqueue=True,
    backtrace=False,
    format=FORMAT,
)

logger = _loguru_logger  # reexport

# ╰────────────────────────────────────────────────────────────────────╯ #

# ───────── helpers utilitários ───────── #
P = ParamSpec("P")
R = TypeVar("R")


def timeit(fn: Callable[P, R]) -> Callable[P, R]:
    """
    Decorator that measures the execution time of the decorated function and logs it.
    Args:
        fn (Callable[P, R]): The function to be decorated.
    Returns:
        Callable[P, R]: The wrapped function that logs its execution time in milliseconds.
    """

    @wraps(fn)
    def _wrapper(*args: P.args, **kwargs: P.kwargs):  # type: ignore[name-defined]
        t0 = time.perf_counter()
        result: R = fn(*args, **kwargs)
        logger.debug(
            f"{fn.__qualname__} levou {(time.perf_counter() - t0) * 1000:,.1f} ms"
        )
        return result

    return _wrapper


def silence_libs(*modules: str, level: str = "WARNING") -> None:
    lvl = getattr(logging, level.upper(), logging.WARNING)
    for name in modules:
        try:
            mod = importlib.import_module(name)
            logging.getLogger(mod.__name__).setLevel(lvl)
        except ModuleNotFoundError:
            continue


logger.configure(extra={"resource": "users"})
silence_libs("httpx", "httpcore")

__all__ = [
    "logger",
    "timeit",
    "silence_libs",
    "FORMAT",
    "LOG_DIR",
]
