"""
Unified logging utilities for TunedIn Blend.

Entrypoints (CLI, API) call configure_logging() once at startup; library
modules only ever use logging.getLogger(__name__).

Log records carry a run_id (a room id for blends). It lives in a context
variable, so concurrent API requests each stamp their own.
"""
import inspect
import logging
import os
import re
import sys
import time
from contextlib import contextmanager
from contextvars import ContextVar
from pathlib import Path
from typing import Any, Dict, Iterator, List, Optional, TextIO, Union

_logging_configured = False
_current_run_id: ContextVar[Optional[str]] = ContextVar("tunedin_run_id", default=None)

_HANDLER_TAG = "_tunedin_handler"
_NOISY_LOGGERS = ('urllib3', 'requests', 'httpx', 'uvicorn.access')

_BASE_FIELDS = '%(asctime)s | %(levelname)-5s | %(name)s'
_CONSOLE_FMT = _BASE_FIELDS + ' | %(message)s'
_CONSOLE_FMT_WITH_RUN_ID = _BASE_FIELDS + ' | run_id=%(run_id)s | %(message)s'
_FILE_FMT = _BASE_FIELDS + ' | %(funcName)s:%(lineno)d | run_id=%(run_id)s | %(message)s'


class RunIdFilter(logging.Filter):
    """Stamp the active run id (or "-") onto each record."""

    def filter(self, record: logging.LogRecord) -> bool:
        record.run_id = _current_run_id.get() or "-"
        return True


def set_run_id(run_id: Optional[str]) -> None:
    """Set the run id for the current context (None clears it)."""
    _current_run_id.set(run_id)


def get_run_id() -> Optional[str]:
    return _current_run_id.get()


@contextmanager
def run_id_scope(run_id: Optional[str]) -> Iterator[None]:
    """
    Stamp records logged inside the block with run_id, restoring the
    previous value afterwards.

    Usage:
        with run_id_scope(room_id):
            generate_blend(...)
    """
    token = _current_run_id.set(run_id)
    try:
        yield
    finally:
        _current_run_id.reset(token)


def _tagged(handler: logging.Handler, level: int, fmt: str, datefmt: str) -> logging.Handler:
    handler.setLevel(level)
    handler.setFormatter(logging.Formatter(fmt, datefmt=datefmt))
    handler.addFilter(RunIdFilter())
    setattr(handler, _HANDLER_TAG, True)
    return handler


def _console_handler(level_name: str, show_run_id: bool, stream: TextIO) -> logging.Handler:
    fmt = _CONSOLE_FMT_WITH_RUN_ID if (show_run_id or level_name == 'DEBUG') else _CONSOLE_FMT
    level = getattr(logging, level_name, logging.INFO)
    return _tagged(logging.StreamHandler(stream), level, fmt, '%H:%M:%S')


def _file_handler(log_file: str, level_name: str) -> logging.Handler:
    path = Path(log_file)
    path.parent.mkdir(parents=True, exist_ok=True)
    level = getattr(logging, level_name.upper(), logging.DEBUG)
    return _tagged(logging.FileHandler(path, encoding='utf-8'), level, _FILE_FMT, '%Y-%m-%d %H:%M:%S')


def configure_logging(
    level: str = 'INFO',
    log_file: Optional[str] = None,
    file_level: str = 'DEBUG',
    force: bool = False,
    run_id: Optional[str] = None,
    console: bool = True,
    show_run_id: bool = False,
) -> None:
    """
    Configure root logging for the whole application.

    Only the first call takes effect unless force=True. Handlers installed by
    a host (uvicorn, pytest) are left alone; only our tagged handlers are
    replaced on reconfiguration.

    Args:
        level: Console level (DEBUG, INFO, WARNING, ERROR)
        log_file: Optional log file path
        file_level: Level for the file handler
        force: Reconfigure even if already configured
        run_id: Run id to stamp on records from this context
        console: Add a stdout handler
        show_run_id: Include run_id on console lines (always on at DEBUG)

    Environment:
        LOG_LEVEL overrides level; LOG_FILE is used when log_file is not given.
    """
    global _logging_configured

    if run_id:
        set_run_id(run_id)
    if _logging_configured and not force:
        return

    level_name = os.getenv('LOG_LEVEL', level).upper()
    log_file = log_file if log_file is not None else os.getenv('LOG_FILE')

    root = logging.getLogger()
    root.setLevel(logging.DEBUG)
    for handler in [h for h in root.handlers if getattr(h, _HANDLER_TAG, False)]:
        root.removeHandler(handler)
        handler.close()

    if console:
        root.addHandler(_console_handler(level_name, show_run_id, sys.stdout))
    if log_file:
        root.addHandler(_file_handler(log_file, file_level))

    for name in _NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)

    _logging_configured = True
    logging.getLogger(__name__).debug(
        "Logging configured: level=%s, file=%s, run_id=%s", level_name, log_file or 'none', get_run_id() or '-'
    )


def _format_elapsed(seconds: float) -> str:
    return f"{seconds * 1000:.0f}ms" if seconds < 1 else f"{seconds:.1f}s"


@contextmanager
def stage_timer(stage_name: str, logger: Optional[logging.Logger] = None, level: int = logging.DEBUG):
    """
    Log how long a pipeline stage took.

    Usage:
        with stage_timer("Blend scoring", logger):
            candidates = build_candidates(...)
        # -> "Blend scoring completed in 3ms"

    Without an explicit logger the caller's module logger is used.
    """
    if logger is None:
        frame = inspect.currentframe()
        caller = frame.f_back.f_back if frame and frame.f_back else None
        logger = logging.getLogger(caller.f_globals.get('__name__', __name__) if caller else __name__)

    started = time.perf_counter()
    try:
        yield
    finally:
        logger.log(level, "%s completed in %s", stage_name, _format_elapsed(time.perf_counter() - started))


_SECRET_PATTERNS = [
    # Bearer credentials in header dumps
    (r'(Bearer\s+)[A-Za-z0-9._~+/=-]+', r'\1***REDACTED***'),
    # key=value / "key": "value" style secrets
    (r'(["\']?(?:access[_-]?token|refresh[_-]?token|api[_-]?key|token|secret|password|authorization)["\']?\s*[:=]\s*["\']?)([^"\'\s,}]+)(["\']?)',
     r'\1***REDACTED***\3'),
    (r'/home/[^/]+', r'/home/***'),
    (r'/Users/[^/]+', r'/Users/***'),
]


def redact(value: Any, patterns: Optional[List[str]] = None) -> str:
    """
    Mask credentials and user paths before a value reaches a log line.

    Usage:
        logger.debug("Spotify headers: %s", redact(headers))
    """
    if value is None:
        return "None"

    text = str(value)
    for pattern, replacement in _SECRET_PATTERNS:
        text = re.sub(pattern, replacement, text, flags=re.IGNORECASE)
    for extra in patterns or []:
        text = re.sub(extra, '***REDACTED***', text)
    return text


def add_logging_args(parser) -> None:
    """Add --log-level, --debug, --quiet and --log-file to an argparse parser."""
    group = parser.add_argument_group('logging')
    group.add_argument(
        '--log-level',
        choices=['DEBUG', 'INFO', 'WARNING', 'ERROR'],
        default='INFO',
        help='Console log level (default: INFO)',
    )
    group.add_argument('--debug', action='store_true', help='Same as --log-level DEBUG')
    group.add_argument('--quiet', action='store_true', help='Same as --log-level WARNING')
    group.add_argument('--log-file', type=str, metavar='PATH', help='Also write logs to PATH')


def resolve_log_level(args) -> str:
    """--debug wins over --quiet, which wins over --log-level."""
    for flag, level in (('debug', 'DEBUG'), ('quiet', 'WARNING')):
        if getattr(args, flag, False):
            return level
    return getattr(args, 'log_level', 'INFO')


class RunSummary:
    """
    Collect metrics during a run and log them as one block at the end.

    Usage:
        summary = RunSummary("Blend mock-room")
        summary.add("candidates", 42)
        summary.log()
    """

    def __init__(self, title: str, logger: Optional[logging.Logger] = None):
        self.title = title
        self.logger = logger or logging.getLogger(__name__)
        self.metrics: Dict[str, Union[int, float, str]] = {}
        self._started = time.perf_counter()

    def add(self, key: str, value: Union[int, float, str]) -> None:
        self.metrics[key] = value

    def increment(self, key: str, amount: int = 1) -> None:
        self.metrics[key] = self.metrics.get(key, 0) + amount

    def lines(self) -> List[str]:
        """Rendered metric lines, e.g. "  Selected: 12"."""
        rendered = []
        for key, value in self.metrics.items():
            label = key.replace('_', ' ').title()
            shown = f"{value:.3f}" if isinstance(value, float) else str(value)
            rendered.append(f"  {label}: {shown}")
        rendered.append(f"  Total Time: {_format_elapsed(time.perf_counter() - self._started)}")
        return rendered

    def log(self, level: int = logging.INFO) -> None:
        if not self.logger.isEnabledFor(level):
            return
        rule = "=" * 50
        self.logger.log(level, rule)
        self.logger.log(level, "%s SUMMARY", self.title.upper())
        for line in self.lines():
            self.logger.log(level, "%s", line)
        self.logger.log(level, rule)
