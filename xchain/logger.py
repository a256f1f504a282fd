"""
XChain Logging
==============

Every module asks for its logger through ``get_logger(__name__)``. The
first call wires the root logger once: a themed ``rich`` console handler
on stderr (stdout stays free for CLI output) and a rotating file under
``logs/``. Both share a formatter that strips terminal control sequences,
since addresses, token symbols and provider error text are logged as
received.

Usage:
    >>> from xchain.logger import get_logger
    >>> logger = get_logger(__name__)
    >>> logger.info("bridge-tx-1f2e INITIATED via wormhole")
"""

import logging
import logging.handlers
import re
import sys
import threading
import time
from pathlib import Path
from typing import Optional

from rich.console import Console
from rich.highlighter import RegexHighlighter
from rich.logging import RichHandler
from rich.theme import Theme

from .constants import (
    LOG_BACKUP_COUNT,
    LOG_CONSOLE_HIGHLIGHTING,
    LOG_DATE_FORMAT,
    LOG_FILE_OUTPUT,
    LOG_FORMAT,
    LOG_LEVEL,
    LOG_MAX_FILE_SIZE,
)


LOG_FILE_PATH = Path(__file__).resolve().parent.parent / "logs" / "xchain.log"

# Libraries whose INFO chatter would drown bridge events
QUIET_LOGGERS = ("urllib3", "asyncio")

XCHAIN_THEME = Theme(
    {
        "xchain.arrow":           "bold yellow",
        "xchain.level_critical":  "bold red reverse",
        "xchain.level_debug":     "bold dim",
        "xchain.level_error":     "bold red",
        "xchain.level_info":      "bold green",
        "xchain.level_warning":   "bold yellow",
        "xchain.logger_name":     "magenta",
        "xchain.tx_id":           "bold cyan",
        "xchain.saga_id":         "bold blue",
        "xchain.status_ok":       "bold green",
        "xchain.status_pending":  "bold yellow",
        "xchain.status_failed":   "bold red",
        "xchain.network":         "cyan",
        "xchain.provider":        "bold magenta",
        "xchain.address":         "dim cyan",
        "xchain.timestamp":       "bold cyan",
    }
)


class TerminalSafeFormatter(logging.Formatter):
    """Formatter that drops ANSI escapes, carriage returns and other control characters."""

    _unsafe = re.compile(
        r"\x1b\[[0-?]*[ -/]*[@-~]"       # CSI sequences
        r"|\x1b[@-Z\\-_]"                # two-byte escapes
        r"|[\x00-\x08\x0B-\x1F\x7F]"     # controls except tab and newline
    )

    @classmethod
    def sanitize(cls, text: str) -> str:
        return cls._unsafe.sub("", text) if text else text

    def format(self, record: logging.LogRecord) -> str:
        return self.sanitize(super().format(record))


class XChainLogHighlighter(RegexHighlighter):
    """Highlights transaction and saga ids, statuses, networks and providers."""

    base_style = "xchain."
    highlights = [
        r"(?P<arrow>-->|<--|→)",
        r"(?P<level_critical>\bCRITICAL\b)",
        r"(?P<level_error>\bERROR\b)",
        r"(?P<level_warning>\bWARNING\b)",
        r"(?P<level_info>\bINFO\b)",
        r"(?P<level_debug>\bDEBUG\b)",
        r" - (?P<logger_name>xchain[\w.]*) - ",
        r"(?P<tx_id>\bbridge-tx-[0-9a-f]+\b)",
        r"(?P<saga_id>\bsaga-[0-9a-f]+\b)",
        r"(?P<status_ok>\b(COMPLETED|BRIDGE_COMPLETE|SWAP_COMPLETE|DONE)\b)",
        r"(?P<status_pending>\b(INITIATED|BRIDGING|CONFIRMING|BRIDGE_IN_PROGRESS|SWAP_IN_PROGRESS)\b)",
        r"(?P<status_failed>\b(FAILED|REFUNDED|BRIDGE_FAILED|SWAP_FAILED|DONE_FAILED|DONE_PARTIAL)\b)",
        r"(?P<network>\b(ethereum|polygon|bsc|arbitrum|optimism|base|bitcoin|solana|tron)\b)",
        r"(?P<provider>\b(wormhole|layerzero|axelar|demo)\b)",
        r"(?P<address>\b0x[0-9a-fA-F]{40}\b)",
        r"^(?P<timestamp>[^-]*UTC)",
    ]


def _checked_format(log_format: str) -> str:
    """Return *log_format* if a record formats with it, else the default format."""
    fallback = str(LOG_FORMAT.default())
    if not log_format:
        return fallback
    probe = logging.makeLogRecord({"msg": "probe", "levelno": logging.INFO, "levelname": "INFO"})
    try:
        logging.Formatter(fmt=str(log_format)).format(probe)
    except (ValueError, KeyError, TypeError) as exc:
        sys.stderr.write(f"xchain.logger: invalid LOG_FORMAT ({exc}), using default\n")
        return fallback
    return str(log_format)


def _checked_date_format(date_format: str) -> str:
    """A date format needs at least one strftime directive."""
    if date_format and re.search(r"%[A-Za-z]", str(date_format)):
        return str(date_format)
    return str(LOG_DATE_FORMAT.default())


class LogManager:
    """
    Owns the one-time logging setup for the process.

    ``configure()`` is idempotent; the module-level ``_manager`` is the
    only instance.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._configured = False

    @property
    def is_configured(self) -> bool:
        return self._configured

    def configure(
        self,
        log_level: Optional[str] = None,
        log_file: Optional[Path] = None,
        console_output: bool = True,
        file_output: Optional[bool] = None,
    ) -> None:
        """
        Install console and file handlers on the root logger.

        Args:
            log_level: DEBUG, INFO, ... (default: LOG_LEVEL from .env)
            log_file: Rotating log file (default: logs/xchain.log)
            console_output: Attach the stderr handler
            file_output: Attach the file handler (default: LOG_FILE_OUTPUT)
        """
        with self._lock:
            if self._configured:
                return

            level = getattr(logging, str(log_level or LOG_LEVEL).upper(), logging.INFO)
            root = logging.getLogger()
            root.setLevel(level)
            root.handlers.clear()
            for name in QUIET_LOGGERS:
                logging.getLogger(name).setLevel(logging.WARNING)

            # Timestamps are UTC so transfers logged by different hosts line up
            formatter = TerminalSafeFormatter(
                fmt=_checked_format(LOG_FORMAT),
                datefmt=_checked_date_format(LOG_DATE_FORMAT) + " UTC",
            )
            formatter.converter = time.gmtime

            handlers = []
            if console_output:
                handlers.append(self._console_handler())
            if bool(LOG_FILE_OUTPUT) if file_output is None else file_output:
                handlers.append(self._file_handler(log_file or LOG_FILE_PATH))

            for handler in handlers:
                handler.setLevel(level)
                handler.setFormatter(formatter)
                root.addHandler(handler)

            self._configured = True

    @staticmethod
    def _console_handler() -> logging.Handler:
        if not LOG_CONSOLE_HIGHLIGHTING:
            return logging.StreamHandler(sys.stderr)
        return RichHandler(
            console=Console(theme=XCHAIN_THEME, highlight=False, stderr=True),
            highlighter=XChainLogHighlighter(),
            keywords=[],
            rich_tracebacks=True,
            show_time=False,
            show_level=False,
            show_path=False,
            markup=False,
        )

    @staticmethod
    def _file_handler(path: Path) -> logging.Handler:
        path.parent.mkdir(parents=True, exist_ok=True)
        return logging.handlers.RotatingFileHandler(
            filename=str(path),
            maxBytes=LOG_MAX_FILE_SIZE,
            backupCount=LOG_BACKUP_COUNT,
            encoding="utf-8",
        )

    def get_logger(self, name: str) -> logging.Logger:
        self.configure()
        return logging.getLogger(name)


_manager = LogManager()


def get_logger(name: str) -> logging.Logger:
    """Module logger; configures logging on first use."""
    return _manager.get_logger(name)


_manager.configure()
