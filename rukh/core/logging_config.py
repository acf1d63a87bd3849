"""
Centralized logging configuration.

One console handler at the configured level and one daily file handler
that keeps everything. Provider failures, ledger write errors and mint
failures all end up in the same file, so a degraded request can be
reconstructed from its session id after the fact.
"""
import logging
import sys
from datetime import datetime
from pathlib import Path
from typing import List, Optional


# Set once handlers are attached; setup_logging() is idempotent
_logging_configured = False

LOG_FORMAT = "%(asctime)s | %(levelname)-8s | %(name)s:%(lineno)d | %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

# Chatty at DEBUG: HTTP clients, the web3 provider and the multipart parser
NOISY_LOGGERS = ("httpx", "httpcore", "urllib3", "web3", "multipart")

DEFAULT_LOG_DIR = Path(__file__).parent.parent.parent / "logs"


def _handlers(log_level: str, log_file: Path) -> List[logging.Handler]:
    formatter = logging.Formatter(fmt=LOG_FORMAT, datefmt=DATE_FORMAT)

    console = logging.StreamHandler(sys.stdout)
    console.setLevel(getattr(logging, log_level.upper(), logging.INFO))

    daily = logging.FileHandler(log_file, encoding="utf-8")
    daily.setLevel(logging.DEBUG)

    for handler in (console, daily):
        handler.setFormatter(formatter)
    return [console, daily]


def setup_logging(log_level: str = "INFO", log_dir: Optional[Path] = None) -> logging.Logger:
    """
    Configure application-wide logging.

    Called by create_app(); later calls return the root logger unchanged.

    Args:
        log_level: Console verbosity (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        log_dir: Directory of the daily log files, created if missing

    Returns:
        The configured root logger
    """
    global _logging_configured

    root = logging.getLogger()
    if _logging_configured:
        return root

    log_dir = Path(log_dir or DEFAULT_LOG_DIR)
    log_dir.mkdir(parents=True, exist_ok=True)
    log_file = log_dir / f"rukh_{datetime.now():%Y%m%d}.log"

    root.setLevel(logging.DEBUG)
    for handler in _handlers(log_level, log_file):
        root.addHandler(handler)

    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)

    _logging_configured = True
    root.debug(f"Logging configured: level={log_level}, file={log_file}")
    return root


def get_logger(name: str) -> logging.Logger:
    """
    Module logger; pass __name__.

    Example:
        >>> logger = get_logger(__name__)
        >>> logger.info("Processing ask request")
        2025-03-02 10:30:45 | INFO     | rukh.services.orchestrator:42 | Processing ask request
    """
    return logging.getLogger(name)


def truncate_for_log(text: str, limit: int = 1000, edge: int = 100) -> str:
    """Shorten long payloads to head...tail for debug logs."""
    if len(text) <= limit:
        return text
    return f"{text[:edge]}...{text[-edge:]}"


class LoggerMixin:
    """
    Gives a class a `logger` named after it.

    Example:
        >>> class TokenMinter(LoggerMixin):
        ...     def mint(self):
        ...         self.logger.info("Minting...")
    """

    @property
    def logger(self) -> logging.Logger:
        return get_logger(self.__class__.__name__)
