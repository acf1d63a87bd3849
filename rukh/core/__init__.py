"""
Core module - Configuration and cross-cutting concerns.

This module provides:
- config.py         : Environment-based configuration management
- logging_config.py : Centralized logging setup
- exceptions.py     : Error hierarchy mapped to HTTP responses
- outcomes.py       : Result types for best-effort operations
"""
from rukh.core.config import get_settings, Settings
from rukh.core.logging_config import setup_logging, get_logger, LoggerMixin
from rukh.core.outcomes import Outcome, Severity, DegradationCounter

__all__ = [
    "get_settings",
    "Settings",
    "setup_logging",
    "get_logger",
    "LoggerMixin",
    "Outcome",
    "Severity",
    "DegradationCounter",
]
