"""
relaybot Logging Configuration - Color-Coded Console + File Logs

Provides:
- ColorFormatter: ANSI color-coded console output
- setup_logging(): Configure application logging (console, error.log, combined.log)
- Helper functions: log_message_in, log_message_out, log_lifecycle

Usage:
    from logging_config import setup_logging, log_message_in
    setup_logging(log_dir="logs")
    logger = logging.getLogger(__name__)
    log_message_in(logger, "Olá", worker="worker0", sender="5511999999999")
"""

import logging
import sys
from pathlib import Path
from typing import Optional

# ANSI color codes
COLORS = {
    "RESET": "\033[0m",
    "BOLD": "\033[1m",
    "DIM": "\033[2m",
    # Event colors
    "MSG_IN": "\033[96m",  # Cyan - incoming message
    "MSG_OUT": "\033[92m",  # Green - outgoing reply
    "STATE": "\033[95m",  # Magenta - lifecycle transitions
    "ERROR": "\033[91m",  # Red - errors
    "WARN": "\033[33m",  # Orange/Yellow - warnings
    "DEBUG": "\033[90m",  # Gray - debug info
}

FILE_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"


class ColorFormatter(logging.Formatter):
    """Custom formatter with colors for different log levels."""

    LEVEL_COLORS = {
        logging.DEBUG: COLORS["DEBUG"],
        logging.INFO: COLORS["RESET"],
        logging.WARNING: COLORS["WARN"],
        logging.ERROR: COLORS["ERROR"],
        logging.CRITICAL: COLORS["ERROR"] + COLORS["BOLD"],
    }

    def format(self, record: logging.LogRecord) -> str:
        # Apply level-based color
        color = self.LEVEL_COLORS.get(record.levelno, COLORS["RESET"])

        # Format: timestamp [LEVEL] message (no module name for compactness)
        timestamp = self.formatTime(record, "%H:%M:%S")
        level = record.levelname[:4]

        formatted = (
            f"{COLORS['DIM']}{timestamp}{COLORS['RESET']} "
            f"[{color}{level}{COLORS['RESET']}] "
            f"{record.getMessage()}"
        )

        if record.exc_info:
            formatted += "\n" + self.formatException(record.exc_info)

        return formatted


def setup_logging(level: int = logging.INFO, log_dir: Optional[str] = None) -> None:
    """Configure colored console logging, plus error.log / combined.log when log_dir is given."""
    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(ColorFormatter())
    handlers: list[logging.Handler] = [handler]

    if log_dir:
        path = Path(log_dir)
        path.mkdir(parents=True, exist_ok=True)
        file_formatter = logging.Formatter(FILE_FORMAT)

        error_handler = logging.FileHandler(path / "error.log", encoding="utf-8")
        error_handler.setLevel(logging.ERROR)
        error_handler.setFormatter(file_formatter)

        combined_handler = logging.FileHandler(path / "combined.log", encoding="utf-8")
        combined_handler.setFormatter(file_formatter)

        handlers.extend([error_handler, combined_handler])

    # Configure root logger
    root = logging.getLogger()
    root.setLevel(level)
    root.handlers = handlers

    # Quiet noisy libraries
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)
    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)
    logging.getLogger("asyncio").setLevel(logging.WARNING)


# =============================================================================
# COLORED LOG HELPER FUNCTIONS
# =============================================================================


def log_message_in(logger: logging.Logger, message: str, **context) -> None:
    """Log an incoming message.

    Args:
        logger: Logger instance
        message: Message text
        **context: Additional context (worker, sender, data_id, etc.)
    """
    preview = message[:80] + "..." if len(message) > 80 else message
    ctx = " ".join(f"{k}={v}" for k, v in context.items())
    logger.info(f"{COLORS['MSG_IN']}>>> MESSAGE{COLORS['RESET']} {preview} [{ctx}]")


def log_message_out(logger: logging.Logger, message: str, to: str = "open chat", **context) -> None:
    """Log an outgoing message."""
    preview = message[:80] + "..." if len(message) > 80 else message
    ctx = " ".join(f"{k}={v}" for k, v in context.items())
    logger.info(f"{COLORS['MSG_OUT']}<<< SEND{COLORS['RESET']} to={to} {preview} [{ctx}]")


def log_lifecycle(logger: logging.Logger, worker: str, old_state: str, new_state: str) -> None:
    """Log a connection state transition.

    Args:
        logger: Logger instance
        worker: Identity key of the worker
        old_state: State being left
        new_state: State being entered
    """
    logger.info(f"{COLORS['STATE']}*** STATE{COLORS['RESET']} {worker}: {old_state} -> {new_state}")
