"""Unified logging for pvect with console and file output."""
import logging
from pathlib import Path
from typing import Optional

from rich.console import Console
from rich.logging import RichHandler

console = Console()

# Log file configuration
LOG_DIR = Path("/var/log")
FALLBACK_LOG_DIR = Path("/tmp")

# Currently attached file handler (one transcript per run)
_file_handler: Optional[logging.FileHandler] = None

# Level of the rich console handlers
_console_level = logging.INFO


def setup_file_logging(log_file: str = None, verbose: bool = False) -> Path:
    """Set up file logging for pvect operations.

    Args:
        log_file: Path to log file (defaults to /var/log/pvect_debug.log)
        verbose: Also show debug output (every command and its output) on the console

    Returns:
        Path of the transcript actually in use

    Note:
        Falls back to /tmp if the target directory is not writable.
        Calling again with another path replaces the previous handler.
    """
    global _file_handler

    target_log_file = Path(log_file) if log_file else LOG_DIR / "pvect_debug.log"

    root_logger = logging.getLogger("pvect")

    if _file_handler is not None:
        if Path(_file_handler.baseFilename) == target_log_file.resolve():
            return target_log_file
        root_logger.removeHandler(_file_handler)
        _file_handler.close()
        _file_handler = None

    try:
        target_log_file.parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(target_log_file)
    except PermissionError:
        # Fallback to /tmp if /var/log is not writable
        target_log_file = FALLBACK_LOG_DIR / target_log_file.name
        file_handler = logging.FileHandler(target_log_file)

    # The transcript always holds every command and its output
    file_handler.setLevel(logging.DEBUG)

    # Detailed format for file logs
    file_formatter = logging.Formatter(
        "%(asctime)s | %(name)s | %(levelname)s | %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )
    file_handler.setFormatter(file_formatter)
    root_logger.addHandler(file_handler)
    root_logger.setLevel(logging.DEBUG)
    set_console_level(logging.DEBUG if verbose else logging.INFO)

    _file_handler = file_handler

    root_logger.info(f"pvect logging initialized: {target_log_file}")
    return target_log_file


def get_logger(name: str) -> logging.Logger:
    """Get a configured logger instance with console output.

    Args:
        name: Logger name (typically __name__)

    Returns:
        Configured logger with Rich console handler

    Note:
        File logging must be enabled separately via setup_file_logging()
    """
    logger = logging.getLogger(name)

    # Only add console handler if not already present
    if not any(isinstance(h, RichHandler) for h in logger.handlers):
        handler = RichHandler(console=console, show_path=False)
        handler.setFormatter(logging.Formatter("%(message)s"))
        handler.setLevel(_console_level)
        logger.addHandler(handler)

    # Records reach the transcript at debug level; console handlers filter
    package_logger = logging.getLogger("pvect")
    if package_logger.level == logging.NOTSET:
        package_logger.setLevel(logging.DEBUG)

    return logger


def set_console_level(level: int) -> None:
    """Change the level of every pvect console handler."""
    global _console_level
    _console_level = level
    for name, candidate in logging.Logger.manager.loggerDict.items():
        if not isinstance(candidate, logging.Logger) or not name.startswith("pvect"):
            continue
        for handler in candidate.handlers:
            if isinstance(handler, RichHandler):
                handler.setLevel(level)
