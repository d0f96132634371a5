"""
Reusable logging and console setup for all parts of the project.

Functions:
    setup_logging      - Configure and return the root logger.
    set_print_logger   - Set the logger used by print_and_log and print_error.
    print_and_log      - Print (rich) and log an info message.
    print_error        - Print (rich, stderr) and log an error message.
"""

import logging
import logging.handlers
import os
import sys
from typing import Optional

from rich.console import Console
from rich.markup import escape

# Logger used by print_and_log and print_error
_print_logger: Optional[logging.Logger] = None

console = Console()
error_console = Console(stderr=True)


def setup_logging(app_name: str = "stagedeploy", daemon: bool = False, loglevel: int = logging.INFO, logfile: Optional[str] = None) -> logging.Logger:
    """
    Set up logging for the application.
    - If daemon=True, logs to syslog (Linux only), falling back to stderr.
    - Otherwise, logs to ~/.<app_name>/log.txt or to a custom logfile.
    Returns the configured logger.
    """
    logger = logging.getLogger()
    logger.setLevel(loglevel)
    handler: logging.Handler
    if daemon:
        formatter = logging.Formatter(f'%(asctime)s %(levelname)s %(process)d [{app_name}] %(name)s %(message)s')
        try:
            handler = logging.handlers.SysLogHandler(address='/dev/log')
        except OSError:
            handler = logging.StreamHandler(sys.stderr)
    else:
        formatter = logging.Formatter('%(asctime)s %(levelname)s %(process)d %(name)s %(message)s')
        if logfile is None:
            log_dir = os.path.expanduser(f"~/.{app_name}")
            os.makedirs(log_dir, exist_ok=True)
            logfile = os.path.join(log_dir, "log.txt")
        handler = logging.FileHandler(logfile)

    # Remove any existing handlers
    for h in logger.handlers[:]:
        logger.removeHandler(h)

    handler.setFormatter(formatter)
    logger.addHandler(handler)
    set_print_logger(logger)
    logger.debug("Logging initialized for %s", app_name)
    return logger


def set_print_logger(logger: logging.Logger):
    """
    Set the logger to be used by print_and_log and print_error.
    setup_logging calls this already.
    """
    global _print_logger
    _print_logger = logger


def print_and_log(message, **kwargs):
    """
    Print to console (via rich) and log as info.
    Rich renderables (tables, panels) are printed but not logged.
    """
    console.print(message, **kwargs)
    if _print_logger is not None and isinstance(message, str):
        _print_logger.info(message)


def print_error(message: str, **kwargs):
    """
    Print to stderr in red and log at error level.
    """
    error_console.print(f'[bold red]{escape(message)}[/bold red]', **kwargs)
    if _print_logger is not None:
        _print_logger.error(message)
