"""Main entry point for hyprwatch.

This module handles the command-line interface (CLI), configuration loading,
logging setup, and the main event loop. It orchestrates the initialization
of the ControlClient and EventWatcher components.

Key Responsibilities:
    - CLI Argument Parsing: Handles the watch mode, socket path overrides, logging flags.
    - Signal Handling: Registers handlers for SIGINT/SIGTERM to ensure graceful shutdown.
    - Logging: Configures logging on stderr (stdout carries the state lines) with optional
      rotating file output.
    - Error Handling: Every fatal error is reported once here, followed by a non-zero exit.
"""

from __future__ import annotations

import argparse
import logging
import os
import signal
import sys
from logging.handlers import RotatingFileHandler
from types import FrameType
from typing import List, Optional

from hyprwatch import __version__
from hyprwatch.client import ControlClient
from hyprwatch.config import load_config
from hyprwatch.errors import ConfigError, HyprwatchError
from hyprwatch.modes import WatchMode
from hyprwatch.watcher import EventWatcher

# Logging configuration constants
LOG_FORMAT = '[%(asctime)s] [%(levelname)s] %(name)s: %(message)s'
LOG_DATE_FORMAT = '%Y-%m-%dT%H:%M:%S'

logger = logging.getLogger(__name__)
logger.addHandler(logging.NullHandler())


def setup_logging(log_level: str, log_file: Optional[str]) -> None:
    """Configure the logging system.

    Sets up console logging (stderr) and optional file logging with rotation.

    Logging Practices:
        - **Levels**:
            - ``INFO``: Startup, shutdown, channel close.
            - ``WARNING``: Ignored configuration.
            - ``CRITICAL``: Fatal errors (unreachable socket, I/O, decode).
            - ``DEBUG``: Per-event diagnostics.
        - **Format**: ``[asctime] [levelname] name: message``
        - **Output**: Console (stderr) is always active, since stdout is reserved for
          state lines. File logging is optional via ``--log-file``.
        - **Rotation**: Log files are rotated at 10MB (keeping 5 backups).

    Args:
        log_level (str): The logging level (e.g., "DEBUG", "INFO", "WARNING", "ERROR").
        log_file (Optional[str]): Optional path to a log file. If provided, logs are written here.

    Raises:
        ValueError: If the provided log_level is not a valid logging level.
    """
    numeric_level = getattr(logging, log_level.upper(), None)
    if not isinstance(numeric_level, int):
        raise ValueError(f"Invalid log level: {log_level}")

    handlers: List[logging.Handler] = []
    formatter = logging.Formatter(LOG_FORMAT, datefmt=LOG_DATE_FORMAT)

    console_handler = logging.StreamHandler(sys.stderr)
    console_handler.setFormatter(formatter)
    handlers.append(console_handler)

    if log_file:
        try:
            log_dir = os.path.dirname(log_file)
            if log_dir:
                os.makedirs(log_dir, exist_ok=True)
            # Rotate at 10MB, keep 5 backups
            file_handler = RotatingFileHandler(log_file, maxBytes=10 * 1024 * 1024, backupCount=5)
            file_handler.setFormatter(formatter)
            handlers.append(file_handler)
        except OSError as e:
            # Logging isn't set up yet
            sys.stderr.write(f"Warning: Failed to setup log file '{log_file}': {e}\n")

    logging.basicConfig(level=numeric_level, handlers=handlers, force=True)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="hyprwatch",
        description="Print Hyprland state as JSON, one line per change.",
    )
    parser.add_argument(
        "mode", choices=WatchMode.choices(), help="State to watch."
    )
    parser.add_argument(
        "-c", "--control-path", type=str, default=None,
        help="Path to the Hyprland control socket (.socket.sock).",
    )
    parser.add_argument(
        "-e", "--event-path", type=str, default=None,
        help="Path to the Hyprland event socket (.socket2.sock).",
    )
    parser.add_argument(
        "--socket-dir", type=str, default=None,
        help="Base directory for derived socket paths (default: /tmp/hypr).",
    )
    parser.add_argument(
        "--buffer-size", type=int, default=None, help="Socket read buffer size in bytes (default: 1024)."
    )
    parser.add_argument(
        "--debug", action="store_true", help="Enable debug logging (overrides --log-level)."
    )
    parser.add_argument(
        "--log-file", type=str, default=None, help="Path to the log file."
    )
    parser.add_argument(
        "--log-level", type=str, default=None,
        help="Logging level (DEBUG, INFO, WARNING, ERROR). Default: INFO",
    )
    parser.add_argument("-V", "--version", action="version", version=f"%(prog)s {__version__}")
    return parser


def main(argv: Optional[List[str]] = None) -> None:
    """Execute the main application logic.

    Parse command-line arguments, load configuration, set up logging, print the
    current state once and then follow the event socket until it closes.

    Returns:
        None

    Raises:
        SystemExit: Non-zero if configuration is invalid or any socket error occurs.

    Example:
        $ hyprwatch active-window | my-status-bar
    """
    parser = build_parser()
    args = parser.parse_args(argv)

    # Bootstrap logging to capture config loading events
    bootstrap_handler = logging.StreamHandler(sys.stderr)
    bootstrap_handler.setFormatter(logging.Formatter(LOG_FORMAT, datefmt=LOG_DATE_FORMAT))
    bootstrap_level = logging.DEBUG if args.debug else logging.WARNING
    logging.basicConfig(level=bootstrap_level, handlers=[bootstrap_handler], force=True)

    try:
        config = load_config(vars(args))
        setup_logging(config.log_level, config.log_file)
    except ConfigError as e:
        sys.exit(f"Configuration Error: {e}")
    logger.debug(f"Configuration loaded: {config}")
    logger.info(f"Starting hyprwatch v{__version__} (PID: {os.getpid()}, mode: {config.mode})")

    endpoints = config.endpoints
    client = ControlClient(endpoints.control_path, buffer_size=config.buffer_size)
    watcher = EventWatcher(
        endpoints.event_path,
        config.mode,
        client,
        buffer_size=config.buffer_size,
    )

    def signal_handler(sig: int, frame: Optional[FrameType]) -> None:
        """Handle SIGINT/SIGTERM by stopping the watcher and unwinding.

        Raising here also breaks out of a control query blocked on an
        unresponsive socket, which would otherwise resume its read.
        """
        logger.info(f"Received signal {signal.Signals(sig).name}, shutting down...")
        watcher.stop()
        raise KeyboardInterrupt

    signal.signal(signal.SIGINT, signal_handler)
    signal.signal(signal.SIGTERM, signal_handler)

    try:
        client.query(config.mode.query)
        watcher.run()
    except HyprwatchError as e:
        logger.critical(f"Fatal error: {e}")
        sys.exit(f"Error: {e}")
    except KeyboardInterrupt:
        logger.info("Interrupted, exiting.")
    except BrokenPipeError:
        # Reader went away; stop flushing into a closed pipe at interpreter exit.
        logger.info("Output pipe closed, shutting down...")
        devnull = os.open(os.devnull, os.O_WRONLY)
        os.dup2(devnull, sys.stdout.fileno())
    finally:
        stats = watcher.get_statistics()
        logger.info(
            f"Stopped. Chunks={stats['chunks_read']}, Records={stats['records_seen']}, "
            f"Triggers={stats['triggers_matched']}, Queries={stats['queries_sent']}, "
            f"Uptime={stats['uptime']:.1f}s"
        )


if __name__ == "__main__":
    main()
