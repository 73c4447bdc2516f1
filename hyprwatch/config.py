"""Configuration management for hyprwatch.

This module handles loading configuration from defaults, config files, environment variables,
and CLI arguments, and resolves the pair of Hyprland socket paths the watcher connects to.

The configuration is aggregated into a :class:`Config` dataclass, which serves as the
single source of truth for application settings.

Priority Order:
    1. CLI Arguments
    2. Environment Variables
    3. Config File
    4. Defaults

Supported Environment Variables:
    * ``HYPRLAND_INSTANCE_SIGNATURE``: Hyprland session identifier, used to derive socket paths.
    * ``HYPRWATCH_CONTROL_PATH``: Explicit path to the control socket.
    * ``HYPRWATCH_EVENT_PATH``: Explicit path to the event socket.
    * ``HYPRWATCH_SOCKET_DIR``: Base directory holding per-instance socket directories.
    * ``HYPRWATCH_BUFFER_SIZE``: Socket read buffer size in bytes.
    * ``HYPRWATCH_LOG_LEVEL``: Logging level.
    * ``HYPRWATCH_LOG_FILE``: Path to the log file.

Configuration Loading Invariants:
    * The environment is only read here. Socket path derivation receives the
      instance signature as an explicit argument.
    * Every validation failure raises :class:`~hyprwatch.errors.ConfigError`
      before any socket is opened.
"""

from __future__ import annotations

import logging
import os
from configparser import ConfigParser, Error as ConfigParserError
from dataclasses import dataclass, fields
from typing import Any, Dict, List, NamedTuple, Optional

from hyprwatch.errors import ConfigError
from hyprwatch.modes import WatchMode

logger = logging.getLogger(__name__)
logger.addHandler(logging.NullHandler())

__all__ = ["Config", "SocketEndpoints", "load_config", "resolve_endpoints"]

INSTANCE_ENV = "HYPRLAND_INSTANCE_SIGNATURE"
DEFAULT_SOCKET_DIR = "/tmp/hypr"
CONTROL_SOCKET_NAME = ".socket.sock"
EVENT_SOCKET_NAME = ".socket2.sock"
DEFAULT_BUFFER_SIZE = 1024
MIN_BUFFER_SIZE = 16
MAX_BUFFER_SIZE = 1024 * 1024
CONFIG_SECTION = "hyprwatch"


class SocketEndpoints(NamedTuple):
    """Resolved control and event socket paths."""

    control_path: str
    event_path: str


@dataclass(frozen=True)
class Config:
    """Define the application configuration structure.

    Attributes:
        mode (WatchMode): The state being watched.
        control_path (str): Absolute path to the Hyprland control socket.
        event_path (str): Absolute path to the Hyprland event socket.
        buffer_size (int): Read buffer size in bytes. Defaults to 1024.
        log_level (str): Logging level (e.g., INFO, DEBUG). Defaults to "INFO".
        log_file (Optional[str]): Path to the log file. Defaults to None.
    """

    mode: WatchMode
    control_path: str
    event_path: str
    buffer_size: int
    log_level: str
    log_file: Optional[str]

    @property
    def endpoints(self) -> SocketEndpoints:
        return SocketEndpoints(self.control_path, self.event_path)


def resolve_endpoints(
    control_path: Optional[str],
    event_path: Optional[str],
    instance_signature: Optional[str],
    socket_dir: str = DEFAULT_SOCKET_DIR,
) -> SocketEndpoints:
    """Resolve the control and event socket paths.

    Explicit paths are used as given (with ``~`` expanded). A missing path is
    derived as ``<socket_dir>/<instance_signature>/.socket.sock`` for the
    control socket and ``.socket2.sock`` for the event socket.

    Args:
        control_path (Optional[str]): Explicit control socket path.
        event_path (Optional[str]): Explicit event socket path.
        instance_signature (Optional[str]): Hyprland instance signature.
        socket_dir (str): Base directory for derived paths. Defaults to ``/tmp/hypr``.

    Returns:
        SocketEndpoints: The resolved pair.

    Raises:
        ConfigError: If a path must be derived but no instance signature is available.

    Examples:
        >>> resolve_endpoints(None, None, "abc")
        SocketEndpoints(control_path='/tmp/hypr/abc/.socket.sock', event_path='/tmp/hypr/abc/.socket2.sock')
    """
    if control_path and event_path:
        return SocketEndpoints(os.path.expanduser(control_path), os.path.expanduser(event_path))

    if not instance_signature:
        raise ConfigError(f"Socket path not specified and {INSTANCE_ENV} not set")

    instance_dir = os.path.join(os.path.expanduser(socket_dir), instance_signature)
    return SocketEndpoints(
        os.path.expanduser(control_path) if control_path else os.path.join(instance_dir, CONTROL_SOCKET_NAME),
        os.path.expanduser(event_path) if event_path else os.path.join(instance_dir, EVENT_SOCKET_NAME),
    )


def _get_config_file_paths() -> List[str]:
    """Return a list of potential config file paths in order of priority.

    Checks the following locations:
    1. Local `hyprwatch.ini` (current working directory).
    2. `$XDG_CONFIG_HOME/hyprwatch/config.ini`.
    3. `~/.config/hyprwatch/config.ini` (Fallback when XDG_CONFIG_HOME is unset).

    Returns:
        List[str]: A list of file paths to check for configuration.
    """
    paths = ["hyprwatch.ini"]

    xdg_config_home = os.environ.get("XDG_CONFIG_HOME")
    if xdg_config_home:
        paths.append(os.path.join(os.path.expanduser(xdg_config_home), "hyprwatch", "config.ini"))
    else:
        paths.append(os.path.join(os.path.expanduser("~"), ".config", "hyprwatch", "config.ini"))
    return paths


def load_config(args: Dict[str, Any]) -> Config:
    """Load and validate configuration with strict priority, returning a Config object.

    Aggregates configuration from CLI arguments, environment variables, an INI
    config file and hardcoded defaults, then resolves the socket endpoints.

    Args:
        args (Dict[str, Any]): Dictionary of parsed CLI arguments from argparse.
            Values of None are ignored so lower-priority sources take effect.
            Typically obtained via ``vars(parser.parse_args())``.

    Returns:
        Config: The fully resolved and validated configuration object.

    Raises:
        ConfigError: If the mode is missing or unknown, the buffer size or log
            level is invalid, or socket paths cannot be resolved.

    Examples:
        >>> import os
        >>> os.environ["HYPRLAND_INSTANCE_SIGNATURE"] = "abc"
        >>> config = load_config({"mode": "workspaces"})
        >>> config.event_path
        '/tmp/hypr/abc/.socket2.sock'
        >>> del os.environ["HYPRLAND_INSTANCE_SIGNATURE"]
    """
    # 1. Defaults
    config_values: Dict[str, Any] = {
        "mode": None,
        "control_path": None,
        "event_path": None,
        "socket_dir": DEFAULT_SOCKET_DIR,
        "buffer_size": DEFAULT_BUFFER_SIZE,
        "log_level": "INFO",
        "log_file": None,
    }

    # 2. Config File
    for path in _get_config_file_paths():
        if os.path.isfile(path):
            logger.debug(f"Loading config from {path}")
            parser = ConfigParser(interpolation=None)
            try:
                parser.read(path, encoding="utf-8-sig")
                if CONFIG_SECTION in parser:
                    for key, value in parser[CONFIG_SECTION].items():
                        if key not in config_values:
                            logger.warning(f"Ignoring unknown key '{key}' in {path}")
                            continue
                        if value:
                            config_values[key] = value
            except (ConfigParserError, UnicodeDecodeError, OSError) as e:
                logger.warning(f"Failed to parse config file {path}: {e}")
            break

    # 3. Environment Variables
    env_map = {
        "HYPRWATCH_CONTROL_PATH": "control_path",
        "HYPRWATCH_EVENT_PATH": "event_path",
        "HYPRWATCH_SOCKET_DIR": "socket_dir",
        "HYPRWATCH_BUFFER_SIZE": "buffer_size",
        "HYPRWATCH_LOG_LEVEL": "log_level",
        "HYPRWATCH_LOG_FILE": "log_file",
    }
    for env_var, config_key in env_map.items():
        val = os.getenv(env_var)
        if val:
            config_values[config_key] = val

    # 4. CLI Arguments (override if not None)
    for key, value in args.items():
        if value is not None:
            config_values[key] = value

    if config_values["mode"] is None:
        raise ConfigError(f"No watch mode given. Expected one of: {', '.join(WatchMode.choices())}")
    if not isinstance(config_values["mode"], WatchMode):
        config_values["mode"] = WatchMode.from_name(config_values["mode"])

    try:
        config_values["buffer_size"] = int(config_values["buffer_size"])
    except (TypeError, ValueError) as e:
        raise ConfigError(f"Invalid integer for buffer_size: {config_values['buffer_size']}") from e
    if not (MIN_BUFFER_SIZE <= config_values["buffer_size"] <= MAX_BUFFER_SIZE):
        raise ConfigError(
            f"buffer_size must be between {MIN_BUFFER_SIZE} and {MAX_BUFFER_SIZE}, "
            f"got {config_values['buffer_size']}"
        )

    if args.get("debug"):
        config_values["log_level"] = "DEBUG"

    config_values["log_level"] = str(config_values["log_level"]).upper()
    if not isinstance(getattr(logging, config_values["log_level"], None), int):
        raise ConfigError(f"Invalid log level: {config_values['log_level']}")

    if config_values["log_file"]:
        config_values["log_file"] = os.path.expanduser(str(config_values["log_file"]))

    endpoints = resolve_endpoints(
        config_values["control_path"],
        config_values["event_path"],
        os.getenv(INSTANCE_ENV),
        socket_dir=str(config_values["socket_dir"]),
    )
    config_values["control_path"] = endpoints.control_path
    config_values["event_path"] = endpoints.event_path

    # Filter out keys that are not in Config fields (e.g. 'debug', 'socket_dir')
    config_fields = {f.name for f in fields(Config)}
    filtered_values = {k: v for k, v in config_values.items() if k in config_fields}

    return Config(**filtered_values)
